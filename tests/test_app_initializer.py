"""Wiring of the application components."""

from dataclasses import replace

from config import load_config
from core.app_initializer import ApplicationInitializer


async def test_initialize_seeds_settings_and_serves_bets(tmp_path):
    config = replace(
        load_config(),
        database_path=str(tmp_path / "app.sqlite"),
        db_pool_size=2,
        default_participants_limit=2,
        default_bet_amount=3,
        bot_token="",
    )
    app = ApplicationInitializer(config)
    try:
        service = await app.initialize()

        assert app.notifier is None
        settings = await service.get_current_settings()
        assert settings.participants_limit == 2
        assert settings.bet_amount == 3

        await service.place_bet(1)
        result = await service.place_bet(2)
        assert result.completed is True
        assert result.raffle.total_pot == 6
    finally:
        await app.cleanup()

    assert not app.db_pool.initialized


async def test_restart_keeps_existing_settings(tmp_path):
    config = replace(load_config(), database_path=str(tmp_path / "app.sqlite"), bot_token="")

    app = ApplicationInitializer(config)
    service = await app.initialize()
    await service.update_settings(5, 2, 60, 40)
    await app.cleanup()

    app = ApplicationInitializer(replace(config, default_participants_limit=20))
    try:
        service = await app.initialize()
        settings = await service.get_current_settings()
        assert settings.participants_limit == 5
        assert settings.winner_percentage == 60
    finally:
        await app.cleanup()
