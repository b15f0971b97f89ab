"""Tests for the admin command line."""

import json

from database.settings_repository import SettingsRepository
from main import build_parser, manage_settings
from services.raffle_service import RaffleService


def _parse(*argv):
    return build_parser().parse_args(list(argv))


async def test_settings_without_flags_shows_current(service, capsys):
    code = await manage_settings(service, _parse("settings"))

    assert code == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["participants_limit"] == 3
    assert shown["winner_percentage"] == 70


async def test_partial_settings_update_keeps_other_values(service, capsys):
    code = await manage_settings(service, _parse("settings", "--bet", "5", "--winner-percent", "60"))

    assert code == 0
    settings = await service.get_current_settings()
    assert settings.participants_limit == 3
    assert settings.bet_amount == 5
    assert settings.winner_percentage == 60
    assert settings.organizer_percentage == 40
    assert json.loads(capsys.readouterr().out)["bet_amount"] == 5


async def test_participants_only_update(service):
    await manage_settings(service, _parse("settings", "--participants", "10"))

    settings = await service.get_current_settings()
    assert settings.participants_limit == 10
    assert settings.bet_amount == 1
    assert settings.winner_percentage == 70


async def test_partial_update_without_settings_fails(pool, raffles, cache, capsys):
    service = RaffleService(raffles, SettingsRepository(pool), cache=cache)

    code = await manage_settings(service, _parse("settings", "--bet", "5"))

    assert code == 1
    assert "No settings configured" in capsys.readouterr().out
    assert await service.get_current_settings() is None
