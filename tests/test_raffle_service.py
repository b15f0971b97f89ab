"""Lifecycle tests for RaffleService against a real SQLite database."""

import asyncio
from unittest.mock import AsyncMock

import aiosqlite
import pytest

from core.constants import LedgerKind, RaffleEventType, RaffleStatus
from core.exceptions import (
    AlreadyParticipatedError,
    ConfigurationError,
    RaffleAlreadyTerminalError,
    RaffleFullError,
    RaffleNotActiveError,
    RaffleNotFoundError,
    RaffleSystemError,
    ValidationError,
)
from database.settings_repository import SettingsRepository
from services.raffle_service import RaffleService
from services.winner_selector import select_winner_index, verify_draw


async def test_first_bet_creates_raffle_from_settings(service):
    result = await service.place_bet(101)

    assert result.completed is False
    assert result.raffle.status is RaffleStatus.ACTIVE
    assert result.raffle.required_participants == 3
    assert result.raffle.current_participants == 1
    assert result.raffle.total_pot == 1
    assert result.participation.user_id == 101


async def test_full_raffle_completes_with_verifiable_winner(service, notifier, ledger):
    await service.place_bet(101)
    await service.place_bet(102)
    result = await service.place_bet(103)

    raffle = result.raffle
    assert result.completed is True
    assert raffle.status is RaffleStatus.COMPLETED
    assert raffle.total_pot == 3
    # 70% of 3 floors to 2, the remainder goes to the organizer
    assert raffle.winner_amount == 2
    assert raffle.organizer_amount == 1
    assert len(raffle.random_seed) == 64

    participants = await service.get_participants(raffle.id)
    assert [p.user_id for p in participants] == [101, 102, 103]
    index = select_winner_index(participants, raffle.random_seed, raffle.id)
    assert participants[index].user_id == raffle.winner_id == result.winner.user_id
    assert verify_draw(participants, raffle.random_seed, raffle.id, raffle.winner_id)
    assert await service.verify_raffle(raffle.id)

    assert await ledger.sum_for_raffle(raffle.id, [LedgerKind.WIN]) == 2
    assert await ledger.sum_for_raffle(raffle.id, [LedgerKind.FEE]) == 1
    assert await ledger.sum_for_raffle(raffle.id) == 0

    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert event.type is RaffleEventType.COMPLETED
    assert event.winner.user_id == raffle.winner_id
    assert len(event.participants) == 3


async def test_injected_seed_drives_the_draw(raffles, settings_repo, cache):
    service = RaffleService(raffles, settings_repo, cache=cache, seed_factory=lambda: "f" * 64)
    for user_id in (11, 22, 33):
        result = await service.place_bet(user_id)

    participants = await service.get_participants(result.raffle.id)
    expected = participants[select_winner_index(participants, "f" * 64, result.raffle.id)]
    assert result.raffle.random_seed == "f" * 64
    assert result.winner.user_id == expected.user_id


async def test_next_bet_after_completion_opens_new_raffle(service):
    for user_id in (101, 102, 103):
        finished = await service.place_bet(user_id)

    result = await service.place_bet(101)

    assert result.raffle.id != finished.raffle.id
    assert result.raffle.current_participants == 1


async def test_duplicate_bet_is_rejected(service):
    await service.place_bet(101)
    with pytest.raises(AlreadyParticipatedError):
        await service.place_bet(101)
    raffle = await service.get_current_raffle()
    assert raffle.current_participants == 1


async def test_explicit_raffle_id_errors_propagate(service):
    first = await service.place_bet(101)
    await service.cancel_raffle(first.raffle.id)

    with pytest.raises(RaffleNotActiveError):
        await service.place_bet(102, first.raffle.id)
    with pytest.raises(RaffleAlreadyTerminalError):
        await service.place_bet(102, first.raffle.id)
    with pytest.raises(RaffleNotFoundError):
        await service.place_bet(102, "does-not-exist")


async def test_explicit_bet_on_completed_raffle_is_full(service):
    await service.place_bet(101)
    await service.place_bet(102)
    done = await service.place_bet(103)

    with pytest.raises(RaffleFullError):
        await service.place_bet(104, done.raffle.id)
    assert await service.get_active_raffle() is None


async def test_invalid_user_id(service):
    with pytest.raises(ValidationError):
        await service.place_bet(0)


async def test_missing_settings_is_configuration_error(pool, raffles, cache):
    service = RaffleService(raffles, SettingsRepository(pool), cache=cache)
    with pytest.raises(ConfigurationError):
        await service.place_bet(101)


async def test_settings_change_keeps_running_snapshot(service):
    started = await service.place_bet(101)
    await service.update_settings(5, 2, 50, 50)

    second = await service.place_bet(102)
    assert second.raffle.id == started.raffle.id
    assert second.raffle.required_participants == 3
    assert second.raffle.bet_amount == 1

    await service.place_bet(103)
    fresh = await service.place_bet(104)
    assert fresh.raffle.required_participants == 5
    assert fresh.raffle.bet_amount == 2
    assert fresh.raffle.winner_share_percent == 50


async def test_cancel_refunds_and_notifies(service, notifier, ledger):
    await service.place_bet(101)
    result = await service.place_bet(102)

    refunded = await service.cancel_raffle(result.raffle.id, "maintenance")

    assert {p.user_id for p in refunded} == {101, 102}
    raffle = await service.get_raffle(result.raffle.id)
    assert raffle.status is RaffleStatus.CANCELLED
    assert await ledger.sum_for_raffle(raffle.id) == 0
    assert notifier.events[-1].type is RaffleEventType.CANCELLED
    assert notifier.events[-1].reason == "maintenance"

    with pytest.raises(RaffleAlreadyTerminalError):
        await service.cancel_raffle(raffle.id)


async def test_cancel_completed_raffle_is_rejected(service):
    for user_id in (101, 102, 103):
        result = await service.place_bet(user_id)
    with pytest.raises(RaffleAlreadyTerminalError):
        await service.cancel_raffle(result.raffle.id)


async def test_notifier_failure_does_not_undo_completion(raffles, settings_repo, cache, failing_notifier):
    service = RaffleService(raffles, settings_repo, cache=cache, notifier=failing_notifier)

    for user_id in (101, 102, 103):
        result = await service.place_bet(user_id)

    assert failing_notifier.calls == 1
    assert result.completed is True
    stored = await service.get_raffle(result.raffle.id)
    assert stored.status is RaffleStatus.COMPLETED


async def test_storage_failure_becomes_system_error(service, raffles):
    await service.place_bet(101)
    raffles.try_admit = AsyncMock(side_effect=aiosqlite.OperationalError("disk I/O error"))

    with pytest.raises(RaffleSystemError):
        await service.place_bet(102)


async def test_cache_is_invalidated_by_bets(service):
    first = await service.place_bet(101)
    cached = await service.get_active_raffle()
    assert cached.current_participants == 1

    await service.place_bet(102)
    refreshed = await service.get_active_raffle()
    assert refreshed.id == first.raffle.id
    assert refreshed.current_participants == 2


async def test_eligibility(service):
    empty = await service.can_user_participate(101)
    assert empty.can_participate is False
    assert empty.reason == "No active raffle"

    await service.place_bet(101)
    assert (await service.can_user_participate(101)).reason == "Already participated"
    assert (await service.can_user_participate(102)).can_participate is True


async def test_health_check(service):
    await service.place_bet(101)
    report = await service.health_check()

    assert report["status"] == "healthy"
    assert report["current_raffle"]["participants"] == 1
    assert report["settings"]["participants_limit"] == 3


def _fail_first_completion(monkeypatch, raffles):
    real_try_complete = raffles.try_complete
    calls = []

    async def flaky_try_complete(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise aiosqlite.OperationalError("database is locked")
        return await real_try_complete(*args, **kwargs)

    monkeypatch.setattr(raffles, "try_complete", flaky_try_complete)
    return calls


async def test_failed_draw_keeps_stake_and_next_bet_completes_raffle(
    service, raffles, notifier, ledger, monkeypatch
):
    calls = _fail_first_completion(monkeypatch, raffles)
    await service.place_bet(101)
    await service.place_bet(102)

    filling = await service.place_bet(103)

    assert filling.completed is False
    stuck = await service.get_raffle(filling.raffle.id)
    assert stuck.status is RaffleStatus.ACTIVE
    assert stuck.current_participants == 3
    assert await ledger.sum_for_raffle(stuck.id, [LedgerKind.BET]) == 3
    assert notifier.events == []

    result = await service.place_bet(104)

    assert len(calls) == 2
    finished = await service.get_raffle(stuck.id)
    assert finished.status is RaffleStatus.COMPLETED
    assert await service.verify_raffle(stuck.id) is True
    assert result.raffle.id != stuck.id
    assert result.raffle.current_participants == 1
    assert len(notifier.events) == 1
    assert notifier.events[0].raffle.id == stuck.id


async def test_explicit_bet_on_undrawn_full_raffle_completes_it(service, raffles, monkeypatch):
    _fail_first_completion(monkeypatch, raffles)
    await service.place_bet(101)
    await service.place_bet(102)
    stuck = (await service.place_bet(103)).raffle

    with pytest.raises(RaffleFullError):
        await service.place_bet(104, stuck.id)

    assert (await service.get_raffle(stuck.id)).status is RaffleStatus.COMPLETED
    assert await service.get_active_raffle() is None


async def test_recover_pending_draw_completes_stuck_raffle(service, raffles, notifier, monkeypatch):
    _fail_first_completion(monkeypatch, raffles)
    await service.place_bet(101)
    await service.place_bet(102)
    stuck = (await service.place_bet(103)).raffle

    recovered = await service.recover_pending_draw()

    assert recovered.id == stuck.id
    assert recovered.status is RaffleStatus.COMPLETED
    assert recovered.winner_id in (101, 102, 103)
    assert recovered.winner_amount + recovered.organizer_amount == 3
    assert len(notifier.events) == 1
    assert await service.recover_pending_draw() is None


async def test_recover_pending_draw_ignores_open_raffle(service):
    await service.place_bet(101)

    assert await service.recover_pending_draw() is None
    assert (await service.get_active_raffle()).current_participants == 1


@pytest.mark.slow
async def test_concurrent_bets_fill_exactly_one_raffle(raffles, settings_repo, cache, notifier, ledger):
    await settings_repo.update(10, 1, 70, 30)
    service = RaffleService(raffles, settings_repo, cache=cache, notifier=notifier)

    results = await asyncio.gather(
        *(service.place_bet(1000 + i) for i in range(10)),
        return_exceptions=True,
    )

    assert not [r for r in results if isinstance(r, Exception)]
    completed = [r for r in results if r.completed]
    assert len(completed) == 1
    raffle = completed[0].raffle
    assert raffle.current_participants == 10
    assert raffle.total_pot == 10
    assert raffle.winner_amount == 7
    assert raffle.organizer_amount == 3
    assert len(notifier.events) == 1

    entries = await ledger.entries_for_raffle(raffle.id)
    assert sum(1 for e in entries if e.kind is LedgerKind.BET) == 10
    assert sum(1 for e in entries if e.kind is LedgerKind.WIN) == 1
    assert sum(1 for e in entries if e.kind is LedgerKind.FEE) == 1


@pytest.mark.slow
async def test_eleventh_bettor_lands_in_next_raffle(raffles, settings_repo, cache):
    await settings_repo.update(10, 1, 70, 30)
    service = RaffleService(raffles, settings_repo, cache=cache)

    results = await asyncio.gather(
        *(service.place_bet(2000 + i) for i in range(11)),
        return_exceptions=True,
    )

    placed = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert all(isinstance(e, RaffleFullError) for e in errors)
    assert len(placed) + len(errors) == 11
    assert len({r.participation.user_id for r in placed}) == len(placed)

    completing = [r for r in placed if r.completed]
    assert len(completing) == 1
    full_id = completing[0].raffle.id
    assert len(await service.get_participants(full_id)) == 10
    assert sum(1 for r in placed if r.raffle.id == full_id) == 10
    others = [r for r in placed if r.raffle.id != full_id]
    assert len(others) + len(errors) == 1
    assert all(r.participation.raffle_id != full_id for r in others)

    stats = await service.get_aggregate_stats()
    assert stats["completed_raffles"] == 1
    assert stats["active_raffles"] <= 1


@pytest.mark.slow
async def test_concurrent_bets_on_fixed_raffle_respect_capacity(raffles, settings_repo, cache, notifier):
    service = RaffleService(raffles, settings_repo, cache=cache, notifier=notifier)
    raffle = await raffles.create_raffle(5, 1, 70)

    results = await asyncio.gather(
        *(service.place_bet(4000 + i, raffle.id) for i in range(8)),
        return_exceptions=True,
    )

    placed = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(placed) == 5
    assert len(errors) == 3
    assert all(isinstance(e, RaffleFullError) for e in errors)
    assert sum(1 for r in placed if r.completed) == 1

    stored = await service.get_raffle(raffle.id)
    assert stored.status is RaffleStatus.COMPLETED
    assert stored.current_participants == 5
    assert len(await service.get_participants(raffle.id)) == 5
    assert len(notifier.events) == 1


@pytest.mark.slow
async def test_concurrent_first_bets_share_one_raffle(raffles, settings_repo, cache):
    await settings_repo.update(50, 1, 70, 30)
    service = RaffleService(raffles, settings_repo, cache=cache)

    results = await asyncio.gather(*(service.place_bet(3000 + i) for i in range(8)))

    assert len({r.raffle.id for r in results}) == 1
    assert (await service.get_active_raffle()).current_participants == 8


@pytest.mark.slow
async def test_same_user_concurrently_is_admitted_once(service):
    results = await asyncio.gather(
        *(service.place_bet(777) for _ in range(5)),
        return_exceptions=True,
    )

    placed = [r for r in results if not isinstance(r, Exception)]
    assert len(placed) == 1
    assert all(isinstance(r, AlreadyParticipatedError) for r in results if isinstance(r, Exception))


@pytest.mark.slow
async def test_cancel_racing_completion_leaves_one_outcome(service, ledger):
    await service.place_bet(101)
    await service.place_bet(102)
    raffle = await service.get_active_raffle()

    results = await asyncio.gather(
        service.place_bet(103),
        service.cancel_raffle(raffle.id),
        return_exceptions=True,
    )

    stored = await service.get_raffle(raffle.id)
    assert stored.status in (RaffleStatus.COMPLETED, RaffleStatus.CANCELLED)
    assert await ledger.sum_for_raffle(raffle.id) == 0
    win = await ledger.sum_for_raffle(raffle.id, [LedgerKind.WIN])
    refund = await ledger.sum_for_raffle(raffle.id, [LedgerKind.REFUND])
    assert not (win and refund)
    for r in results:
        if isinstance(r, Exception):
            assert isinstance(r, RaffleAlreadyTerminalError)
