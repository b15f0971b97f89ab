"""Command line entry point for the raffle engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Callable

from config import load_config
from core.app_initializer import ApplicationInitializer
from core.constants import HistoryDefaults, RaffleDefaults
from core.exceptions import ApplicationError
from core.logger import setup_logger
from services.raffle_service import RaffleService


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def show_status(service: RaffleService, args: argparse.Namespace) -> int:
    raffle = await service.get_current_raffle()
    _print(raffle.to_dict())
    return 0


async def place_bet(service: RaffleService, args: argparse.Namespace) -> int:
    result = await service.place_bet(args.user_id, args.raffle_id)
    _print(result.to_dict())
    return 0


async def cancel_raffle(service: RaffleService, args: argparse.Namespace) -> int:
    raffle_id = args.raffle_id
    if not raffle_id:
        active = await service.get_active_raffle()
        if active is None:
            print("No active raffle")
            return 1
        raffle_id = active.id
    refunded = await service.cancel_raffle(raffle_id, args.reason)
    _print({"raffle_id": raffle_id, "refunded": [p.to_dict() for p in refunded]})
    return 0


async def list_participants(service: RaffleService, args: argparse.Namespace) -> int:
    participants = await service.get_participants(args.raffle_id)
    _print([p.to_dict() for p in participants])
    return 0


async def show_history(service: RaffleService, args: argparse.Namespace) -> int:
    if args.user_id:
        records = await service.get_user_history(args.user_id, args.limit, args.offset)
        _print([
            {**r.raffle.to_dict(), "stake": r.stake, "is_winner": r.is_winner}
            for r in records
        ])
    else:
        raffles = await service.get_history(args.limit, args.offset)
        _print([r.to_dict() for r in raffles])
    return 0


async def show_stats(service: RaffleService, args: argparse.Namespace) -> int:
    _print(await service.get_aggregate_stats())
    return 0


async def verify_raffle(service: RaffleService, args: argparse.Namespace) -> int:
    valid = await service.verify_raffle(args.raffle_id)
    _print({"raffle_id": args.raffle_id, "verified": valid})
    return 0 if valid else 1


async def manage_settings(service: RaffleService, args: argparse.Namespace) -> int:
    settings = await service.get_current_settings()
    updates = (args.participants, args.bet, args.winner_percent)
    if any(value is not None for value in updates):
        # Flags left out keep their current value
        if settings is None and None in updates:
            print("No settings configured; pass --participants, --bet and --winner-percent")
            return 1
        participants = args.participants if args.participants is not None else settings.participants_limit
        bet = args.bet if args.bet is not None else settings.bet_amount
        winner = args.winner_percent if args.winner_percent is not None else settings.winner_percentage
        settings = await service.update_settings(participants, bet, winner, 100 - winner)
    if settings is None:
        print("No settings configured")
        return 1
    _print({
        "participants_limit": settings.participants_limit,
        "bet_amount": settings.bet_amount,
        "winner_percentage": settings.winner_percentage,
        "organizer_percentage": settings.organizer_percentage,
    })
    return 0


async def health(service: RaffleService, args: argparse.Namespace) -> int:
    report = await service.health_check()
    _print(report)
    return 0 if report["status"] == "healthy" else 1


async def run(func: Callable[[RaffleService, argparse.Namespace], Awaitable[int]], args) -> int:
    app = ApplicationInitializer()
    try:
        service = await app.initialize()
        return await func(service, args)
    finally:
        await app.cleanup()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Raffle Management Tool")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    status_parser = subparsers.add_parser("status", help="Show the current raffle")
    status_parser.set_defaults(func=show_status)

    bet_parser = subparsers.add_parser("bet", help="Place a bet for a user")
    bet_parser.add_argument("user_id", type=int, help="Telegram user id")
    bet_parser.add_argument("--raffle-id", default=None, help="Target a specific raffle")
    bet_parser.set_defaults(func=place_bet)

    cancel_parser = subparsers.add_parser("cancel", help="Cancel a raffle and refund all stakes")
    cancel_parser.add_argument("--raffle-id", default=None, help="Raffle to cancel, the active one by default")
    cancel_parser.add_argument("--reason", default=RaffleDefaults.CANCEL_REASON, help="Reason shown to players")
    cancel_parser.set_defaults(func=cancel_raffle)

    participants_parser = subparsers.add_parser("participants", help="List participants of a raffle")
    participants_parser.add_argument("raffle_id")
    participants_parser.set_defaults(func=list_participants)

    history_parser = subparsers.add_parser("history", help="List finished raffles")
    history_parser.add_argument("--user-id", type=int, default=None, help="Only raffles of this user")
    history_parser.add_argument("--limit", type=int, default=HistoryDefaults.LIMIT)
    history_parser.add_argument("--offset", type=int, default=0)
    history_parser.set_defaults(func=show_history)

    stats_parser = subparsers.add_parser("stats", help="Show aggregate statistics")
    stats_parser.set_defaults(func=show_stats)

    verify_parser = subparsers.add_parser("verify", help="Replay the draw of a completed raffle")
    verify_parser.add_argument("raffle_id")
    verify_parser.set_defaults(func=verify_raffle)

    settings_parser = subparsers.add_parser("settings", help="Show or update raffle settings")
    settings_parser.add_argument("--participants", type=int, default=None, help="Participants per raffle")
    settings_parser.add_argument("--bet", type=int, default=None, help="Bet amount in stars")
    settings_parser.add_argument("--winner-percent", type=int, default=None, help="Winner share of the pot")
    settings_parser.set_defaults(func=manage_settings)

    health_parser = subparsers.add_parser("health", help="Run a health check")
    health_parser.set_defaults(func=health)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    config = load_config()
    setup_logger(level=config.log_level, log_file=config.log_file, colored=True)

    try:
        return asyncio.run(run(args.func, args))
    except ApplicationError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
