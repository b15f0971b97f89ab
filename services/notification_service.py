"""Telegram notifications for finished raffles."""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional, TYPE_CHECKING

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from core import get_logger
from core.constants import NotificationDefaults, RaffleEventType
from services.events import RaffleEvent

if TYPE_CHECKING:
    from aiogram import Bot

logger = get_logger(__name__)


class NotificationService:
    """Notification sink that messages raffle participants through a bot."""

    def __init__(
        self,
        bot: Bot,
        webapp_url: Optional[str] = None,
        send_delay: float = NotificationDefaults.SEND_DELAY,
    ):
        """Initialize notification service.

        Args:
            bot: Telegram bot instance
            webapp_url: Game link shown under every message
            send_delay: Pause between messages to respect Telegram rate limits
        """
        self.bot = bot
        self.webapp_url = webapp_url or NotificationDefaults.WEBAPP_URL
        self.send_delay = send_delay

    async def publish(self, event: RaffleEvent) -> None:
        if event.type is RaffleEventType.COMPLETED:
            await self.notify_raffle_completion(event)
        elif event.type is RaffleEventType.CANCELLED:
            await self.notify_raffle_cancellation(event)
        else:
            raise ValueError(f"Unsupported event type: {event.type}")

    async def notify_raffle_completion(self, event: RaffleEvent) -> int:
        """Tell the winner they won and everyone else who did.

        Returns:
            Number of messages delivered
        """
        raffle = event.raffle
        winner = event.winner
        if winner is None:
            raise ValueError("Completion event without a winner")

        winner_message = (
            "🎉 <b>Congratulations!</b>\n\n"
            f"You won the raffle and received <b>{raffle.winner_amount} ⭐ Telegram Stars</b>!\n\n"
            "🎯 Want to try your luck again?"
        )
        loser_message = (
            "🎲 <b>Raffle Completed</b>\n\n"
            f"The winner was player <b>#{winner.user_id}</b>.\n"
            f"They won <b>{raffle.winner_amount} ⭐ Stars</b>!\n\n"
            "🎯 Better luck next time! Want to try again?"
        )

        delivered = 0
        if await self._send(winner.user_id, winner_message):
            delivered += 1
        others = [p.user_id for p in event.participants if p.user_id != winner.user_id]
        delivered += await self._send_many(others, loser_message)

        logger.info(
            f"Completion of raffle {raffle.id} announced to {delivered}/{len(event.participants)} players"
        )
        return delivered

    async def notify_raffle_cancellation(self, event: RaffleEvent) -> int:
        """Tell every participant the raffle was cancelled and refunded."""
        message = (
            "❌ <b>Raffle Cancelled</b>\n\n"
            f"The current raffle was cancelled: <i>{event.reason or 'no reason given'}</i>\n\n"
            "💰 Your Stars have been refunded automatically.\n\n"
            "🎮 A new raffle is now available!"
        )
        delivered = await self._send_many((p.user_id for p in event.participants), message)
        logger.info(
            f"Cancellation of raffle {event.raffle.id} announced to {delivered}/{len(event.participants)} players"
        )
        return delivered

    def _keyboard(self) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            inline_keyboard=[
                [InlineKeyboardButton(text=NotificationDefaults.PLAY_BUTTON_TEXT, url=f"{self.webapp_url}/game")]
            ]
        )

    async def _send_many(self, user_ids: Iterable[int], message: str) -> int:
        delivered = 0
        for user_id in user_ids:
            if await self._send(user_id, message):
                delivered += 1
            if self.send_delay:
                await asyncio.sleep(self.send_delay)
        return delivered

    async def _send(self, user_id: int, message: str) -> bool:
        try:
            await self.bot.send_message(
                user_id,
                message,
                parse_mode="HTML",
                reply_markup=self._keyboard(),
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to send notification to user {user_id}: {e}",
                exc_info=True,
                extra={"user_id": user_id}
            )
            return False
