"""
Outbound messaging on top of aiogram's Bot.

Everything the booking flow sends goes through a ``Notifier``: plain text,
text with inline choices, the best-effort admin channel and batched
broadcasts to all subscribers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Union

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from .errors import DeliveryFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Choice:
    """One inline button: visible label plus callback payload."""

    label: str
    payload: str


@dataclass(frozen=True)
class DeliveryResult:
    chat_id: int
    status: str  # "ok" | "error"
    message: Optional[str] = None

    def as_dict(self) -> dict:
        result = {"id": self.chat_id, "status": self.status}
        if self.message is not None:
            result["message"] = self.message
        return result


class Notifier(Protocol):
    async def send_text(self, chat_id: Union[int, str], text: str) -> None: ...

    async def send_choices(self, chat_id: int, text: str, choices: Sequence[Choice]) -> None: ...

    async def notify_admin(self, text: str) -> bool: ...

    async def broadcast(self, chat_ids: Sequence[int], text: str) -> List[DeliveryResult]: ...


def choices_keyboard(choices: Sequence[Choice]) -> InlineKeyboardMarkup:
    """One button per row, in the given order."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=choice.label, callback_data=choice.payload)]
            for choice in choices
        ]
    )


class TelegramNotifier:
    def __init__(
        self,
        bot: Bot,
        admin_chat_id: Optional[Union[int, str]] = None,
        batch_size: int = 20,
        batch_delay: float = 1.0,
    ) -> None:
        self.bot = bot
        self.admin_chat_id = admin_chat_id
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay

    async def send_text(self, chat_id: Union[int, str], text: str) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
        except TelegramAPIError as e:
            raise DeliveryFailure(chat_id=chat_id, message=str(e)) from e

    async def send_choices(self, chat_id: int, text: str, choices: Sequence[Choice]) -> None:
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_markup=choices_keyboard(choices),
            )
        except TelegramAPIError as e:
            raise DeliveryFailure(chat_id=chat_id, message=str(e)) from e

    async def notify_admin(self, text: str) -> bool:
        """Fire-and-forget message to the admin chat. Failures are only logged."""
        if self.admin_chat_id is None:
            logger.debug("Admin chat not configured, skipping admin notification")
            return False
        try:
            await self.send_text(self.admin_chat_id, text)
        except DeliveryFailure as e:
            logger.warning("Failed to notify admin: %s", e.message)
            return False
        return True

    async def _deliver(self, chat_id: int, text: str) -> DeliveryResult:
        try:
            await self.send_text(chat_id, text)
        except DeliveryFailure as e:
            return DeliveryResult(chat_id=chat_id, status="error", message=e.message)
        return DeliveryResult(chat_id=chat_id, status="ok")

    async def broadcast(self, chat_ids: Sequence[int], text: str) -> List[DeliveryResult]:
        """
        Send ``text`` to every chat in batches of ``batch_size``.

        Chats inside a batch are sent concurrently; batches are separated by
        ``batch_delay`` seconds to stay under Telegram's rate limits. A
        failed recipient is reported in the result and does not stop others.
        """
        targets = list(dict.fromkeys(chat_ids))
        results: List[DeliveryResult] = []
        for i in range(0, len(targets), self.batch_size):
            batch = targets[i : i + self.batch_size]
            results.extend(
                await asyncio.gather(*(self._deliver(chat_id, text) for chat_id in batch))
            )
            if i + self.batch_size < len(targets):
                await asyncio.sleep(self.batch_delay)
        failed = sum(1 for r in results if r.status != "ok")
        logger.info("Broadcast finished: %s sent, %s failed", len(results) - failed, failed)
        return results


__all__ = ["Choice", "DeliveryResult", "Notifier", "TelegramNotifier", "choices_keyboard"]
