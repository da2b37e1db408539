"""
Print the chat id of the first message the bot receives, then exit.

Handy when filling in ADMIN_CHAT_ID: start this, send any message to the bot
(or post in the admin group it was added to) and copy the printed id.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.types import Message
from pydantic import ValidationError

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def describe_chat(message: Message) -> str:
    user = message.from_user
    sender = (user.username or user.first_name) if user else None
    return f"CHAT ID: {message.chat.id} TYPE: {message.chat.type} FROM: {sender or 'unknown'}"


def create_dispatcher() -> Dispatcher:
    dp = Dispatcher()

    @dp.message()
    async def on_first_message(message: Message, dispatcher: Dispatcher) -> None:
        print(describe_chat(message), flush=True)
        await dispatcher.stop_polling()

    return dp


async def _run(settings: Settings) -> None:
    bot = Bot(settings.bot.token)
    try:
        logger.info("Waiting for a message... send anything to the bot now")
        await create_dispatcher().start_polling(bot)
    finally:
        await bot.session.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error("Invalid configuration (is BOT_TOKEN set?): %s", e)
        sys.exit(1)
    asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
