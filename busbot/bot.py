"""
Telegram bot entrypoint built with aiogram 3.

- /start subscribes the chat to broadcasts
- help, status, /report
- "ser" / "search" / "book" starts the booking conversation
- inline buttons drive bus selection and confirmation
- the admin HTTP API runs in the same event loop
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass

from aiogram import Bot, Dispatcher, F, Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message
from aiohttp import web
from pydantic import ValidationError

from .admin_api import create_admin_app
from .booking import BookingService
from .config import Settings, get_settings
from .conversation import Conversation
from .models import UserRef
from .notifier import TelegramNotifier
from .storage import BookingStore, SessionStore, SubscriberStore, VehicleStore
from .utils import KeyedLock, setup_logging


logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join(
    [
        "Commands:",
        "/start - subscribe",
        "help - show commands",
        "status - app status",
        "ser - find bus service and book",
        "cancel - cancel current flow",
        "/report <text> - send report to admins",
    ]
)


@dataclass
class App:
    """Everything the handlers need, wired once at startup."""

    settings: Settings
    vehicles: VehicleStore
    bookings: BookingStore
    sessions: SessionStore
    subscribers: SubscriberStore
    notifier: TelegramNotifier
    conversation: Conversation


def build_app(settings: Settings, bot: Bot) -> App:
    storage = settings.storage
    vehicles = VehicleStore(storage.vehicles_path)
    bookings = BookingStore(storage.bookings_path)
    sessions = SessionStore(storage.sessions_path)
    subscribers = SubscriberStore(storage.subscribers_path)
    notifier = TelegramNotifier(
        bot,
        admin_chat_id=settings.bot.admin_chat_id,
        batch_size=settings.broadcast.batch_size,
        batch_delay=settings.broadcast.batch_delay,
    )
    booking = BookingService(vehicles, bookings, sessions, notifier, vehicle_locks=KeyedLock())
    conversation = Conversation(vehicles, sessions, booking, notifier, chat_locks=KeyedLock())
    return App(settings, vehicles, bookings, sessions, subscribers, notifier, conversation)


def _user_ref(chat_id: int, message_or_callback: Message | CallbackQuery) -> UserRef:
    user = message_or_callback.from_user
    return UserRef(
        id=chat_id,
        username=user.username if user else None,
        first_name=user.first_name if user else None,
    )


def create_router(app: App) -> Router:
    router = Router(name="booking")

    @router.message(CommandStart())
    async def cmd_start(message: Message) -> None:
        app.subscribers.add(message.chat.id)
        await message.answer(
            "Welcome! You're now subscribed to Bus Fare messages service. "
            'Send "help" for commands.'
        )

    @router.message(Command("report"))
    async def cmd_report(message: Message, command: CommandObject) -> None:
        user = message.from_user
        if user and user.username:
            who = f"@{user.username}"
        else:
            who = (user.first_name if user else None) or "user"
        payload = (
            f"📣 Report from {who} (id:{message.chat.id}):\n"
            f"{(command.args or '').strip() or '(no text)'}"
        )
        if await app.notifier.notify_admin(payload):
            await message.answer("Thanks — your report was forwarded to the admins.")
        elif app.settings.bot.admin_chat_id is None:
            await message.answer("Admin chat not configured.")
        else:
            await message.answer("Could not reach the admins right now, please try later.")

    @router.message(F.text.regexp(r"(?i)^\s*help\s*$"))
    async def on_help(message: Message) -> None:
        await message.answer(HELP_TEXT)

    @router.message(F.text.regexp(r"(?i)^\s*status\s*$"))
    async def on_status(message: Message) -> None:
        await message.answer("All systems operational ✅")

    @router.message(F.text)
    async def on_text(message: Message) -> None:
        await app.conversation.handle_text(_user_ref(message.chat.id, message), message.text or "")

    @router.callback_query()
    async def on_callback(callback: CallbackQuery) -> None:
        if callback.message is None:
            await callback.answer("Message is too old, start again.")
            return
        chat_id = callback.message.chat.id
        ack = await app.conversation.handle_callback(_user_ref(chat_id, callback), callback.data)
        await callback.answer(ack)

    return router


def main() -> None:
    """Entry point for running the bot."""
    try:
        settings = get_settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Invalid configuration (is BOT_TOKEN set?): %s", e)
        sys.exit(1)
    setup_logging(settings.logging)

    asyncio.run(_run(settings))


async def _run(settings: Settings) -> None:
    bot = Bot(settings.bot.token)
    app = build_app(settings, bot)

    dp = Dispatcher()
    dp.include_router(create_router(app))

    admin_app = create_admin_app(
        app.vehicles,
        app.subscribers,
        app.notifier,
        settings.admin_api.token,
    )
    runner = web.AppRunner(admin_app)
    await runner.setup()
    site = web.TCPSite(runner, settings.admin_api.host, settings.admin_api.port)
    await site.start()
    logger.info("Admin API listening on port %s", settings.admin_api.port)

    try:
        logger.info("Starting polling")
        # aiogram logs polling errors and keeps retrying with backoff
        await dp.start_polling(bot)
    finally:
        logger.info("Shutting down...")
        await runner.cleanup()
        await bot.session.close()


if __name__ == "__main__":
    main()
