"""
Shared test fixtures.

Stores run in memory (``path=None``) unless a test needs a file, and the
Telegram side is replaced by ``RecordingNotifier`` which keeps everything
it was asked to send.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

import pytest

from busbot.booking import BookingService
from busbot.conversation import Conversation
from busbot.errors import DeliveryFailure
from busbot.models import Driver, Service, UserRef, Vehicle
from busbot.notifier import Choice, DeliveryResult
from busbot.storage import BookingStore, SessionStore, SubscriberStore, VehicleStore


class RecordingNotifier:
    """Notifier stub: records sends, admin attempts and broadcasts."""

    def __init__(self, admin_configured: bool = True, failing_chats: Sequence[int] = ()) -> None:
        self.admin_configured = admin_configured
        self.failing_chats = set(failing_chats)
        self.texts: List[Tuple[int, str]] = []
        self.choices: List[Tuple[int, str, List[Choice]]] = []
        self.admin_attempts: List[str] = []
        self.broadcasts: List[Tuple[List[int], str]] = []

    async def send_text(self, chat_id: int, text: str) -> None:
        # yield to the loop like a real network call would
        await asyncio.sleep(0)
        if chat_id in self.failing_chats:
            raise DeliveryFailure(chat_id=chat_id, message="blocked by user")
        self.texts.append((chat_id, text))

    async def send_choices(self, chat_id: int, text: str, choices: Sequence[Choice]) -> None:
        await asyncio.sleep(0)
        if chat_id in self.failing_chats:
            raise DeliveryFailure(chat_id=chat_id, message="blocked by user")
        self.choices.append((chat_id, text, list(choices)))

    async def notify_admin(self, text: str) -> bool:
        self.admin_attempts.append(text)
        return self.admin_configured

    async def broadcast(self, chat_ids: Sequence[int], text: str) -> List[DeliveryResult]:
        self.broadcasts.append((list(chat_ids), text))
        return [DeliveryResult(chat_id=c, status="ok") for c in chat_ids]

    def texts_for(self, chat_id: int) -> List[str]:
        return [text for cid, text in self.texts if cid == chat_id]

    def last_choices(self, chat_id: int) -> Optional[List[Choice]]:
        for cid, _, choices in reversed(self.choices):
            if cid == chat_id:
                return choices
        return None


def make_vehicle(
    vehicle_id: str = "bus-1",
    route: Optional[List[str]] = None,
    times: Optional[List[str]] = None,
    capacity: int = 5,
    service: Service = Service.BOTH,
    name: Optional[str] = None,
) -> Vehicle:
    return Vehicle(
        id=vehicle_id,
        name=name or f"Bus {vehicle_id}",
        route=route or ["Station A", "Station B"],
        times=times or ["07:45"],
        capacity=capacity,
        service=service,
        driver=Driver(name="Kofi", phone="+233200000000"),
    )


@pytest.fixture
def vehicle() -> Vehicle:
    """Standard bus: Station A -> Station B at 07:45, 5 seats, both directions."""
    return make_vehicle()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def vehicles(vehicle: Vehicle) -> VehicleStore:
    return VehicleStore(vehicles=[vehicle])


@pytest.fixture
def bookings() -> BookingStore:
    return BookingStore()


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def subscribers() -> SubscriberStore:
    return SubscriberStore()


@pytest.fixture
def booking_service(
    vehicles: VehicleStore,
    bookings: BookingStore,
    sessions: SessionStore,
    notifier: RecordingNotifier,
) -> BookingService:
    return BookingService(vehicles, bookings, sessions, notifier)


@pytest.fixture
def conversation(
    vehicles: VehicleStore,
    sessions: SessionStore,
    booking_service: BookingService,
    notifier: RecordingNotifier,
) -> Conversation:
    return Conversation(vehicles, sessions, booking_service, notifier)


@pytest.fixture
def user() -> UserRef:
    return UserRef(id=1001, username="ama", first_name="Ama")


@pytest.fixture
def other_user() -> UserRef:
    return UserRef(id=1002, username=None, first_name="Yaw")
