"""
Multi-step booking conversation.

Each chat walks through a fixed sequence of steps::

    idle -> awaiting_start -> awaiting_end -> awaiting_time -> awaiting_pax
         -> awaiting_both -> presenting_options -> confirming -> idle

Inbound messages and button presses are turned into an ``Event`` and looked
up in ``TRANSITIONS`` by ``(current step, event kind)``. Step handlers that
reject input raise ``InputRejected``; the session is then left untouched and
the user is re-prompted.

All events of one chat are processed one at a time under a per-chat lock.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .booking import BookingService
from .callbacks import CancelFlow, ConfirmBooking, SelectVehicle, decode_action
from .clock import is_valid_clock
from .errors import (
    DeliveryFailure,
    InputRejected,
    InsufficientCapacity,
    SessionExpired,
    VehicleUnavailable,
)
from .matcher import match
from .models import Session, Step, UserRef, Vehicle
from .notifier import Choice, Notifier
from .storage import SessionStore, VehicleStore
from .utils import KeyedLock

logger = logging.getLogger(__name__)


START_PHRASES = frozenset({"ser", "search", "book"})
CANCEL_PHRASE = "cancel"

START_PROMPT = "Where is your START location? (Type street / stop name)"
END_PROMPT = "Where is your END location? (Type street / stop name)"
TIME_PROMPT = "At what time do you need the bus? (HH:MM, 24h — e.g. 07:30)"
TIME_REPROMPT = "Please provide time in HH:MM format (e.g. 07:30)."
PAX_PROMPT = "How many passengers (pax)? Enter a number."
PAX_REPROMPT = "Please provide a valid number of passengers (e.g. 2)."
BOTH_PROMPT = "Do you need both up and down services? (yes/no)"
BOTH_REPROMPT = 'Reply "yes" or "no".'
SEARCHING = "Searching for matching buses…"
NO_MATCHES = (
    "No matching buses found for your request. You can try changing time, "
    'route or pax. Type "ser" to start again.'
)
CHOOSE_OPTION = 'Please choose one of the options above, or type "cancel".'
NOT_UNDERSTOOD = (
    "Sorry, I didn't understand that. Type \"help\" to see options, "
    'or "ser" to search for a bus.'
)
FLOW_CANCELLED = 'Flow cancelled. Type "ser" to search for services.'
BOOKING_CANCELLED = 'Booking cancelled. Type "ser" to start again.'
NO_SEATS = "Sorry — that bus no longer has enough seats. Try another option."

ACK_EXPIRED = 'Session expired. Start again with "ser".'
ACK_UNAVAILABLE = "Bus no longer available."
ACK_NOT_FOUND = "Selected bus not found."
ACK_NO_SEATS = "Not enough seats available."
ACK_CONFIRMED = "Booking confirmed."
ACK_CANCELLED = "Cancelled."
ACK_UNKNOWN = "Unknown action"

_YES = re.compile(r"^(y|yes)$", re.IGNORECASE)
_NO = re.compile(r"^(n|no)$", re.IGNORECASE)


class EventKind(str, Enum):
    BEGIN = "begin"
    TEXT = "text"
    CANCEL = "cancel"
    SELECT = "select"
    CONFIRM = "confirm"


@dataclass
class Event:
    kind: EventKind
    user: UserRef
    text: str = ""
    vehicle_id: Optional[str] = None
    from_button: bool = False


def format_vehicle(vehicle: Vehicle) -> str:
    return (
        f"{vehicle.name}\n"
        f"Route: {' → '.join(vehicle.route)}\n"
        f"Times: {', '.join(vehicle.times)}\n"
        f"Capacity left: {vehicle.capacity}\n"
        f"Driver: {vehicle.driver.name} ({vehicle.driver.phone})"
    )


def option_label(vehicle: Vehicle) -> str:
    return (
        f"{vehicle.name} — driver {vehicle.driver.name} ({vehicle.driver.phone})"
        f" — seats {vehicle.capacity}"
    )


_TEXT_STEPS = {
    Step.AWAITING_START: "_take_start",
    Step.AWAITING_END: "_take_end",
    Step.AWAITING_TIME: "_take_time",
    Step.AWAITING_PAX: "_take_pax",
    Step.AWAITING_BOTH: "_take_both",
    Step.PRESENTING_OPTIONS: "_await_choice",
    Step.CONFIRMING: "_await_choice",
}

# (step, event kind) -> handler method name.
# SELECT/CONFIRM in any step not listed here means the session is gone.
TRANSITIONS: Dict[Tuple[Step, EventKind], str] = {
    (Step.IDLE, EventKind.BEGIN): "_begin",
    (Step.IDLE, EventKind.TEXT): "_not_understood",
    **{(step, EventKind.TEXT): name for step, name in _TEXT_STEPS.items()},
    **{(step, EventKind.CANCEL): "_cancel" for step in Step},
    (Step.PRESENTING_OPTIONS, EventKind.SELECT): "_select",
    (Step.CONFIRMING, EventKind.SELECT): "_select",
    (Step.PRESENTING_OPTIONS, EventKind.CONFIRM): "_confirm",
    (Step.CONFIRMING, EventKind.CONFIRM): "_confirm",
}


class Conversation:
    def __init__(
        self,
        vehicles: VehicleStore,
        sessions: SessionStore,
        booking: BookingService,
        notifier: Notifier,
        chat_locks: Optional[KeyedLock] = None,
    ) -> None:
        self.vehicles = vehicles
        self.sessions = sessions
        self.booking = booking
        self.notifier = notifier
        self._chat_locks = chat_locks if chat_locks is not None else KeyedLock()

    # region entry points
    async def handle_text(self, user: UserRef, text: str) -> None:
        """Process one inbound text message from ``user``."""
        text = text.strip()
        async with self._chat_locks(user.id):
            session = self.sessions.get(user.id)
            step = session.step if session else Step.IDLE
            lc = text.lower()
            if lc == CANCEL_PHRASE:
                kind = EventKind.CANCEL
            elif step == Step.IDLE and lc in START_PHRASES:
                kind = EventKind.BEGIN
            else:
                kind = EventKind.TEXT
            await self._dispatch(step, Event(kind=kind, user=user, text=text), session)

    async def handle_callback(self, user: UserRef, payload: Optional[str]) -> Optional[str]:
        """Process one button press. Returns the text for the callback answer."""
        action = decode_action(payload)
        if action is None:
            return ACK_UNKNOWN

        if isinstance(action, SelectVehicle):
            event = Event(kind=EventKind.SELECT, user=user, vehicle_id=action.vehicle_id, from_button=True)
        elif isinstance(action, ConfirmBooking):
            event = Event(kind=EventKind.CONFIRM, user=user, vehicle_id=action.vehicle_id, from_button=True)
        else:
            event = Event(kind=EventKind.CANCEL, user=user, from_button=True)

        async with self._chat_locks(user.id):
            session = self.sessions.get(user.id)
            step = session.step if session else Step.IDLE
            return await self._dispatch(step, event, session)

    # endregion

    async def _dispatch(self, step: Step, event: Event, session: Optional[Session]) -> Optional[str]:
        name = TRANSITIONS.get((step, event.kind))
        if name is None:
            logger.info("Chat %s: %s in step %s, session expired", event.user.id, event.kind.value, step.value)
            return ACK_EXPIRED
        handler = getattr(self, name)
        try:
            return await handler(event, session)
        except InputRejected as e:
            await self._reply(event.user.id, e.message)
            return None

    async def _reply(self, chat_id: int, text: str, choices: Optional[list[Choice]] = None) -> None:
        try:
            if choices:
                await self.notifier.send_choices(chat_id, text, choices)
            else:
                await self.notifier.send_text(chat_id, text)
        except DeliveryFailure as e:
            logger.warning("Reply to chat %s not delivered: %s", chat_id, e.message)

    def _store(self, event: Event, session: Session, step: Step) -> None:
        session.step = step
        self.sessions.put(event.user.id, session)

    # region idle
    async def _begin(self, event: Event, session: Optional[Session]) -> None:
        self._store(event, Session(user=event.user), Step.AWAITING_START)
        await self._reply(event.user.id, START_PROMPT)

    async def _not_understood(self, event: Event, session: Optional[Session]) -> None:
        await self._reply(event.user.id, NOT_UNDERSTOOD)

    async def _cancel(self, event: Event, session: Optional[Session]) -> Optional[str]:
        self.sessions.delete(event.user.id)
        if event.from_button:
            await self._reply(event.user.id, BOOKING_CANCELLED)
            return ACK_CANCELLED
        await self._reply(event.user.id, FLOW_CANCELLED)
        return None

    # endregion

    # region query steps
    async def _take_start(self, event: Event, session: Session) -> None:
        if not event.text:
            raise InputRejected(START_PROMPT)
        session.data.start = event.text
        self._store(event, session, Step.AWAITING_END)
        await self._reply(event.user.id, END_PROMPT)

    async def _take_end(self, event: Event, session: Session) -> None:
        if not event.text:
            raise InputRejected(END_PROMPT)
        session.data.end = event.text
        self._store(event, session, Step.AWAITING_TIME)
        await self._reply(event.user.id, TIME_PROMPT)

    async def _take_time(self, event: Event, session: Session) -> None:
        if not is_valid_clock(event.text):
            raise InputRejected(TIME_REPROMPT)
        session.data.time = event.text
        self._store(event, session, Step.AWAITING_PAX)
        await self._reply(event.user.id, PAX_PROMPT)

    async def _take_pax(self, event: Event, session: Session) -> None:
        digits = re.sub(r"\D", "", event.text)
        pax = int(digits) if digits else 0
        if pax <= 0:
            raise InputRejected(PAX_REPROMPT)
        session.data.pax = pax
        self._store(event, session, Step.AWAITING_BOTH)
        await self._reply(event.user.id, BOTH_PROMPT)

    async def _take_both(self, event: Event, session: Session) -> None:
        yes = bool(_YES.match(event.text))
        if not yes and not _NO.match(event.text):
            raise InputRejected(BOTH_REPROMPT)
        session.data.need_both = yes
        session.data.user_name = event.user.display_name
        query = session.data.to_query()
        self._store(event, session, Step.PRESENTING_OPTIONS)
        await self._reply(event.user.id, SEARCHING)

        matches = match(query, self.vehicles.all())
        if not matches:
            self.sessions.delete(event.user.id)
            await self._reply(event.user.id, NO_MATCHES)
            return

        choices = [Choice(option_label(v), SelectVehicle(vehicle_id=v.id).pack()) for v in matches]
        choices.append(Choice("Cancel", CancelFlow().pack()))
        logger.info("Chat %s: %s matching bus(es) for %s", event.user.id, len(matches), query)
        await self._reply(event.user.id, f"Found {len(matches)} option(s). Please choose one:", choices)

    async def _await_choice(self, event: Event, session: Session) -> None:
        await self._reply(event.user.id, CHOOSE_OPTION)

    # endregion

    # region buttons
    async def _select(self, event: Event, session: Session) -> Optional[str]:
        if session.data.to_query() is None:
            return ACK_EXPIRED
        vehicle = self.vehicles.get(event.vehicle_id or "")
        if vehicle is None:
            return ACK_UNAVAILABLE

        session.selected_vehicle_id = vehicle.id
        self._store(event, session, Step.CONFIRMING)

        data = session.data
        summary = "\n".join(
            [
                "You selected:",
                format_vehicle(vehicle),
                "",
                f"Passengers: {data.pax}",
                f"Journey: {data.start} → {data.end}",
                f"Requested time: {data.time}",
                f"Needs both up+down: {'Yes' if data.need_both else 'No'}",
            ]
        )
        await self._reply(
            event.user.id,
            summary,
            [
                Choice("Confirm booking", ConfirmBooking(vehicle_id=vehicle.id).pack()),
                Choice("Cancel", CancelFlow().pack()),
            ],
        )
        return None

    async def _confirm(self, event: Event, session: Session) -> str:
        try:
            await self.booking.confirm(event.user.id, session, event.vehicle_id or "")
        except SessionExpired:
            return ACK_EXPIRED
        except VehicleUnavailable:
            return ACK_NOT_FOUND
        except InsufficientCapacity as e:
            logger.info(
                "Chat %s: %s has %s seat(s), %s requested",
                event.user.id,
                e.vehicle_id,
                e.available,
                e.requested,
            )
            await self._reply(event.user.id, NO_SEATS)
            return ACK_NO_SEATS
        return ACK_CONFIRMED

    # endregion


__all__ = ["Conversation", "Event", "EventKind", "TRANSITIONS", "format_vehicle", "option_label"]
