"""
Booking confirmation.

``BookingService.confirm`` is the only place where seats are taken. It runs
under a per-vehicle lock so two chats confirming the same bus can never both
pass the capacity check against the same seat count.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import DeliveryFailure, InsufficientCapacity, SessionExpired, VehicleUnavailable
from .models import Booking, Session, Vehicle
from .notifier import Notifier
from .storage import BookingStore, SessionStore, VehicleStore
from .utils import KeyedLock

logger = logging.getLogger(__name__)


def confirmation_text(booking: Booking) -> str:
    return (
        "✅ Booking confirmed!\n"
        f"Booking ID: {booking.id}\n"
        f"Driver: {booking.driver.name} ({booking.driver.phone})\n"
        "We notified the admin."
    )


def admin_summary(booking: Booking) -> str:
    return "\n".join(
        [
            f"🚌 New booking: {booking.id}",
            f"User: {booking.user_name} (chat {booking.user_id})",
            f"Bus: {booking.vehicle_name} ({booking.vehicle_id})",
            f"Driver: {booking.driver.name} {booking.driver.phone}",
            f"Route: {booking.start} → {booking.end}",
            f"Time: {booking.time}",
            f"Pax: {booking.pax}",
            f"Both up+down: {'Yes' if booking.need_both else 'No'}",
            f"Created: {booking.created_at.isoformat()}",
        ]
    )


class BookingService:
    def __init__(
        self,
        vehicles: VehicleStore,
        bookings: BookingStore,
        sessions: SessionStore,
        notifier: Notifier,
        vehicle_locks: Optional[KeyedLock] = None,
    ) -> None:
        self.vehicles = vehicles
        self.bookings = bookings
        self.sessions = sessions
        self.notifier = notifier
        self._vehicle_locks = vehicle_locks if vehicle_locks is not None else KeyedLock()

    async def confirm(self, chat_id: int, session: Optional[Session], vehicle_id: str) -> Booking:
        """
        Book the session's query on ``vehicle_id``.

        Raises SessionExpired, VehicleUnavailable or InsufficientCapacity.
        On InsufficientCapacity the session is kept so another presented
        option can still be chosen.
        """
        query = session.data.to_query() if session else None
        if session is None or query is None:
            raise SessionExpired()

        async with self._vehicle_locks(vehicle_id):
            vehicle = self.vehicles.get(vehicle_id)
            if vehicle is None:
                raise VehicleUnavailable(vehicle_id=vehicle_id)
            if vehicle.capacity < query.pax:
                raise InsufficientCapacity(
                    vehicle_id=vehicle_id,
                    requested=query.pax,
                    available=vehicle.capacity,
                )

            booking = self._build_booking(chat_id, session, vehicle)
            self.bookings.append(booking)
            self.vehicles.decrement_capacity(vehicle_id, query.pax)
            self.sessions.delete(chat_id)

        logger.info(
            "Booking %s: chat %s took %s seat(s) on %s",
            booking.id,
            chat_id,
            booking.pax,
            vehicle_id,
        )
        await self._notify(booking)
        return booking

    def _build_booking(self, chat_id: int, session: Session, vehicle: Vehicle) -> Booking:
        data = session.data
        user_name = data.user_name or (session.user.display_name if session.user else "unknown")
        return Booking(
            user_id=chat_id,
            user_name=user_name,
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.name,
            driver=vehicle.driver.model_copy(),
            start=data.start,
            end=data.end,
            time=data.time,
            pax=data.pax,
            need_both=data.need_both,
        )

    async def _notify(self, booking: Booking) -> None:
        try:
            await self.notifier.send_text(booking.user_id, confirmation_text(booking))
        except DeliveryFailure as e:
            logger.warning("Booking %s saved but confirmation not delivered: %s", booking.id, e.message)
        await self.notifier.notify_admin(admin_summary(booking))


__all__ = ["BookingService", "admin_summary", "confirmation_text"]
