"""
Domain errors raised by the booking flow and the admin surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class BookingError(Exception):
    """Base class for recoverable booking-flow errors."""


@dataclass
class InputRejected(BookingError):
    """Malformed input for the current conversation step."""

    message: str = "Input rejected"


@dataclass
class SessionExpired(BookingError):
    """Selection or confirmation arrived without a completed session."""

    message: str = "Session expired"


@dataclass
class VehicleUnavailable(BookingError):
    """Vehicle disappeared from the roster between presentation and action."""

    vehicle_id: str = ""
    message: str = "Vehicle no longer available"


@dataclass
class InsufficientCapacity(BookingError):
    """Not enough seats left at confirmation time."""

    vehicle_id: str = ""
    requested: int = 0
    available: int = 0
    message: str = "Not enough seats available"


@dataclass
class DuplicateVehicle(BookingError):
    vehicle_id: str = ""
    message: str = "Vehicle id already exists"


@dataclass
class DeliveryFailure(Exception):
    """Telegram refused or failed to deliver a message."""

    chat_id: Optional[int] = None
    message: str = "Delivery failed"


@dataclass
class Unauthorized(Exception):
    message: str = "unauthorized"


__all__ = [
    "BookingError",
    "InputRejected",
    "SessionExpired",
    "VehicleUnavailable",
    "InsufficientCapacity",
    "DuplicateVehicle",
    "DeliveryFailure",
    "Unauthorized",
]
