"""
Inline-button payloads.

Buttons carry ``select:<vehicle id>``, ``confirm:<vehicle id>`` or
``cancel``. They are decoded once, at the transport boundary, into one of
the CallbackData classes below.
"""

from __future__ import annotations

from typing import Optional, Union

from aiogram.filters.callback_data import CallbackData


class SelectVehicle(CallbackData, prefix="select"):
    vehicle_id: str


class ConfirmBooking(CallbackData, prefix="confirm"):
    vehicle_id: str


class CancelFlow(CallbackData, prefix="cancel"):
    pass


BookingAction = Union[SelectVehicle, ConfirmBooking, CancelFlow]

_ACTIONS = (SelectVehicle, ConfirmBooking, CancelFlow)


def decode_action(payload: Optional[str]) -> Optional[BookingAction]:
    """Turn raw callback data into an action, or ``None`` if unrecognised."""
    if not payload:
        return None
    prefix = payload.split(":", 1)[0]
    for action_cls in _ACTIONS:
        if action_cls.__prefix__ != prefix:
            continue
        try:
            return action_cls.unpack(payload)
        except (TypeError, ValueError):
            return None
    return None


__all__ = ["BookingAction", "CancelFlow", "ConfirmBooking", "SelectVehicle", "decode_action"]
