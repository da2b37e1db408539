"""
Pydantic models for the bus booking domain.

Field names are snake_case in Python and camelCase on disk / over HTTP,
so JSON written by earlier versions of the bot still loads. Bookings also
accept the older chatId / busId / busName keys.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Service(str, Enum):
    UP = "up"
    DOWN = "down"
    BOTH = "both"


class Driver(_Model):
    name: str
    phone: str = ""


class Vehicle(_Model):
    """Single scheduled bus in the roster."""

    id: str = Field(min_length=1)
    name: str
    route: List[str] = Field(min_length=2)
    times: List[str] = Field(default_factory=list)
    capacity: int = Field(ge=0)
    service: Service = Service.BOTH
    driver: Driver

    @field_validator("id")
    @classmethod
    def id_fits_callback(cls, value: str) -> str:
        # ids travel inside "select:<id>" callback payloads
        if ":" in value:
            raise ValueError("vehicle id must not contain ':'")
        return value


class Query(_Model):
    """Completed search request."""

    start: str
    end: str
    time: str
    pax: int = Field(ge=1)
    need_both: bool = False


class SessionData(_Model):
    """Partial query collected step by step."""

    start: Optional[str] = None
    end: Optional[str] = None
    time: Optional[str] = None
    pax: Optional[int] = None
    need_both: Optional[bool] = None
    user_name: Optional[str] = None

    def to_query(self) -> Optional[Query]:
        if None in (self.start, self.end, self.time, self.pax, self.need_both):
            return None
        return Query(
            start=self.start,
            end=self.end,
            time=self.time,
            pax=self.pax,
            need_both=self.need_both,
        )


class UserRef(_Model):
    """Snapshot of the Telegram user behind a chat."""

    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.username or self.first_name or "user"


class Step(str, Enum):
    IDLE = "idle"
    AWAITING_START = "awaiting_start"
    AWAITING_END = "awaiting_end"
    AWAITING_TIME = "awaiting_time"
    AWAITING_PAX = "awaiting_pax"
    AWAITING_BOTH = "awaiting_both"
    PRESENTING_OPTIONS = "presenting_options"
    CONFIRMING = "confirming"


class Session(_Model):
    step: Step = Step.IDLE
    data: SessionData = Field(default_factory=SessionData)
    user: Optional[UserRef] = None
    selected_vehicle_id: Optional[str] = None


def new_booking_id() -> str:
    return f"bk-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class Booking(_Model):
    """Confirmed reservation. Never modified after creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_booking_id)
    user_id: int = Field(
        validation_alias=AliasChoices("userId", "chatId", "user_id"),
        serialization_alias="userId",
    )
    user_name: str = "unknown"
    vehicle_id: str = Field(
        validation_alias=AliasChoices("vehicleId", "busId", "vehicle_id"),
        serialization_alias="vehicleId",
    )
    vehicle_name: str = Field(
        validation_alias=AliasChoices("vehicleName", "busName", "vehicle_name"),
        serialization_alias="vehicleName",
    )
    driver: Driver
    start: str
    end: str
    time: str
    pax: int
    need_both: bool
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "Booking",
    "Driver",
    "Query",
    "Service",
    "Session",
    "SessionData",
    "Step",
    "UserRef",
    "Vehicle",
]
