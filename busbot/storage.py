"""
JSON-file record stores: vehicles, bookings, sessions, subscribers.

Each store loads its whole file at startup and rewrites it on every
mutation. A missing or corrupt file falls back to an empty store so a bad
file never prevents the bot from starting. Passing ``path=None`` keeps a
store purely in memory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from .errors import DuplicateVehicle, InsufficientCapacity, VehicleUnavailable
from .models import Booking, Session, Vehicle

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Load-all / overwrite-all access to one JSON file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path

    def _read(self, fallback: Any) -> Any:
        if self.path is None or not self.path.exists():
            return fallback
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s, starting empty: %s", self.path, e)
            return fallback

    def _write(self, data: Any) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)


class VehicleStore(JsonFileStore):
    """The roster. Sole owner of Vehicle records and their capacity."""

    def __init__(self, path: Optional[Path] = None, vehicles: Optional[List[Vehicle]] = None) -> None:
        super().__init__(path)
        # records that fail validation are kept as-is and written back untouched
        self._unreadable: List[Any] = []
        if vehicles is not None:
            self._vehicles = [v.model_copy(deep=True) for v in vehicles]
        else:
            self._vehicles = self._load()

    def _load(self) -> List[Vehicle]:
        raw = self._read([])
        if not isinstance(raw, list):
            logger.warning("Roster file %s is not a list, ignoring it", self.path)
            return []
        vehicles: List[Vehicle] = []
        for item in raw:
            try:
                vehicles.append(Vehicle.model_validate(item))
            except ValidationError as e:
                logger.warning("Ignoring invalid vehicle record %r: %s", item, e)
                self._unreadable.append(item)
        logger.info("Loaded %s vehicles", len(vehicles))
        return vehicles

    def save(self) -> None:
        self._write(
            [v.model_dump(mode="json", by_alias=True) for v in self._vehicles] + self._unreadable
        )

    def all(self) -> List[Vehicle]:
        """Snapshot copy of the roster, in roster order."""
        return [v.model_copy(deep=True) for v in self._vehicles]

    def get(self, vehicle_id: str) -> Optional[Vehicle]:
        for vehicle in self._vehicles:
            if vehicle.id == vehicle_id:
                return vehicle.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        return len(self._vehicles)

    def add(self, vehicle: Vehicle) -> Vehicle:
        if any(v.id == vehicle.id for v in self._vehicles):
            raise DuplicateVehicle(vehicle_id=vehicle.id)
        self._vehicles.append(vehicle.model_copy(deep=True))
        self.save()
        logger.info("Added vehicle %s (%s)", vehicle.id, vehicle.name)
        return vehicle

    def decrement_capacity(self, vehicle_id: str, seats: int) -> Vehicle:
        """Take ``seats`` off a vehicle and persist. Capacity never goes below zero."""
        for vehicle in self._vehicles:
            if vehicle.id != vehicle_id:
                continue
            if vehicle.capacity < seats:
                raise InsufficientCapacity(
                    vehicle_id=vehicle_id,
                    requested=seats,
                    available=vehicle.capacity,
                )
            vehicle.capacity -= seats
            self.save()
            return vehicle.model_copy(deep=True)
        raise VehicleUnavailable(vehicle_id=vehicle_id)


class BookingStore(JsonFileStore):
    """
    Append-only booking log.

    Records already on disk are written back exactly as they were read,
    including ones this version cannot parse.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        super().__init__(path)
        raw = self._read([])
        self._records: List[Any] = list(raw) if isinstance(raw, list) else []
        self._bookings: List[Booking] = []
        for item in self._records:
            try:
                self._bookings.append(Booking.model_validate(item))
            except ValidationError as e:
                logger.warning("Keeping unreadable booking record as-is: %s", e)

    def append(self, booking: Booking) -> None:
        self._records.append(booking.model_dump(mode="json", by_alias=True))
        self._bookings.append(booking)
        self._write(self._records)

    def all(self) -> List[Booking]:
        return list(self._bookings)

    def __len__(self) -> int:
        return len(self._bookings)


class SessionStore(JsonFileStore):
    """Per-chat conversation sessions, keyed by chat id."""

    def __init__(self, path: Optional[Path] = None) -> None:
        super().__init__(path)
        raw = self._read({})
        self._sessions: Dict[int, Session] = {}
        for key, item in (raw.items() if isinstance(raw, dict) else []):
            try:
                self._sessions[int(key)] = Session.model_validate(item)
            except (ValueError, ValidationError) as e:
                logger.warning("Dropping unreadable session for %s: %s", key, e)

    def _save(self) -> None:
        self._write(
            {
                str(chat_id): s.model_dump(mode="json", by_alias=True)
                for chat_id, s in self._sessions.items()
            }
        )

    def get(self, chat_id: int) -> Optional[Session]:
        session = self._sessions.get(chat_id)
        return session.model_copy(deep=True) if session else None

    def put(self, chat_id: int, session: Session) -> None:
        self._sessions[chat_id] = session.model_copy(deep=True)
        self._save()

    def delete(self, chat_id: int) -> None:
        if self._sessions.pop(chat_id, None) is not None:
            self._save()

    def __len__(self) -> int:
        return len(self._sessions)


class SubscriberStore(JsonFileStore):
    """Chats that receive broadcasts. Only ever grows."""

    def __init__(self, path: Optional[Path] = None) -> None:
        super().__init__(path)
        raw = self._read({"chats": []})
        chats = raw.get("chats", []) if isinstance(raw, dict) else []
        self._chats: Set[int] = set()
        for chat in chats:
            try:
                self._chats.add(int(chat))
            except (TypeError, ValueError):
                logger.warning("Ignoring bad subscriber id %r", chat)

    def add(self, chat_id: int) -> bool:
        """Register a chat. Returns False if it was already subscribed."""
        if chat_id in self._chats:
            return False
        self._chats.add(chat_id)
        self._write({"chats": sorted(self._chats)})
        logger.info("Added subscriber %s", chat_id)
        return True

    def all(self) -> List[int]:
        return sorted(self._chats)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._chats

    def __len__(self) -> int:
        return len(self._chats)


__all__ = ["BookingStore", "JsonFileStore", "SessionStore", "SubscriberStore", "VehicleStore"]
