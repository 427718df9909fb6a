"""Domain models for room reservations, waiting lists and promotions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional


def format_clock(value: time) -> str:
    """Render ``HH:MM``, keeping seconds only when the slot was booked with them."""
    return value.isoformat(timespec="seconds" if value.second else "minutes")


@dataclass(frozen=True)
class TimeInterval:
    """Half-open ``[start, end)`` slot on one calendar date."""

    date: date
    start: time
    end: time

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.date, self.start)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.date, self.end)

    def overlaps(self, other: "TimeInterval") -> bool:
        if self.date != other.date:
            return False
        return self.start < other.end and other.start < self.end

    def describe(self) -> str:
        return f"{self.date.isoformat()} {format_clock(self.start)}-{format_clock(self.end)}"


@dataclass(frozen=True)
class Booking:
    booking_id: str
    room_id: int
    requester: str
    interval: TimeInterval
    confirmed_at: datetime
    base_priority: int = 1


@dataclass(frozen=True)
class WaitingEntry:
    entry_id: Optional[str]
    room_id: int
    requester: str
    interval: Optional[TimeInterval]
    created_at: datetime
    base_priority: int = 1


@dataclass
class Room:
    """Live room record; only mutated through ``RoomRegistry`` under the room lock."""

    room_id: int
    name: str
    capacity: int
    bookings: list[Booking] = field(default_factory=list)
    waiting_list: list[WaitingEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RoomSnapshot:
    room_id: int
    name: str
    capacity: int
    bookings: tuple[Booking, ...]
    waiting_list: tuple[WaitingEntry, ...]


@dataclass(frozen=True)
class RoomsSummary:
    total: int
    booked: int
    available: int


@dataclass(frozen=True)
class ReservationResult:
    accepted: bool
    message: str
    room: Optional[RoomSnapshot] = None
    booking: Optional[Booking] = None
    waiting_entry: Optional[WaitingEntry] = None
    conflict: Optional[Booking] = None


@dataclass(frozen=True)
class CancellationResult:
    found: bool
    message: str
    promoted: Optional[Booking] = None


@dataclass(frozen=True)
class PromotionResult:
    promoted: bool
    message: str
    booking: Optional[Booking] = None
