"""Overlap detection between a candidate slot and a room's confirmed bookings."""

from __future__ import annotations

from typing import Iterable, Optional

from roombook.domain.models import Booking, Room, TimeInterval


def find_overlapping(
    bookings: Iterable[Booking],
    interval: TimeInterval,
) -> Optional[Booking]:
    """Return the first booking, in stored order, whose slot overlaps ``interval``."""
    for booking in bookings:
        if booking.interval.overlaps(interval):
            return booking
    return None


class ConflictDetector:
    """Half-open interval conflict check scoped to one room and one date."""

    def find_conflict(self, room: Room, interval: TimeInterval) -> Optional[Booking]:
        return find_overlapping(room.bookings, interval)

    def is_free(self, room: Room, interval: TimeInterval) -> bool:
        return self.find_conflict(room, interval) is None
