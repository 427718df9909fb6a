"""In-memory room registry: the only owner of mutable room state."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from roombook.domain.models import Booking, Room, RoomSnapshot, WaitingEntry
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


DEFAULT_ROOMS: tuple[tuple[int, str, int], ...] = (
    (1, "Conference Room A", 10),
    (2, "Meeting Room B", 6),
    (3, "Hall C", 20),
)


class RoomNotFoundError(Exception):
    """Raised when a room id is not present in the registry."""


class RoomRegistry:
    """Holds every room for the process lifetime, each guarded by its own lock.

    Mutation primitives (``append_*`` / ``remove_*``) expect the caller to be
    inside ``locked(room_id)`` for the room being changed.
    """

    def __init__(self, rooms: Optional[Iterable[Room]] = None) -> None:
        self._rooms: dict[int, Room] = {}
        self._locks: dict[int, threading.Lock] = {}
        for room in rooms or ():
            self._register(room)

    def _register(self, room: Room) -> None:
        if room.room_id in self._rooms:
            raise ValueError(f"Duplicate room id {room.room_id}")
        self._rooms[room.room_id] = room
        self._locks[room.room_id] = threading.Lock()

    def seed_default_rooms(self) -> None:
        """Register the fixed room set. Skipped when rooms already exist."""
        if self._rooms:
            logger.info("Room seed skipped | existing_rooms=%s", len(self._rooms))
            return
        for room_id, name, capacity in DEFAULT_ROOMS:
            self._register(Room(room_id=room_id, name=name, capacity=capacity))
        logger.info("Room seed completed | rooms=%s", len(self._rooms))

    def get_room(self, room_id: int) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def room_ids(self) -> list[int]:
        return sorted(self._rooms)

    def list_rooms(self) -> list[Room]:
        return [self._rooms[room_id] for room_id in self.room_ids()]

    @contextmanager
    def locked(self, room_id: int) -> Iterator[Room]:
        """Yield the live room while holding its exclusive lock."""
        room = self.get_room(room_id)
        with self._locks[room_id]:
            yield room

    def snapshot(self, room_id: int) -> RoomSnapshot:
        with self.locked(room_id) as room:
            return self.snapshot_unlocked(room)

    def snapshots(self) -> list[RoomSnapshot]:
        return [self.snapshot(room_id) for room_id in self.room_ids()]

    @staticmethod
    def snapshot_unlocked(room: Room) -> RoomSnapshot:
        return RoomSnapshot(
            room_id=room.room_id,
            name=room.name,
            capacity=room.capacity,
            bookings=tuple(room.bookings),
            waiting_list=tuple(room.waiting_list),
        )

    # --- mutation primitives (caller holds the room lock) ---

    def append_booking(self, room: Room, booking: Booking) -> None:
        room.bookings.append(booking)

    def remove_booking(self, room: Room, booking: Booking) -> bool:
        return _remove_by_identity(room.bookings, booking)

    def append_waiting(self, room: Room, entry: WaitingEntry) -> None:
        room.waiting_list.append(entry)

    def remove_waiting(self, room: Room, entry: WaitingEntry) -> bool:
        return _remove_by_identity(room.waiting_list, entry)


def _remove_by_identity(items: list, target: object) -> bool:
    for index, item in enumerate(items):
        if item is target:
            del items[index]
            return True
    return False
