"""Waiting-list promotion shared by cancellation, manual requests and the sweeper."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from roombook.domain.constraints import AgingConfig, is_resolvable
from roombook.domain.models import Booking, Room, WaitingEntry
from roombook.repository.room_registry import RoomRegistry
from roombook.services.aging_service import PriorityAgingEngine
from roombook.services.conflict_service import ConflictDetector
from roombook.utils.logger import get_logger, log_event


logger = get_logger(__name__)

Clock = Callable[[], datetime]


class NoCandidateError(Exception):
    """Raised when a promotion is requested but no waiting entry can be promoted."""


def new_booking_id() -> str:
    return f"bk_{uuid4().hex}"


def booking_from_entry(entry: WaitingEntry, confirmed_at: datetime) -> Booking:
    if entry.interval is None:
        raise ValueError("waiting entry has no interval to confirm")
    return Booking(
        booking_id=entry.entry_id or new_booking_id(),
        room_id=entry.room_id,
        requester=entry.requester,
        interval=entry.interval,
        confirmed_at=confirmed_at,
        base_priority=entry.base_priority,
    )


class PromotionScheduler:
    """Moves the best-ranked eligible waiting entry of a room into its bookings."""

    def __init__(
        self,
        registry: RoomRegistry,
        aging_engine: Optional[PriorityAgingEngine] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._registry = registry
        self._aging_engine = aging_engine or PriorityAgingEngine()
        self._conflict_detector = conflict_detector or ConflictDetector()
        self._clock = clock or datetime.now

    def promote_next(
        self,
        room: Room,
        aging_config: Optional[AgingConfig] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Booking]:
        """Promote one waiting entry of ``room``; the caller must hold the room lock.

        Entries whose slot still overlaps a confirmed booking are passed over so
        bookings remain disjoint. Reaching an unresolvable entry ends the call
        without promoting; the entry stays queued.
        """
        if not room.waiting_list:
            return None

        evaluated_at = now or self._clock()
        ranking = self._aging_engine.rank(room.waiting_list, evaluated_at, aging_config)

        selected: Optional[WaitingEntry] = None
        for candidate in ranking:
            entry = candidate.entry
            if not is_resolvable(entry.interval):
                log_event(
                    logger,
                    logging.WARNING,
                    "Promotion candidate unresolvable",
                    room_id=room.room_id,
                    entry_id=entry.entry_id,
                    requester=entry.requester,
                )
                return None
            blocking = self._conflict_detector.find_conflict(room, entry.interval)
            if blocking is not None:
                log_event(
                    logger,
                    logging.DEBUG,
                    "Promotion candidate blocked",
                    room_id=room.room_id,
                    entry_id=entry.entry_id,
                    blocked_by=blocking.booking_id,
                )
                continue
            selected = entry
            log_event(
                logger,
                logging.DEBUG,
                "Promotion candidate selected",
                room_id=room.room_id,
                entry_id=entry.entry_id,
                score=round(candidate.score, 4),
            )
            break

        if selected is None:
            return None

        booking = booking_from_entry(selected, confirmed_at=self._clock())
        self._registry.remove_waiting(room, selected)
        self._registry.append_booking(room, booking)
        log_event(
            logger,
            logging.INFO,
            "Waiting entry promoted",
            room_id=room.room_id,
            booking_id=booking.booking_id,
            requester=booking.requester,
            slot=booking.interval.describe(),
        )
        return booking

    def promote_room(
        self,
        room_id: int,
        aging_config: Optional[AgingConfig] = None,
    ) -> Booking:
        """Lock ``room_id`` and promote one entry, raising when nothing qualifies."""
        with self._registry.locked(room_id) as room:
            booking = self.promote_next(room, aging_config)
        if booking is None:
            raise NoCandidateError("No candidate found to promote.")
        return booking
