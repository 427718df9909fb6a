"""Request-path orchestration: reserve, cancel, cancel-waiting and manual promotion."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from roombook.domain.constraints import (
    AgingConfig,
    DateInput,
    TimeInput,
    normalize_base_priority,
    normalize_interval,
    normalize_requester,
    validate_aging_config,
)
from roombook.domain.models import (
    Booking,
    CancellationResult,
    PromotionResult,
    ReservationResult,
    Room,
    RoomSnapshot,
    RoomsSummary,
    TimeInterval,
    WaitingEntry,
    format_clock,
)
from roombook.repository.room_registry import RoomNotFoundError, RoomRegistry
from roombook.services.aging_service import aging_config_from_settings
from roombook.services.conflict_service import ConflictDetector
from roombook.services.promotion_service import (
    NoCandidateError,
    PromotionScheduler,
    new_booking_id,
)
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger, log_event


logger = get_logger(__name__)


def new_waiting_entry_id() -> str:
    return f"wt_{uuid4().hex}"


class RoomBookingService:
    """Synchronous operations exposed to the HTTP boundary.

    Every read-decide-write sequence runs inside the target room's lock so a
    concurrent request or sweep tick cannot observe the same slot as free.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        promotion_scheduler: Optional[PromotionScheduler] = None,
        conflict_detector: Optional[ConflictDetector] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry
        self._clock = clock or datetime.now
        self._conflict_detector = conflict_detector or ConflictDetector()
        self._promotion_scheduler = promotion_scheduler or PromotionScheduler(
            registry=registry,
            conflict_detector=self._conflict_detector,
            clock=self._clock,
        )
        self._default_aging = aging_config_from_settings(self._settings)

    @property
    def default_aging_config(self) -> AgingConfig:
        return self._default_aging

    # --- queries ---

    def list_rooms(self) -> list[RoomSnapshot]:
        return self._registry.snapshots()

    def rooms_summary(self) -> RoomsSummary:
        snapshots = self._registry.snapshots()
        booked = sum(1 for snapshot in snapshots if snapshot.bookings)
        return RoomsSummary(
            total=len(snapshots),
            booked=booked,
            available=len(snapshots) - booked,
        )

    # --- reservation ---

    def reserve(
        self,
        room_id: Optional[int],
        requester: Optional[str],
        date: DateInput,
        start: TimeInput,
        end: TimeInput,
        base_priority: Optional[int] = None,
    ) -> ReservationResult:
        resolved_requester = normalize_requester(requester)
        interval = normalize_interval(date, start, end)
        priority = normalize_base_priority(base_priority, self._settings.default_base_priority)

        if room_id is not None:
            return self._reserve_in_room(room_id, resolved_requester, interval, priority)
        return self._reserve_any_room(resolved_requester, interval, priority)

    def _reserve_in_room(
        self,
        room_id: int,
        requester: str,
        interval: TimeInterval,
        priority: int,
    ) -> ReservationResult:
        with self._registry.locked(room_id) as room:
            conflict = self._conflict_detector.find_conflict(room, interval)
            if conflict is None:
                booking = self._confirm(room, requester, interval, priority)
                return ReservationResult(
                    accepted=True,
                    message=(
                        f"{room.name} booked for {interval.date.isoformat()} "
                        f"at {format_clock(interval.start)} by {requester}"
                    ),
                    room=self._registry.snapshot_unlocked(room),
                    booking=booking,
                )

            entry = self._enqueue(room, requester, interval, priority)
            return ReservationResult(
                accepted=True,
                message=(
                    f"{room.name} is already booked by {conflict.requester} on "
                    f"{conflict.interval.date.isoformat()} from "
                    f"{format_clock(conflict.interval.start)} to "
                    f"{format_clock(conflict.interval.end)}. "
                    "You are added to the waiting list."
                ),
                room=self._registry.snapshot_unlocked(room),
                waiting_entry=entry,
                conflict=conflict,
            )

    def _reserve_any_room(
        self,
        requester: str,
        interval: TimeInterval,
        priority: int,
    ) -> ReservationResult:
        for room_id in self._registry.room_ids():
            with self._registry.locked(room_id) as room:
                if not self._conflict_detector.is_free(room, interval):
                    continue
                booking = self._confirm(room, requester, interval, priority)
                return ReservationResult(
                    accepted=True,
                    message=(
                        f"{room.name} assigned automatically and booked for "
                        f"{interval.date.isoformat()} at {format_clock(interval.start)}"
                    ),
                    room=self._registry.snapshot_unlocked(room),
                    booking=booking,
                )

        with self._registry.locked(self._fallback_room_id()) as room:
            entry = self._enqueue(room, requester, interval, priority)
            return ReservationResult(
                accepted=False,
                message=(
                    "All rooms are booked for this time. "
                    f"You were added to the waiting list of {room.name}."
                ),
                room=self._registry.snapshot_unlocked(room),
                waiting_entry=entry,
            )

    def _fallback_room_id(self) -> int:
        if self._settings.fallback_room_id is not None:
            return self._settings.fallback_room_id
        room_ids = self._registry.room_ids()
        if not room_ids:
            raise RoomNotFoundError("No rooms are registered")
        return room_ids[0]

    def _confirm(
        self,
        room: Room,
        requester: str,
        interval: TimeInterval,
        priority: int,
    ) -> Booking:
        booking = Booking(
            booking_id=new_booking_id(),
            room_id=room.room_id,
            requester=requester,
            interval=interval,
            confirmed_at=self._clock(),
            base_priority=priority,
        )
        self._registry.append_booking(room, booking)
        log_event(
            logger,
            logging.INFO,
            "Booking confirmed",
            room_id=room.room_id,
            booking_id=booking.booking_id,
            requester=requester,
            slot=interval.describe(),
        )
        return booking

    def _enqueue(
        self,
        room: Room,
        requester: str,
        interval: TimeInterval,
        priority: int,
    ) -> WaitingEntry:
        entry = WaitingEntry(
            entry_id=new_waiting_entry_id(),
            room_id=room.room_id,
            requester=requester,
            interval=interval,
            created_at=self._clock(),
            base_priority=priority,
        )
        self._registry.append_waiting(room, entry)
        log_event(
            logger,
            logging.INFO,
            "Waiting entry enrolled",
            room_id=room.room_id,
            entry_id=entry.entry_id,
            requester=requester,
            slot=interval.describe(),
            queue_length=len(room.waiting_list),
        )
        return entry

    # --- cancellation ---

    def cancel_booking(
        self,
        room_id: int,
        requester: Optional[str],
        date: DateInput,
        start: TimeInput,
        end: TimeInput,
    ) -> CancellationResult:
        resolved_requester = normalize_requester(requester)
        interval = normalize_interval(date, start, end)

        with self._registry.locked(room_id) as room:
            match = next(
                (
                    booking
                    for booking in room.bookings
                    if booking.requester == resolved_requester and booking.interval == interval
                ),
                None,
            )
            if match is None:
                return CancellationResult(found=False, message="No matching booking to cancel.")

            self._registry.remove_booking(room, match)
            log_event(
                logger,
                logging.INFO,
                "Booking cancelled",
                room_id=room_id,
                booking_id=match.booking_id,
                requester=resolved_requester,
            )
            promoted = self._promotion_scheduler.promote_next(room, self._default_aging)

        if promoted is None:
            return CancellationResult(
                found=True,
                message="Booking cancelled successfully. No one waiting.",
            )
        return CancellationResult(
            found=True,
            message=(
                f"Booking cancelled. Waiting user {promoted.requester} promoted automatically "
                f"({format_clock(promoted.interval.start)}-{format_clock(promoted.interval.end)} on "
                f"{promoted.interval.date.isoformat()})."
            ),
            promoted=promoted,
        )

    def cancel_waiting(
        self,
        room_id: int,
        requester: Optional[str],
        date: DateInput,
        start: TimeInput,
        end: TimeInput,
    ) -> CancellationResult:
        resolved_requester = normalize_requester(requester)
        interval = normalize_interval(date, start, end)

        with self._registry.locked(room_id) as room:
            match = next(
                (
                    entry
                    for entry in room.waiting_list
                    if entry.requester == resolved_requester and entry.interval == interval
                ),
                None,
            )
            if match is None:
                return CancellationResult(
                    found=False,
                    message="No matching waiting entry to cancel.",
                )
            self._registry.remove_waiting(room, match)

        log_event(
            logger,
            logging.INFO,
            "Waiting entry cancelled",
            room_id=room_id,
            entry_id=match.entry_id,
            requester=resolved_requester,
        )
        return CancellationResult(
            found=True,
            message="Waiting list entry cancelled successfully.",
        )

    # --- promotion ---

    def promote_manually(
        self,
        room_id: int,
        aging_config: Optional[AgingConfig] = None,
    ) -> PromotionResult:
        config = aging_config or self._default_aging
        validate_aging_config(config)
        try:
            booking = self._promotion_scheduler.promote_room(room_id, config)
        except NoCandidateError as exc:
            log_event(logger, logging.INFO, "Manual promotion found no candidate", room_id=room_id)
            return PromotionResult(promoted=False, message=str(exc))
        return PromotionResult(
            promoted=True,
            message=f"Promoted waiting user {booking.requester} to a confirmed booking.",
            booking=booking,
        )
