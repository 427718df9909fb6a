"""Background sweep that retires finished bookings and promotes waiting entries."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from roombook.domain.constraints import SweepPromotionPolicy, parse_sweep_policy
from roombook.domain.models import Booking, Room
from roombook.repository.room_registry import RoomRegistry
from roombook.services.promotion_service import PromotionScheduler
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger, log_event


logger = get_logger(__name__)


@dataclass
class SweepReport:
    swept_at: datetime
    expired: list[Booking] = field(default_factory=list)
    promoted: list[Booking] = field(default_factory=list)
    failed_room_ids: list[int] = field(default_factory=list)


class LifecycleSweeper:
    """Runs ``sweep_once`` on a daemon thread every ``sweep_interval_seconds``."""

    def __init__(
        self,
        registry: RoomRegistry,
        promotion_scheduler: PromotionScheduler,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry
        self._promotion_scheduler = promotion_scheduler
        self._clock = clock or datetime.now
        self._interval_seconds = float(self._settings.sweep_interval_seconds)
        if self._interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        self._policy = parse_sweep_policy(self._settings.sweep_promotion_policy)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def policy(self) -> SweepPromotionPolicy:
        return self._policy

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Lifecycle sweeper already running")
            return
        # Each run owns its stop event so a thread outliving stop() stays stopped.
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            daemon=True,
            name="LifecycleSweeper",
        )
        self._thread.start()
        log_event(
            logger,
            logging.INFO,
            "Lifecycle sweeper started",
            interval_seconds=self._interval_seconds,
            policy=self._policy.value,
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            log_event(
                logger,
                logging.WARNING,
                "Lifecycle sweeper still finishing a sweep",
                timeout_seconds=timeout,
            )
            return
        self._thread = None
        logger.info("Lifecycle sweeper stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval_seconds):
            try:
                self.sweep_once()
            except Exception:  # pragma: no cover - keeps the timer alive
                logger.exception("Lifecycle sweep tick failed")

    def sweep_once(self, now: Optional[datetime] = None) -> SweepReport:
        """Retire bookings ended at ``now`` in every room and promote into freed rooms."""
        swept_at = now or self._clock()
        report = SweepReport(swept_at=swept_at)
        for room_id in self._registry.room_ids():
            try:
                with self._registry.locked(room_id) as room:
                    expired, promoted = self._sweep_room(room, swept_at)
            except Exception:
                logger.exception("Sweep failed for room | room_id=%s", room_id)
                report.failed_room_ids.append(room_id)
                continue
            report.expired.extend(expired)
            report.promoted.extend(promoted)

        if report.expired or report.failed_room_ids:
            log_event(
                logger,
                logging.INFO,
                "Sweep completed",
                expired=len(report.expired),
                promoted=len(report.promoted),
                failed_rooms=report.failed_room_ids,
            )
        return report

    def _sweep_room(self, room: Room, now: datetime) -> tuple[list[Booking], list[Booking]]:
        expired = [booking for booking in room.bookings if booking.interval.end_at <= now]
        if not expired:
            return [], []

        for booking in expired:
            self._registry.remove_booking(room, booking)
            log_event(
                logger,
                logging.INFO,
                "Booking finished",
                room_id=room.room_id,
                booking_id=booking.booking_id,
                requester=booking.requester,
                slot=booking.interval.describe(),
            )

        attempts = 1 if self._policy is SweepPromotionPolicy.PER_TICK else len(expired)
        promoted: list[Booking] = []
        for _ in range(attempts):
            booking = self._promotion_scheduler.promote_next(room, now=now)
            if booking is None:
                break
            promoted.append(booking)
        return expired, promoted
