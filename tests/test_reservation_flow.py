from __future__ import annotations

import random
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from itertools import combinations

import pytest

from roombook.domain.constraints import AgingConfig, InvalidInputError
from roombook.repository.room_registry import RoomNotFoundError, RoomRegistry
from roombook.services.booking_service import RoomBookingService
from roombook.utils.config import get_settings


SLOT_DATE = "2025-01-10"


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _build_service(fallback_room_id: int | None = None) -> tuple[RoomBookingService, RoomRegistry, _Clock]:
    settings = replace(
        get_settings(),
        fallback_room_id=fallback_room_id,
        default_base_priority=1,
        aging_max_wait_hours=48.0,
        aging_priority_high=5,
        aging_priority_low=1,
    )
    registry = RoomRegistry()
    registry.seed_default_rooms()
    clock = _Clock(datetime(2025, 1, 9, 8, 0))
    service = RoomBookingService(registry=registry, settings=settings, clock=clock)
    return service, registry, clock


def _total_entries(registry: RoomRegistry, room_id: int) -> int:
    snapshot = registry.snapshot(room_id)
    return len(snapshot.bookings) + len(snapshot.waiting_list)


def _assert_disjoint(registry: RoomRegistry) -> None:
    for snapshot in registry.snapshots():
        for left, right in combinations(snapshot.bookings, 2):
            assert not left.interval.overlaps(right.interval), (left, right)


# --- reserve ---

def test_reserve_free_room_confirms_booking() -> None:
    service, registry, clock = _build_service()

    result = service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")

    assert result.accepted is True
    assert result.booking is not None
    assert result.booking.confirmed_at == clock.now
    assert result.waiting_entry is None
    assert "Conference Room A booked" in result.message
    assert registry.snapshot(1).bookings == (result.booking,)


def test_conflicting_reservation_enrolls_waiting_entry() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")

    result = service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30")

    assert result.accepted is True
    assert result.booking is None
    assert result.conflict is not None and result.conflict.requester == "alice"
    assert result.waiting_entry is not None and result.waiting_entry.requester == "bob"
    assert "alice" in result.message
    assert "09:00" in result.message and "10:00" in result.message
    snapshot = registry.snapshot(1)
    assert [booking.requester for booking in snapshot.bookings] == ["alice"]
    assert [entry.requester for entry in snapshot.waiting_list] == ["bob"]


def test_reserve_without_room_picks_first_free_room() -> None:
    service, _, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")

    result = service.reserve(None, "bob", SLOT_DATE, "09:00", "10:00")

    assert result.accepted is True
    assert result.room.room_id == 2
    assert "assigned automatically" in result.message


def test_reserve_without_room_queues_on_fallback_when_all_busy() -> None:
    service, registry, _ = _build_service()
    for room_id in registry.room_ids():
        service.reserve(room_id, f"holder{room_id}", SLOT_DATE, "09:00", "10:00")

    result = service.reserve(None, "late", SLOT_DATE, "09:15", "09:45")

    assert result.accepted is False
    assert result.waiting_entry is not None
    assert result.room.room_id == 1
    assert [entry.requester for entry in registry.snapshot(1).waiting_list] == ["late"]


def test_configured_fallback_room_receives_overflow() -> None:
    service, registry, _ = _build_service(fallback_room_id=3)
    for room_id in registry.room_ids():
        service.reserve(room_id, f"holder{room_id}", SLOT_DATE, "09:00", "10:00")

    result = service.reserve(None, "late", SLOT_DATE, "09:00", "10:00")

    assert result.room.room_id == 3
    assert len(registry.snapshot(3).waiting_list) == 1


@pytest.mark.parametrize(
    ("requester", "date_value", "start", "end"),
    [
        (None, SLOT_DATE, "09:00", "10:00"),
        ("alice", None, "09:00", "10:00"),
        ("alice", SLOT_DATE, None, "10:00"),
        ("alice", SLOT_DATE, "09:00", None),
        ("alice", SLOT_DATE, "10:00", "09:00"),
    ],
)
def test_invalid_reservation_is_rejected_before_mutation(requester, date_value, start, end) -> None:
    service, registry, _ = _build_service()

    with pytest.raises(InvalidInputError):
        service.reserve(1, requester, date_value, start, end)

    assert _total_entries(registry, 1) == 0


def test_unknown_room_raises_not_found() -> None:
    service, _, _ = _build_service()
    with pytest.raises(RoomNotFoundError):
        service.reserve(99, "alice", SLOT_DATE, "09:00", "10:00")


# --- cancel_booking ---

def test_cancellation_promotes_waiting_entry() -> None:
    service, registry, clock = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")
    waiting = service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30").waiting_entry
    clock.advance(hours=3)
    total_before = _total_entries(registry, 1)

    result = service.cancel_booking(1, "alice", SLOT_DATE, "09:00", "10:00")

    assert result.found is True
    assert result.promoted is not None
    assert result.promoted.requester == "bob"
    assert result.promoted.booking_id == waiting.entry_id
    assert result.promoted.confirmed_at == clock.now
    assert "bob" in result.message
    snapshot = registry.snapshot(1)
    assert snapshot.waiting_list == ()
    assert [booking.requester for booking in snapshot.bookings] == ["bob"]
    assert _total_entries(registry, 1) == total_before - 1


def test_cancel_without_waiters_reports_no_promotion() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")

    result = service.cancel_booking(1, "alice", SLOT_DATE, "09:00", "10:00")

    assert result.found is True
    assert result.promoted is None
    assert "No one waiting" in result.message
    assert registry.snapshot(1).bookings == ()


def test_cancel_requires_exact_match() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")

    assert service.cancel_booking(1, "bob", SLOT_DATE, "09:00", "10:00").found is False
    assert service.cancel_booking(1, "alice", SLOT_DATE, "09:00", "10:30").found is False
    assert service.cancel_booking(1, "alice", "2025-01-11", "09:00", "10:00").found is False
    assert len(registry.snapshot(1).bookings) == 1


# --- cancel_waiting ---

def test_cancel_waiting_removes_entry_without_promotion() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")
    service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30")

    result = service.cancel_waiting(1, "bob", SLOT_DATE, "09:30", "10:30")

    assert result.found is True
    assert result.promoted is None
    snapshot = registry.snapshot(1)
    assert snapshot.waiting_list == ()
    assert [booking.requester for booking in snapshot.bookings] == ["alice"]


def test_cancel_waiting_mismatch_mutates_nothing() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")
    service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30")
    before = registry.snapshot(1)

    result = service.cancel_waiting(1, "bob", SLOT_DATE, "09:30", "11:00")

    assert result.found is False
    assert registry.snapshot(1) == before


def test_cancel_waiting_removes_only_one_duplicate() -> None:
    service, registry, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")
    service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30")
    service.reserve(1, "bob", SLOT_DATE, "09:30", "10:30")

    service.cancel_waiting(1, "bob", SLOT_DATE, "09:30", "10:30")

    assert len(registry.snapshot(1).waiting_list) == 1


# --- promote_manually / summary ---

def test_manual_promotion_without_candidates() -> None:
    service, _, _ = _build_service()

    result = service.promote_manually(1)

    assert result.promoted is False
    assert result.booking is None
    assert "No candidate" in result.message


def _stage_manual_promotion() -> tuple[RoomBookingService, RoomRegistry]:
    """Two waiters behind a long booking whose slot is then freed without auto-promotion."""
    service, registry, clock = _build_service()
    service.reserve(1, "holder", SLOT_DATE, "08:00", "12:00")
    service.reserve(1, "patient", SLOT_DATE, "09:00", "10:00", base_priority=1)
    clock.advance(hours=4)
    service.reserve(1, "urgent", SLOT_DATE, "10:00", "11:00", base_priority=2)
    with registry.locked(1) as room:
        registry.remove_booking(room, room.bookings[0])
    return service, registry


def test_manual_promotion_uses_default_aging() -> None:
    service, registry = _stage_manual_promotion()

    result = service.promote_manually(1)

    # patient: 1 + 4/12, urgent: 2 + 0
    assert result.promoted is True
    assert result.booking.requester == "urgent"
    assert "urgent" in result.message
    assert [entry.requester for entry in registry.snapshot(1).waiting_list] == ["patient"]


def test_manual_promotion_uses_supplied_aging_config() -> None:
    service, _ = _stage_manual_promotion()

    # aging factor 1h: patient 1 + 4, urgent 2 + 0
    result = service.promote_manually(1, AgingConfig(max_wait_hours=4))

    assert result.booking.requester == "patient"


def test_manual_promotion_rejects_invalid_aging_config() -> None:
    service, registry = _stage_manual_promotion()

    with pytest.raises(InvalidInputError):
        service.promote_manually(1, AgingConfig(max_wait_hours=0))

    assert len(registry.snapshot(1).waiting_list) == 2


def test_rooms_summary_counts_booked_rooms() -> None:
    service, _, _ = _build_service()
    service.reserve(1, "alice", SLOT_DATE, "09:00", "10:00")
    service.reserve(1, "bob", SLOT_DATE, "09:00", "10:00")

    summary = service.rooms_summary()

    assert (summary.total, summary.booked, summary.available) == (3, 1, 2)


def test_list_rooms_is_stable_and_complete() -> None:
    service, _, _ = _build_service()
    service.reserve(2, "alice", SLOT_DATE, "09:00", "10:00")

    rooms = service.list_rooms()

    assert [room.room_id for room in rooms] == [1, 2, 3]
    assert [room.name for room in rooms] == ["Conference Room A", "Meeting Room B", "Hall C"]
    assert rooms[1].bookings[0].requester == "alice"


# --- invariants ---

def test_random_operations_keep_bookings_disjoint() -> None:
    service, registry, clock = _build_service()
    rng = random.Random(7)
    booked: list[tuple[int, str, str, str]] = []

    for step in range(300):
        clock.advance(minutes=rng.randint(1, 30))
        room_id = rng.choice([1, 2, 3, None])
        start_hour = rng.randint(8, 17)
        length = rng.randint(1, 3)
        start = f"{start_hour:02d}:{rng.choice(['00', '30'])}"
        end = f"{start_hour + length:02d}:00"
        requester = f"user{step}"
        if booked and rng.random() < 0.25:
            target = booked.pop(rng.randrange(len(booked)))
            service.cancel_booking(target[0], target[1], SLOT_DATE, target[2], target[3])
        else:
            result = service.reserve(room_id, requester, SLOT_DATE, start, end)
            if result.booking is not None:
                booked.append((result.room.room_id, requester, start, end))
        _assert_disjoint(registry)


def test_concurrent_reservations_for_same_slot_book_once() -> None:
    service, registry, _ = _build_service()
    barrier = threading.Barrier(16)

    def worker(index: int) -> None:
        barrier.wait()
        service.reserve(1, f"user{index}", SLOT_DATE, "09:00", "10:00")

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = registry.snapshot(1)
    assert len(snapshot.bookings) == 1
    assert len(snapshot.waiting_list) == 15


def test_lock_on_one_room_does_not_block_another_room() -> None:
    service, registry, _ = _build_service()
    results = []

    def reserve_room_two() -> None:
        results.append(service.reserve(2, "bob", SLOT_DATE, "09:00", "10:00"))

    with registry.locked(1):
        worker = threading.Thread(target=reserve_room_two)
        worker.start()
        worker.join(timeout=5.0)
        assert not worker.is_alive()

    assert results[0].booking is not None
    assert results[0].room.room_id == 2
    assert registry.snapshot(1).bookings == ()
