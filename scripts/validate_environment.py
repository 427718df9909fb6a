#!/usr/bin/env python3
"""Validate local room booking environment readiness."""

from __future__ import annotations

import importlib
import sys
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from roombook.repository.room_registry import RoomRegistry
from roombook.services.booking_service import RoomBookingService
from roombook.services.promotion_service import PromotionScheduler
from roombook.services.sweeper_service import LifecycleSweeper
from roombook.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True

    # CHECK 1 - Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 - Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    try:
        from importlib.metadata import version
    except Exception:  # pragma: no cover
        version = None  # type: ignore[assignment]
    for module_name, dist_name in package_specs:
        try:
            module = importlib.import_module(module_name)
            if version is not None:
                _ = version(dist_name)
            else:
                _ = getattr(module, "__version__", "unknown")
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    settings = replace(get_settings(), fallback_room_id=None)
    registry = RoomRegistry()

    # CHECK 3 - Room seed
    try:
        registry.seed_default_rooms()
        room_count = len(registry.room_ids())
        if room_count != 3:
            raise RuntimeError(f"expected 3 rooms, got {room_count}")
        ok, line = _print_result("Room seed: 3 rooms", True)
    except Exception as exc:
        ok, line = _print_result("Room seed", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    promotion_scheduler = PromotionScheduler(registry=registry)
    service = RoomBookingService(
        registry=registry,
        promotion_scheduler=promotion_scheduler,
        settings=settings,
    )
    slot_date = (datetime.now() + timedelta(days=1)).date().isoformat()

    # CHECK 4 - Conflict enrollment
    try:
        service.reserve(1, "validator-a", slot_date, "09:00", "10:00")
        conflicted = service.reserve(1, "validator-b", slot_date, "09:30", "10:30")
        if conflicted.waiting_entry is None or conflicted.conflict is None:
            raise RuntimeError("overlapping reservation was not enrolled as waiting")
        ok, line = _print_result("Conflict detection and waiting enrollment", True)
    except Exception as exc:
        ok, line = _print_result("Conflict detection", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5 - Promotion on cancellation
    try:
        cancelled = service.cancel_booking(1, "validator-a", slot_date, "09:00", "10:00")
        if cancelled.promoted is None or cancelled.promoted.requester != "validator-b":
            raise RuntimeError("waiting entry was not promoted after cancellation")
        ok, line = _print_result("Promotion on cancellation", True)
    except Exception as exc:
        ok, line = _print_result("Promotion on cancellation", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 6 - Sweep expiry
    try:
        sweeper = LifecycleSweeper(
            registry=registry,
            promotion_scheduler=promotion_scheduler,
            settings=settings,
        )
        report = sweeper.sweep_once(now=datetime.now() + timedelta(days=2))
        if len(report.expired) != 1 or report.failed_room_ids:
            raise RuntimeError(
                f"expected 1 expired booking, got {len(report.expired)} "
                f"(failed rooms: {report.failed_room_ids})"
            )
        ok, line = _print_result("Sweep expiry", True)
    except Exception as exc:
        ok, line = _print_result("Sweep expiry", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" Room Booking Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
