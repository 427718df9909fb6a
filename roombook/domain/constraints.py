"""Domain-level validation rules for reservations and waiting-list aging."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Union

from roombook.domain.models import TimeInterval


DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M", "%H:%M:%S")

DateInput = Union[date, str, None]
TimeInput = Union[time, str, None]


class InvalidInputError(ValueError):
    """Raised when requester, date or interval fields are missing or malformed."""


class SweepPromotionPolicy(str, Enum):
    """How many promotions a sweep tick attempts for a room that had bookings expire."""

    PER_TICK = "per_tick"
    PER_SLOT = "per_slot"


@dataclass(frozen=True)
class AgingConfig:
    max_wait_hours: float = 48.0
    priority_high: int = 5
    priority_low: int = 1


def validate_aging_config(config: AgingConfig) -> None:
    if config.max_wait_hours <= 0:
        raise InvalidInputError("max_wait_hours must be > 0")
    if config.priority_high < 0 or config.priority_low < 0:
        raise InvalidInputError("priority bounds must be >= 0")


def parse_sweep_policy(value: Union[str, SweepPromotionPolicy]) -> SweepPromotionPolicy:
    try:
        return SweepPromotionPolicy(value)
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in SweepPromotionPolicy)
        raise InvalidInputError(
            f"sweep promotion policy must be one of: {allowed}"
        ) from exc


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_date(value: DateInput) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidInputError("date must follow YYYY-MM-DD format") from exc


def _parse_time(value: TimeInput, field_name: str) -> time:
    if isinstance(value, time):
        return value
    raw = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise InvalidInputError(f"{field_name} must follow HH:MM format")


def normalize_requester(requester: Optional[str]) -> str:
    if _is_blank(requester):
        raise InvalidInputError("requester is required")
    return str(requester).strip()


def normalize_interval(
    date_value: DateInput,
    start_value: TimeInput,
    end_value: TimeInput,
) -> TimeInterval:
    """Map raw date/start/end inputs onto one canonical ``TimeInterval``."""
    missing = [
        name
        for name, value in (("date", date_value), ("start", start_value), ("end", end_value))
        if _is_blank(value)
    ]
    if missing:
        raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")

    interval = TimeInterval(
        date=_parse_date(date_value),
        start=_parse_time(start_value, "start"),
        end=_parse_time(end_value, "end"),
    )
    if interval.end <= interval.start:
        raise InvalidInputError("end must be after start")
    return interval


def normalize_base_priority(value: Optional[int], default: int) -> int:
    resolved = default if value is None else value
    if resolved < 1:
        raise InvalidInputError("base_priority must be >= 1")
    return int(resolved)


def is_resolvable(interval: Optional[TimeInterval]) -> bool:
    """Whether an interval can be turned into a confirmed booking slot."""
    if interval is None:
        return False
    if interval.date is None or interval.start is None or interval.end is None:
        return False
    return interval.end > interval.start
