"""Priority aging for waiting-list entries.

A waiting entry starts at its static ``base_priority`` and gains one full
priority unit for every ``aging_factor`` hours it waits:

    aging_factor       = max_wait_hours / max(1, |priority_high - priority_low|)
    waiting_hours      = max(0, now - created_at) in hours
    effective_priority = base_priority + waiting_hours / aging_factor

With the defaults (48h, 5, 1) a priority-1 entry catches up with a fresh
priority-5 entry after 48 hours of waiting, which bounds how long a low
priority requester can be starved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from roombook.domain.constraints import AgingConfig, validate_aging_config
from roombook.domain.models import WaitingEntry
from roombook.utils.config import Settings


SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class ScoredEntry:
    entry: WaitingEntry
    score: float
    position: int


def aging_config_from_settings(settings: Settings) -> AgingConfig:
    return AgingConfig(
        max_wait_hours=settings.aging_max_wait_hours,
        priority_high=settings.aging_priority_high,
        priority_low=settings.aging_priority_low,
    )


def compute_aging_factor(config: AgingConfig) -> float:
    diff = max(1, abs(config.priority_high - config.priority_low))
    return config.max_wait_hours / diff


def waiting_hours(created_at: datetime, now: datetime) -> float:
    elapsed = (now - created_at).total_seconds() / SECONDS_PER_HOUR
    return max(0.0, elapsed)


def effective_priority(
    *,
    base_priority: int,
    created_at: datetime,
    aging_factor: float,
    now: datetime,
) -> float:
    return base_priority + waiting_hours(created_at, now) / aging_factor


class PriorityAgingEngine:
    """Scores and orders waiting entries against a single evaluation instant."""

    def __init__(self, config: Optional[AgingConfig] = None) -> None:
        self._config = config or AgingConfig()
        validate_aging_config(self._config)

    @property
    def config(self) -> AgingConfig:
        return self._config

    def score(
        self,
        entry: WaitingEntry,
        now: datetime,
        config: Optional[AgingConfig] = None,
    ) -> float:
        aging_factor = compute_aging_factor(config or self._config)
        return effective_priority(
            base_priority=entry.base_priority,
            created_at=entry.created_at,
            aging_factor=aging_factor,
            now=now,
        )

    def rank(
        self,
        entries: Sequence[WaitingEntry],
        now: datetime,
        config: Optional[AgingConfig] = None,
    ) -> list[ScoredEntry]:
        """Best first: highest score, then earliest ``created_at``, then stored position.

        Returns a new list; ``entries`` is left untouched.
        """
        resolved = config or self._config
        validate_aging_config(resolved)
        aging_factor = compute_aging_factor(resolved)
        scored = [
            ScoredEntry(
                entry=entry,
                score=effective_priority(
                    base_priority=entry.base_priority,
                    created_at=entry.created_at,
                    aging_factor=aging_factor,
                    now=now,
                ),
                position=position,
            )
            for position, entry in enumerate(entries)
        ]
        scored.sort(key=lambda item: (-item.score, item.entry.created_at, item.position))
        return scored
