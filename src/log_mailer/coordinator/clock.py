"""
Rotation clock: boundary-aligned send schedule.

A boundary is crossed when the last baseline and "now" fall into different wall-clock buckets
for the configured cycle (e.g. hourly: different hour or different day).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from time import monotonic
from typing import Hashable, Optional

from loguru import logger

from ..errors import ConfigurationError
from ..utils import local_now


class RotationCycle(str, Enum):
    TEN_MINUTES = "10min"
    THIRTY_MINUTES = "30min"
    HOURLY = "hour"
    TWO_HOURS = "2hour"
    THREE_HOURS = "3hour"
    FOUR_HOURS = "4hour"
    SIX_HOURS = "6hour"
    TWELVE_HOURS = "12hour"
    DAILY = "day"
    WEEKLY = "week"
    MONTHLY = "month"
    NEVER = "never"

    @classmethod
    def parse(cls, value: "RotationCycle | str") -> "RotationCycle":
        if isinstance(value, RotationCycle):
            return value
        key = str(value).strip().upper().replace("-", "_")
        if key in cls.__members__:
            return cls[key]
        for member in cls:
            if member.value.upper() == key:
                return member
        alias = _CYCLE_ALIASES.get(key)
        if alias is None:
            raise ConfigurationError(f"Unknown rotation cycle: {value!r}")
        return alias


_CYCLE_ALIASES = {
    "10_MINUTES": RotationCycle.TEN_MINUTES,
    "30_MINUTES": RotationCycle.THIRTY_MINUTES,
    "HOUR": RotationCycle.HOURLY,
    "2_HOURS": RotationCycle.TWO_HOURS,
    "3_HOURS": RotationCycle.THREE_HOURS,
    "4_HOURS": RotationCycle.FOUR_HOURS,
    "6_HOURS": RotationCycle.SIX_HOURS,
    "12_HOURS": RotationCycle.TWELVE_HOURS,
    "DAY": RotationCycle.DAILY,
    "WEEK": RotationCycle.WEEKLY,
    "MONTH": RotationCycle.MONTHLY,
    "NONE": RotationCycle.NEVER,
}

# cycle -> (unit, width) for the fixed-width sub-day cycles
_SUBDAY = {
    RotationCycle.TEN_MINUTES: ("minute", 10),
    RotationCycle.THIRTY_MINUTES: ("minute", 30),
    RotationCycle.HOURLY: ("hour", 1),
    RotationCycle.TWO_HOURS: ("hour", 2),
    RotationCycle.THREE_HOURS: ("hour", 3),
    RotationCycle.FOUR_HOURS: ("hour", 4),
    RotationCycle.SIX_HOURS: ("hour", 6),
    RotationCycle.TWELVE_HOURS: ("hour", 12),
}


def bucket(cycle: RotationCycle, at: datetime) -> Optional[Hashable]:
    """Key of the boundary-aligned bucket containing ``at`` (None for NEVER)."""
    if cycle == RotationCycle.NEVER:
        return None
    if cycle in _SUBDAY:
        unit, width = _SUBDAY[cycle]
        if unit == "minute":
            return (at.date(), at.hour, at.minute // width)
        return (at.date(), at.hour // width)
    if cycle == RotationCycle.DAILY:
        return at.date()
    if cycle == RotationCycle.WEEKLY:
        iso = at.isocalendar()
        return (iso[0], iso[1])
    return (at.year, at.month)


def boundary_crossed(cycle: RotationCycle, last: Optional[datetime], now: datetime) -> bool:
    """Pure predicate: True iff ``last`` and ``now`` fall in different buckets."""
    if cycle == RotationCycle.NEVER or last is None:
        return False
    return bucket(cycle, last) != bucket(cycle, now)


def next_boundary(cycle: RotationCycle, now: datetime) -> Optional[datetime]:
    """Start of the bucket following the one containing ``now``."""
    if cycle == RotationCycle.NEVER:
        return None
    if cycle in _SUBDAY:
        unit, width = _SUBDAY[cycle]
        if unit == "minute":
            start = now.replace(minute=(now.minute // width) * width, second=0, microsecond=0)
            return start + timedelta(minutes=width)
        start = now.replace(hour=(now.hour // width) * width, minute=0, second=0, microsecond=0)
        return start + timedelta(hours=width)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if cycle == RotationCycle.DAILY:
        return midnight + timedelta(days=1)
    if cycle == RotationCycle.WEEKLY:
        return midnight + timedelta(days=7 - now.weekday())
    if now.month == 12:
        return midnight.replace(year=now.year + 1, month=1, day=1)
    return midnight.replace(month=now.month + 1, day=1)


class SystemClock:
    """Wall-clock for rotation buckets, monotonic seconds for the rate window."""

    def now(self) -> datetime:
        return local_now()

    def monotonic(self) -> float:
        return monotonic()


class RotationClock:
    """Holds the baseline for :func:`boundary_crossed`.

    ``crossed()`` never advances an existing baseline; only ``advance()`` does, and the
    dispatcher calls it once a cycle actually runs. The first observation adopts ``now`` as
    baseline without triggering.
    """

    def __init__(self, cycle: RotationCycle | str, baseline: Optional[datetime] = None):
        self.cycle = RotationCycle.parse(cycle)
        self._baseline = baseline

    @property
    def baseline(self) -> Optional[datetime]:
        return self._baseline

    def crossed(self, now: datetime) -> bool:
        if self._baseline is None:
            self._baseline = now
            logger.debug(f"Rotation clock baseline initialized at {now.isoformat()}")
            return False
        hit = boundary_crossed(self.cycle, self._baseline, now)
        if hit:
            logger.debug(
                f"Rotation boundary crossed ({self.cycle.name}): "
                f"{self._baseline.isoformat()} -> {now.isoformat()}"
            )
        return hit

    def advance(self, now: datetime) -> None:
        self._baseline = now

    def next_send_time(self, now: datetime) -> Optional[datetime]:
        return next_boundary(self.cycle, now)
