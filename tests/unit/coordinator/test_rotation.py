"""
Unit tests for RotationCycle parsing and the rotation clock.
"""

from datetime import datetime, timezone

import pytest

from log_mailer.coordinator import RotationClock, RotationCycle, boundary_crossed, next_boundary
from log_mailer.errors import ConfigurationError


def at(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HOURLY", RotationCycle.HOURLY),
        ("hour", RotationCycle.HOURLY),
        ("daily", RotationCycle.DAILY),
        ("30min", RotationCycle.THIRTY_MINUTES),
        ("ten-minutes", RotationCycle.TEN_MINUTES),
        ("3_hours", RotationCycle.THREE_HOURS),
        (RotationCycle.WEEKLY, RotationCycle.WEEKLY),
    ],
)
def test_parse_accepts_names_values_and_aliases(raw, expected):
    """Test cycle names, values and aliases all parse."""
    assert RotationCycle.parse(raw) is expected


def test_parse_unknown_cycle_raises():
    """Test an unknown cycle is a configuration error, not a silent default."""
    with pytest.raises(ConfigurationError):
        RotationCycle.parse("fortnightly")


def test_hourly_boundary():
    """Test hourly crossing is aligned to the wall clock hour."""
    c = RotationCycle.HOURLY
    assert not boundary_crossed(c, at(2024, 1, 1, 10, 0), at(2024, 1, 1, 10, 59, 59))
    assert boundary_crossed(c, at(2024, 1, 1, 10, 59), at(2024, 1, 1, 11, 0, 1))
    # same hour on a different day still crosses
    assert boundary_crossed(c, at(2024, 1, 1, 10, 5), at(2024, 1, 2, 10, 5))


def test_sub_hour_and_multi_hour_buckets():
    """Test 30-minute and 6-hour buckets."""
    assert not boundary_crossed(
        RotationCycle.THIRTY_MINUTES, at(2024, 1, 1, 10, 0), at(2024, 1, 1, 10, 29)
    )
    assert boundary_crossed(
        RotationCycle.THIRTY_MINUTES, at(2024, 1, 1, 10, 29), at(2024, 1, 1, 10, 30)
    )
    assert not boundary_crossed(
        RotationCycle.SIX_HOURS, at(2024, 1, 1, 6, 0), at(2024, 1, 1, 11, 59)
    )
    assert boundary_crossed(RotationCycle.SIX_HOURS, at(2024, 1, 1, 11, 59), at(2024, 1, 1, 12, 0))


def test_weekly_monthly_daily():
    """Test calendar buckets: ISO week, month and date."""
    # 2024-01-07 is a Sunday, 2024-01-08 a Monday
    assert boundary_crossed(RotationCycle.WEEKLY, at(2024, 1, 7, 23), at(2024, 1, 8, 0, 1))
    assert not boundary_crossed(RotationCycle.WEEKLY, at(2024, 1, 8), at(2024, 1, 14, 23))
    assert boundary_crossed(RotationCycle.MONTHLY, at(2024, 1, 31), at(2024, 2, 1))
    assert not boundary_crossed(RotationCycle.DAILY, at(2024, 1, 1, 0, 1), at(2024, 1, 1, 23, 59))


def test_never_cycle_never_crosses():
    """Test NEVER has no boundaries and no next send time."""
    assert not boundary_crossed(RotationCycle.NEVER, at(2020, 1, 1), at(2030, 1, 1))
    assert next_boundary(RotationCycle.NEVER, at(2024, 1, 1)) is None


def test_next_boundary():
    """Test next boundary is the start of the following bucket."""
    now = at(2024, 12, 31, 22, 17, 5)
    assert next_boundary(RotationCycle.HOURLY, now) == at(2024, 12, 31, 23)
    assert next_boundary(RotationCycle.TEN_MINUTES, now) == at(2024, 12, 31, 22, 20)
    assert next_boundary(RotationCycle.FOUR_HOURS, now) == at(2025, 1, 1)
    assert next_boundary(RotationCycle.DAILY, now) == at(2025, 1, 1)
    assert next_boundary(RotationCycle.MONTHLY, now) == at(2025, 1, 1)


def test_clock_first_observation_adopts_baseline():
    """Test the first check initializes the baseline without triggering."""
    clock = RotationClock("HOURLY")
    assert clock.baseline is None
    assert clock.crossed(at(2024, 1, 1, 10, 15)) is False
    assert clock.baseline == at(2024, 1, 1, 10, 15)


def test_clock_crossed_does_not_advance_baseline():
    """Test only advance() moves the baseline, so repeated checks keep reporting."""
    clock = RotationClock(RotationCycle.HOURLY, baseline=at(2024, 1, 1, 10, 15))
    assert clock.crossed(at(2024, 1, 1, 11, 0))
    assert clock.crossed(at(2024, 1, 1, 11, 5))
    clock.advance(at(2024, 1, 1, 11, 5))
    assert not clock.crossed(at(2024, 1, 1, 11, 30))
