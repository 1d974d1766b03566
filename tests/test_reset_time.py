"""Tests for the reset-time phrase resolver."""

from __future__ import annotations

import os
import time
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from usage_probe.models import UsageCategory
from usage_probe.parsing.reset_time import (
    default_reset_time,
    match_clock_time,
    match_duration,
    match_month_day,
    next_monday_1259,
    resolve_reset_time,
)

UTC = timezone.utc


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestDuration:
    def test_hours_and_minutes(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert resolve_reset_time("Resets in 2h 15m", UsageCategory.SESSION, now) == _utc(2024, 1, 10, 12, 15)

    def test_minutes_only(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert resolve_reset_time("Resets in 45m", UsageCategory.SESSION, now) == _utc(2024, 1, 10, 10, 45)

    def test_long_form(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert match_duration("resets in 3 hours 5 min", now) == _utc(2024, 1, 10, 13, 5)

    def test_hours_only(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert match_duration("Resets in 4h", now) == _utc(2024, 1, 10, 14, 0)

    def test_clock_time_is_not_a_duration(self) -> None:
        assert match_duration("Resets 11am", _utc(2024, 1, 10, 10, 0)) is None


class TestClockTime:
    def test_already_passed_rolls_to_tomorrow(self) -> None:
        now = _utc(2024, 1, 10, 15, 0)
        assert resolve_reset_time("Resets 11am", UsageCategory.SESSION, now) == _utc(2024, 1, 11, 11, 0)

    def test_later_today(self) -> None:
        now = _utc(2024, 1, 10, 9, 0)
        assert match_clock_time("Resets 8:30pm", now) == _utc(2024, 1, 10, 20, 30)

    def test_twelve_am_is_midnight(self) -> None:
        now = _utc(2024, 1, 10, 9, 0)
        assert match_clock_time("Resets 12am", now) == _utc(2024, 1, 11, 0, 0)

    def test_twelve_pm_is_noon(self) -> None:
        now = _utc(2024, 1, 10, 9, 0)
        assert match_clock_time("Resets 12pm", now) == _utc(2024, 1, 10, 12, 0)

    def test_timezone_annotation_ignored(self) -> None:
        now = _utc(2024, 1, 10, 9, 0)
        assert match_clock_time("Resets 7pm (America/New_York)", now) == _utc(2024, 1, 10, 19, 0)

    def test_exact_now_rolls_forward(self) -> None:
        now = _utc(2024, 1, 10, 11, 0)
        assert match_clock_time("Resets 11am", now) == _utc(2024, 1, 11, 11, 0)

    def test_end_of_month_rollover(self) -> None:
        now = _utc(2024, 1, 31, 23, 0)
        assert match_clock_time("Resets 1am", now) == _utc(2024, 2, 1, 1, 0)


class TestMonthDay:
    def test_past_date_rolls_to_next_year(self) -> None:
        now = _utc(2024, 6, 1, 0, 0)
        result = resolve_reset_time("Resets Jan 15, 3:30pm", UsageCategory.WEEKLY, now)
        assert result == _utc(2025, 1, 15, 15, 30)

    def test_at_form(self) -> None:
        now = _utc(2024, 12, 1, 0, 0)
        assert match_month_day("Resets Dec 22 at 8pm", now) == _utc(2024, 12, 22, 20, 0)

    def test_future_date_same_year(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert match_month_day("Resets Jan 15, 3:30pm (Europe/London)", now) == _utc(2024, 1, 15, 15, 30)

    def test_case_insensitive_month(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert match_month_day("resets FEB 3, 9am", now) == _utc(2024, 2, 3, 9, 0)

    def test_unknown_month_word(self) -> None:
        assert match_month_day("Resets Foo 3, 9am", _utc(2024, 1, 10)) is None

    def test_impossible_date_falls_back_to_default(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        result = resolve_reset_time("Resets Feb 30, 9am", UsageCategory.WEEKLY, now)
        assert result == _utc(2024, 1, 15, 12, 59)


class TestOrdering:
    def test_first_matching_pattern_wins(self) -> None:
        # Has both a duration and a clock time; duration is tried first
        now = _utc(2024, 1, 10, 10, 0)
        result = resolve_reset_time("Resets 3pm (in 1h 30m)", UsageCategory.SESSION, now)
        assert result == _utc(2024, 1, 10, 11, 30)


class TestDefaults:
    def test_session_default_is_five_hours(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert resolve_reset_time("", UsageCategory.SESSION, now) == now + timedelta(hours=5)

    def test_unparseable_session_text(self) -> None:
        now = _utc(2024, 1, 10, 10, 0)
        assert resolve_reset_time("Resets soon", UsageCategory.SESSION, now) == _utc(2024, 1, 10, 15, 0)

    def test_weekly_on_monday_rolls_to_next_week(self) -> None:
        now = _utc(2024, 1, 8, 9, 0)  # Monday
        assert resolve_reset_time("", UsageCategory.WEEKLY, now) == _utc(2024, 1, 15, 12, 59)

    def test_model_uses_weekly_default(self) -> None:
        now = _utc(2024, 1, 8, 9, 0)
        assert default_reset_time(UsageCategory.MODEL, now) == _utc(2024, 1, 15, 12, 59)

    @pytest.mark.parametrize(
        "now, expected",
        [
            (_utc(2024, 1, 7, 18, 0), _utc(2024, 1, 8, 12, 59)),  # Sunday
            (_utc(2024, 1, 10, 10, 0), _utc(2024, 1, 15, 12, 59)),  # Wednesday
            (_utc(2024, 1, 13, 23, 59), _utc(2024, 1, 15, 12, 59)),  # Saturday
        ],
    )
    def test_next_monday(self, now: datetime, expected: datetime) -> None:
        assert next_monday_1259(now) == expected

    def test_keeps_timezone_of_now(self) -> None:
        tz = timezone(timedelta(hours=-5))
        now = datetime(2024, 1, 10, 10, 0, tzinfo=tz)
        result = next_monday_1259(now)
        assert result.utcoffset() == timedelta(hours=-5)
        assert (result.hour, result.minute) == (12, 59)


NEW_YORK = ZoneInfo("America/New_York")


@pytest.fixture
def host_in_new_york() -> Iterator[None]:
    """Point the host's local zone at America/New_York for one test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is POSIX only")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    try:
        yield
    finally:
        if previous is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = previous
        time.tzset()


class TestDaylightSaving:
    # US clocks fall back on Sun 2024-11-03, 02:00 EDT -> 01:00 EST

    def test_next_monday_with_zoneinfo_now(self) -> None:
        now = datetime(2024, 11, 1, 9, 0, tzinfo=NEW_YORK)  # Friday, EDT
        result = next_monday_1259(now)
        assert result == datetime(2024, 11, 4, 12, 59, tzinfo=NEW_YORK)
        assert result.utcoffset() == timedelta(hours=-5)

    def test_next_monday_with_host_local_fixed_offset(self, host_in_new_york: None) -> None:
        now = datetime(2024, 11, 1, 9, 0, tzinfo=NEW_YORK).astimezone()
        assert now.utcoffset() == timedelta(hours=-4)

        result = default_reset_time(UsageCategory.WEEKLY, now)
        assert (result.hour, result.minute) == (12, 59)
        assert result.utcoffset() == timedelta(hours=-5)
        assert result == datetime(2024, 11, 4, 17, 59, tzinfo=UTC)

    def test_clock_time_rolls_over_the_change(self) -> None:
        now = datetime(2024, 11, 2, 20, 0, tzinfo=NEW_YORK)
        result = resolve_reset_time("Resets 7pm", UsageCategory.SESSION, now)
        assert result == datetime(2024, 11, 4, 0, 0, tzinfo=UTC)  # 7pm EST

    def test_session_default_is_elapsed_time(self) -> None:
        now = datetime(2024, 11, 3, 0, 30, tzinfo=NEW_YORK)  # 04:30 UTC
        result = default_reset_time(UsageCategory.SESSION, now)
        assert result == datetime(2024, 11, 3, 9, 30, tzinfo=UTC)

    def test_duration_is_elapsed_time(self) -> None:
        now = datetime(2024, 11, 3, 0, 30, tzinfo=NEW_YORK)
        result = resolve_reset_time("Resets in 3h", UsageCategory.SESSION, now)
        assert result == datetime(2024, 11, 3, 7, 30, tzinfo=UTC)
