"""Turn free-text "Resets ..." phrases into absolute timestamps.

Matchers are tried in a fixed order and the first one that returns a value
wins:

1. relative duration   ``Resets in 2h 15m`` / ``Resets in 45m``
2. clock time          ``Resets 11am`` / ``Resets 8:30pm``
3. month, day, time    ``Resets Dec 22 at 8pm`` / ``Resets Jan 15, 3:30pm``

When none match, the category default applies: sessions reset five hours
from now, weekly and model quotas on the next Monday at 12:59.

Elapsed-time results (durations, the session default) are computed on the
absolute timeline. Wall-clock results (clock times, dates, Monday 12:59) are
computed on ``now``'s local clock, so they stay correct across DST changes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from usage_probe.models import UsageCategory

logger = logging.getLogger(__name__)

SESSION_WINDOW = timedelta(hours=5)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_DURATION = re.compile(
    r"(\d+)\s*h(?:ours?|rs?)?\b(?:\s*(\d+)\s*m(?:in(?:ute)?s?)?\b)?"
    r"|(\d+)\s*m(?:in(?:ute)?s?)?\b",
    re.IGNORECASE,
)
_CLOCK_TIME = re.compile(r"resets?\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_MONTH_DAY = re.compile(
    r"\b([A-Za-z]{3})[a-z]*\.?\s+(\d{1,2})(?:st|nd|rd|th)?(?:\s+at\s+|\s*,\s*|\s+)"
    r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b",
    re.IGNORECASE,
)

Matcher = Callable[[str, datetime], "datetime | None"]


def _after(now: datetime, delta: timedelta) -> datetime:
    """``now + delta`` in elapsed time, shown in ``now``'s timezone."""
    if now.tzinfo is None:
        return now + delta
    return (now.astimezone(timezone.utc) + delta).astimezone(now.tzinfo)


def _localize(now: datetime, wall: datetime) -> datetime:
    """Attach ``now``'s timezone to the naive wall-clock time ``wall``.

    ``datetime.now().astimezone()`` carries a fixed offset. When that offset
    is the host's own, ``wall`` is re-localized through the host zone so a
    DST change between ``now`` and ``wall`` picks up the right offset.
    """
    if isinstance(now.tzinfo, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        return wall.astimezone()
    return wall.replace(tzinfo=now.tzinfo)


def _to_24h(hour: int, meridiem: str) -> int:
    """12-hour clock to 24-hour: 12am -> 0, 12pm -> 12."""
    hour %= 12
    if meridiem.lower() == "pm":
        hour += 12
    return hour


def match_duration(text: str, now: datetime) -> datetime | None:
    m = _DURATION.search(text)
    if not m:
        return None
    if m.group(1) is not None:
        delta = timedelta(hours=int(m.group(1)), minutes=int(m.group(2) or 0))
    else:
        delta = timedelta(minutes=int(m.group(3)))
    return _after(now, delta)


def match_clock_time(text: str, now: datetime) -> datetime | None:
    m = _CLOCK_TIME.search(text)
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2) or 0)
    if hour > 12 or minute > 59:
        return None
    wall_now = now.replace(tzinfo=None)
    target = wall_now.replace(hour=_to_24h(hour, m.group(3)), minute=minute, second=0, microsecond=0)
    if target <= wall_now:
        target += timedelta(days=1)
    return _localize(now, target)


def match_month_day(text: str, now: datetime) -> datetime | None:
    m = _MONTH_DAY.search(text)
    if not m:
        return None
    month = _MONTHS.get(m.group(1).lower())
    if month is None:
        return None
    hour, minute = int(m.group(3)), int(m.group(4) or 0)
    if hour > 12 or minute > 59:
        return None
    try:
        wall_now = now.replace(tzinfo=None)
        target = wall_now.replace(
            month=month,
            day=int(m.group(2)),
            hour=_to_24h(hour, m.group(5)),
            minute=minute,
            second=0,
            microsecond=0,
        )
        if target < wall_now:
            target = target.replace(year=target.year + 1)
    except ValueError:
        # Feb 30, or Feb 29 rolling into a non-leap year
        return None
    return _localize(now, target)


MATCHERS: tuple[Matcher, ...] = (match_duration, match_clock_time, match_month_day)


def next_monday_1259(now: datetime) -> datetime:
    """The upcoming Monday at 12:59; on a Monday this is a week away."""
    days_until_monday = (1 + 7 - (now.isoweekday() % 7)) % 7 or 7
    target = now.replace(tzinfo=None) + timedelta(days=days_until_monday)
    return _localize(now, target.replace(hour=12, minute=59, second=0, microsecond=0))


def default_reset_time(category: UsageCategory, now: datetime | None = None) -> datetime:
    now = now or datetime.now().astimezone()
    if category is UsageCategory.SESSION:
        return _after(now, SESSION_WINDOW)
    return next_monday_1259(now)


def resolve_reset_time(
    text: str,
    category: UsageCategory,
    now: datetime | None = None,
) -> datetime:
    """Resolve ``text`` against ``now``; never returns None."""
    now = now or datetime.now().astimezone()
    if text:
        for matcher in MATCHERS:
            result = matcher(text, now)
            if result is not None:
                return result
        logger.debug("No reset pattern matched %r, using %s default", text, category.value)
    return default_reset_time(category, now)
