"""Time text parsing for upload listings.

Converts the display timestamps shown under each uploaded item into
absolute, timezone-aware datetimes. Supported shapes, in match order:

- ``刚刚`` / ``just now``
- ``30分钟前`` / ``30 minutes ago`` (also hours and days)
- ``2024-12-23`` / ``2024/12/23``
- ``11-01`` / ``11/01`` (assumed to be in the current year)

Anything else yields ``None`` so new shapes can be added without
changing the meaning of existing ones.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

JUST_NOW_MARKERS = ("刚刚", "just now")

# (pattern, unit) pairs for relative timestamps
RELATIVE_RES: tuple[tuple[re.Pattern[str], timedelta], ...] = (
    (re.compile(r'^(\d+)\s*分钟前$'), timedelta(minutes=1)),
    (re.compile(r'^(\d+)\s*小时前$'), timedelta(hours=1)),
    (re.compile(r'^(\d+)\s*天前$'), timedelta(days=1)),
    (re.compile(r'^(\d+)\s*(?:minute|min)s?\s+ago$', re.IGNORECASE), timedelta(minutes=1)),
    (re.compile(r'^(\d+)\s*(?:hour|hr)s?\s+ago$', re.IGNORECASE), timedelta(hours=1)),
    (re.compile(r'^(\d+)\s*days?\s+ago$', re.IGNORECASE), timedelta(days=1)),
)

# Matches full dates: 2024-12-23 or 2024/12/23
FULL_DATE_RE = re.compile(r'^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$')

# Matches month-day without year: 11-01 or 11/01
MONTH_DAY_RE = re.compile(r'^(\d{1,2})[-/](\d{1,2})$')


def _midnight(now: datetime, year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day, tzinfo=now.tzinfo)
    except ValueError:
        return None


def parse_time_text(text: str | None, now: datetime | None = None) -> datetime | None:
    """Parse a display timestamp into a datetime, or None if unrecognised.

    *now* anchors relative and year-less forms; it defaults to the current
    local time. Dates are returned at midnight in ``now``'s timezone.
    Out-of-range months and days are rejected rather than rolled over.
    """
    if not text:
        return None
    text = text.strip()
    if not text:
        return None
    if now is None:
        now = datetime.now().astimezone()

    if text.lower() in JUST_NOW_MARKERS:
        return now

    for pattern, unit in RELATIVE_RES:
        m = pattern.match(text)
        if m:
            return now - int(m.group(1)) * unit

    m = FULL_DATE_RE.match(text)
    if m:
        return _midnight(now, int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # No cross-year correction: "12-30" read in January is this year's date.
    m = MONTH_DAY_RE.match(text)
    if m:
        return _midnight(now, now.year, int(m.group(1)), int(m.group(2)))

    return None
