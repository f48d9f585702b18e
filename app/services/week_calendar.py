from __future__ import annotations

"""Week arithmetic for the Sunday-based schedule calendar.

A week is identified by a ``WeekKey`` string, ``week_YYYY_MM_DD``, naming
the Sunday that starts it. Keys are derived from a signed week offset
relative to "today"; callers snapshot ``today`` once per request and pass
it down so one logical operation never straddles midnight.

Adjacent-day helpers are cyclic and report the week they land in, so the
Saturday -> Sunday and Sunday -> Saturday hops cross into the neighbouring
week's key.
"""

import re
from datetime import date, timedelta

from app.models.availability import DayOfWeek, ShiftKind

DAYS: tuple[DayOfWeek, ...] = tuple(DayOfWeek)
SHIFTS: tuple[ShiftKind, ...] = tuple(ShiftKind)

_WEEK_KEY_RE = re.compile(r"^week_(\d{4})_(\d{2})_(\d{2})$")


def _today(today: date | None) -> date:
    return today if today is not None else date.today()


def week_start(offset: int, today: date | None = None) -> date:
    """Return the Sunday starting the week ``offset`` weeks from today's week."""
    current = _today(today)
    days_since_sunday = (current.weekday() + 1) % 7
    return current - timedelta(days=days_since_sunday) + timedelta(weeks=offset)


def format_week_key(sunday: date) -> str:
    return f"week_{sunday:%Y_%m_%d}"


def week_key(offset: int, today: date | None = None) -> str:
    """Canonical identifier of the week ``offset`` weeks from the current one."""
    return format_week_key(week_start(offset, today))


def parse_week_key(key: str) -> date:
    """Return the Sunday encoded in ``key``.

    Raises:
        ValueError: If ``key`` is malformed or does not name a Sunday.
    """
    match = _WEEK_KEY_RE.match(key or "")
    if match is None:
        raise ValueError(f"Invalid week key: {key!r}")
    sunday = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    if sunday.weekday() != 6:
        raise ValueError(f"Week key {key!r} does not start on a Sunday")
    return sunday


def is_week_key(key: str) -> bool:
    try:
        parse_week_key(key)
    except ValueError:
        return False
    return True


def shift_week_key(key: str, delta: int) -> str:
    """Week key ``delta`` weeks after (negative: before) ``key``."""
    return format_week_key(parse_week_key(key) + timedelta(weeks=delta))


def week_range(offset: int, today: date | None = None) -> tuple[date, date]:
    """Sunday..Saturday (inclusive) of the week at ``offset``."""
    start = week_start(offset, today)
    return start, start + timedelta(days=6)


def week_range_for_key(key: str) -> tuple[date, date]:
    start = parse_week_key(key)
    return start, start + timedelta(days=6)


def format_range_label(start: date, end: date) -> str:
    return f"{start:%d/%m/%Y} - {end:%d/%m/%Y}"


def week_dates(offset: int, today: date | None = None) -> list[tuple[DayOfWeek, date]]:
    """Ordered (day, date) pairs for the seven days of the week at ``offset``."""
    start = week_start(offset, today)
    return [(day, start + timedelta(days=i)) for i, day in enumerate(DAYS)]


def week_offset_for_key(key: str, today: date | None = None) -> int:
    """Inverse of :func:`week_key`: how many weeks ``key`` lies from today's week."""
    return (parse_week_key(key) - week_start(0, today)).days // 7


def previous_day(day: DayOfWeek) -> DayOfWeek:
    return DAYS[(DAYS.index(day) - 1) % 7]


def next_day(day: DayOfWeek) -> DayOfWeek:
    return DAYS[(DAYS.index(day) + 1) % 7]


def previous_slot_day(key: str, day: DayOfWeek) -> tuple[str, DayOfWeek]:
    """Day before ``day`` together with the week it belongs to."""
    if day == DayOfWeek.SUNDAY:
        return shift_week_key(key, -1), DayOfWeek.SATURDAY
    return key, previous_day(day)


def next_slot_day(key: str, day: DayOfWeek) -> tuple[str, DayOfWeek]:
    """Day after ``day`` together with the week it belongs to."""
    if day == DayOfWeek.SATURDAY:
        return shift_week_key(key, 1), DayOfWeek.SUNDAY
    return key, next_day(day)
