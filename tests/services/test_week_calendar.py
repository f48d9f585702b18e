from datetime import date

import pytest

from app.models.availability import DayOfWeek
from app.services.week_calendar import (
    format_range_label,
    is_week_key,
    next_slot_day,
    parse_week_key,
    previous_slot_day,
    shift_week_key,
    week_dates,
    week_key,
    week_offset_for_key,
    week_range,
    week_start,
)


# Wednesday
TODAY = date(2025, 8, 6)


def test_week_start_is_sunday_of_current_week():
    assert week_start(0, TODAY) == date(2025, 8, 3)
    assert week_start(1, TODAY) == date(2025, 8, 10)
    assert week_start(-1, TODAY) == date(2025, 7, 27)


def test_week_start_on_sunday_and_saturday():
    assert week_start(0, date(2025, 8, 3)) == date(2025, 8, 3)
    assert week_start(0, date(2025, 8, 9)) == date(2025, 8, 3)


def test_week_key_format():
    assert week_key(0, TODAY) == "week_2025_08_03"
    assert week_key(2, TODAY) == "week_2025_08_17"


def test_week_key_crosses_year_boundary():
    assert week_key(0, date(2025, 12, 31)) == "week_2025_12_28"
    assert week_key(1, date(2025, 12, 31)) == "week_2026_01_04"


def test_week_range_and_label():
    start, end = week_range(0, TODAY)
    assert (start, end) == (date(2025, 8, 3), date(2025, 8, 9))
    assert format_range_label(start, end) == "03/08/2025 - 09/08/2025"


def test_week_dates_are_ordered_sunday_first():
    dates = week_dates(0, TODAY)
    assert [d for d, _ in dates] == list(DayOfWeek)
    assert dates[0][1] == date(2025, 8, 3)
    assert dates[-1][1] == date(2025, 8, 9)


def test_parse_week_key_rejects_malformed_and_non_sunday():
    assert parse_week_key("week_2025_08_03") == date(2025, 8, 3)
    with pytest.raises(ValueError):
        parse_week_key("2025-08-03")
    with pytest.raises(ValueError):
        parse_week_key("week_2025_08_04")
    assert not is_week_key("week_2025_13_01")
    assert is_week_key("week_2025_08_03")


def test_offset_round_trip():
    for offset in (-3, 0, 5):
        assert week_offset_for_key(week_key(offset, TODAY), TODAY) == offset


def test_shift_week_key():
    assert shift_week_key("week_2025_08_03", -1) == "week_2025_07_27"
    assert shift_week_key("week_2025_12_28", 1) == "week_2026_01_04"


def test_neighbouring_days_cross_week_boundary():
    assert previous_slot_day("week_2025_08_03", DayOfWeek.SUNDAY) == (
        "week_2025_07_27",
        DayOfWeek.SATURDAY,
    )
    assert next_slot_day("week_2025_08_03", DayOfWeek.SATURDAY) == (
        "week_2025_08_10",
        DayOfWeek.SUNDAY,
    )
    assert next_slot_day("week_2025_08_03", DayOfWeek.MONDAY) == (
        "week_2025_08_03",
        DayOfWeek.TUESDAY,
    )
