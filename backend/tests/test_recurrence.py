from datetime import date

import pytest

from dockbook.models.slot import RecurringPattern
from dockbook.services.recurrence import occurrence_dates


def test_daily_includes_until_excludes_start():
    out = occurrence_dates(date(2030, 3, 1), RecurringPattern.DAILY, date(2030, 3, 4), 366)
    assert out == [date(2030, 3, 2), date(2030, 3, 3), date(2030, 3, 4)]


def test_weekly_steps_seven_days():
    out = occurrence_dates(date(2030, 3, 1), RecurringPattern.WEEKLY, date(2030, 3, 22), 366)
    assert out == [date(2030, 3, 8), date(2030, 3, 15), date(2030, 3, 22)]


def test_monthly_skips_short_months():
    out = occurrence_dates(date(2030, 1, 31), RecurringPattern.MONTHLY, date(2030, 6, 30), 366)
    assert out == [date(2030, 3, 31), date(2030, 5, 31)]


def test_monthly_crosses_year():
    out = occurrence_dates(date(2030, 11, 15), RecurringPattern.MONTHLY, date(2031, 2, 15), 366)
    assert out == [date(2030, 12, 15), date(2031, 1, 15), date(2031, 2, 15)]


def test_none_or_same_day_gives_nothing():
    assert occurrence_dates(date(2030, 1, 1), RecurringPattern.NONE, date(2030, 2, 1), 366) == []
    assert occurrence_dates(date(2030, 1, 1), RecurringPattern.DAILY, date(2030, 1, 1), 366) == []


def test_limit_exceeded():
    with pytest.raises(ValueError):
        occurrence_dates(date(2030, 1, 1), RecurringPattern.DAILY, date(2030, 1, 10), 5)
