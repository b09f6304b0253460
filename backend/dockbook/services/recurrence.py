from datetime import date, timedelta
import calendar

from ..models.slot import RecurringPattern


def _month_start(d: date, months: int) -> date:
    idx = d.month - 1 + months
    return date(d.year + idx // 12, idx % 12 + 1, 1)


def _add_months(d: date, months: int) -> date | None:
    """Same day-of-month `months` later, or None when that month is too short."""
    first = _month_start(d, months)
    if d.day > calendar.monthrange(first.year, first.month)[1]:
        return None
    return first.replace(day=d.day)


def occurrence_dates(start: date, pattern: RecurringPattern, until: date | None, limit: int) -> list[date]:
    """
    Dates of a recurring series after `start`, up to and including `until`.

    The first slot (on `start`) is not part of the result. Monthly series keep
    the day-of-month and skip months that do not have it. Raises ValueError
    when the series would exceed `limit` occurrences.
    """
    if pattern == RecurringPattern.NONE or until is None or until <= start:
        return []

    out: list[date] = []
    step = 1
    while True:
        if pattern == RecurringPattern.DAILY:
            d = start + timedelta(days=step)
        elif pattern == RecurringPattern.WEEKLY:
            d = start + timedelta(weeks=step)
        else:
            if _month_start(start, step) > until:
                break
            d = _add_months(start, step)
            if d is None:
                step += 1
                continue
        if d > until:
            break
        out.append(d)
        if len(out) > limit:
            raise ValueError(f"recurring series exceeds {limit} occurrences")
        step += 1
    return out
