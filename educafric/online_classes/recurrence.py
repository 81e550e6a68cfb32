"""
Recurrence expansion: which calendar dates a ClassRecurrence rule produces.

Pure date arithmetic, no database access, so the rules are easy to test.
"""
from datetime import timedelta

from .models import WEEKDAY_NAMES


def weekday_name(day):
    return WEEKDAY_NAMES[day.weekday()]


def validate_by_day(by_day):
    """Return the list of invalid day names (empty when all are valid)."""
    return [d for d in by_day or [] if str(d).lower() not in WEEKDAY_NAMES]


def matches(rule_type, interval, by_day, start_date, day):
    """True when ``day`` is an occurrence of the rule anchored at ``start_date``."""
    if day < start_date:
        return False

    interval = max(int(interval or 1), 1)
    days_since = (day - start_date).days
    weeks_since = days_since // 7
    days = [d.lower() for d in by_day or []]
    name = weekday_name(day)

    if rule_type == 'daily':
        return days_since % interval == 0

    if rule_type == 'weekly':
        return name in days and weeks_since % interval == 0

    if rule_type == 'biweekly':
        if not days:
            days = [weekday_name(start_date)]
        return name in days and weeks_since % 2 == 0

    if rule_type == 'custom':
        return name in days and days_since % interval == 0

    return False


def generation_window(start_date, end_date, today, weeks_ahead):
    window_start = max(start_date, today)
    window_end = window_start + timedelta(days=7 * weeks_ahead)
    if end_date is not None and end_date < window_end:
        window_end = end_date
    return window_start, window_end


def occurrence_dates(rule_type, interval, by_day, start_date, end_date, today, weeks_ahead=4):
    """
    Dates of the rule inside the generation window, both ends included.

        >>> occurrence_dates('daily', 2, [], date(2025, 1, 1), None, date(2025, 1, 1), 1)
        [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 5), date(2025, 1, 7)]
    """
    window_start, window_end = generation_window(start_date, end_date, today, weeks_ahead)
    dates = []
    day = window_start
    while day <= window_end:
        if matches(rule_type, interval, by_day, start_date, day):
            dates.append(day)
        day += timedelta(days=1)
    return dates
