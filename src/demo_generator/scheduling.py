"""Intra-month scheduling: business-day spreading and timestamps.

All timestamps are UTC so that every generated record lands in the KPI month
it was generated for.
"""
from __future__ import annotations

import calendar
import math
from datetime import date, datetime, time, timedelta, timezone as dt_timezone


# Monday first. Weekends get no activity.
WEEKDAY_WEIGHTS = (0.8, 1.2, 1.2, 1.2, 0.6, 0.0, 0.0)
BUSINESS_HOURS = (9, 18)


def parse_month(month: str) -> tuple[int, int]:
    return int(month[:4]), int(month[5:7])


def month_bounds(month: str) -> tuple[datetime, datetime]:
    year, mon = parse_month(month)
    start = datetime(year, mon, 1, tzinfo=dt_timezone.utc)
    if mon == 12:
        end = datetime(year + 1, 1, 1, tzinfo=dt_timezone.utc)
    else:
        end = datetime(year, mon + 1, 1, tzinfo=dt_timezone.utc)
    return start, end


def business_days(month: str) -> list[date]:
    year, mon = parse_month(month)
    days = [date(year, mon, d) for d in range(1, calendar.monthrange(year, mon)[1] + 1)]
    return [d for d in days if WEEKDAY_WEIGHTS[d.weekday()] > 0]


def spread_over_days(count: int, month: str) -> list[date]:
    """Return ``count`` dates (chronological) weighted towards mid-week.

    Each business day receives its weighted share rounded by largest
    remainder, so no day is more than one record away from its quota.
    """
    if count <= 0:
        return []
    days = business_days(month)
    weights = [WEEKDAY_WEIGHTS[d.weekday()] for d in days]
    total = sum(weights)
    quotas = [count * w / total for w in weights]
    per_day = [math.floor(q) for q in quotas]
    by_remainder = sorted(range(len(days)), key=lambda i: (per_day[i] - quotas[i], i))
    for i in by_remainder[: count - sum(per_day)]:
        per_day[i] += 1
    slots = []
    for day, n in zip(days, per_day):
        slots.extend([day] * n)
    return slots


def timestamp_on(day: date, rng) -> datetime:
    """Random moment within business hours on ``day``."""
    start_hour, end_hour = BUSINESS_HOURS
    seconds = rng.int(0, (end_hour - start_hour) * 3600 - 1)
    return datetime.combine(day, time(start_hour), tzinfo=dt_timezone.utc) + timedelta(seconds=seconds)


def after_in_month(anchor: datetime, delay: timedelta, month: str, rng) -> datetime:
    """``anchor + delay``, or a random later moment of the month when that spills over."""
    start, end = month_bounds(month)
    anchor = min(max(anchor, start), end - timedelta(seconds=1))
    moment = anchor + delay
    if moment < end:
        return moment
    remaining = int((end - anchor).total_seconds())
    return anchor + timedelta(seconds=rng.int(0, remaining - 1))
