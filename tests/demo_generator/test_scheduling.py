from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from demo_generator.rng import SeededRNG
from demo_generator.scheduling import (
    WEEKDAY_WEIGHTS,
    after_in_month,
    business_days,
    month_bounds,
    spread_over_days,
)


def test_business_days_skip_weekends():
    days = business_days("2024-02")
    assert len(days) == 21
    assert all(d.weekday() < 5 for d in days)


def test_small_counts_are_spread_across_the_month():
    per_day = Counter(spread_over_days(10, "2024-02"))

    assert sum(per_day.values()) == 10
    assert max(per_day.values()) == 1
    assert len(per_day) == 10


@pytest.mark.parametrize("count", [1, 20, 137, 1000])
def test_each_day_stays_within_one_of_its_share(count):
    days = business_days("2024-05")
    weights = [WEEKDAY_WEIGHTS[d.weekday()] for d in days]
    per_day = Counter(spread_over_days(count, "2024-05"))

    assert sum(per_day.values()) == count
    for day, weight in zip(days, weights):
        quota = count * weight / sum(weights)
        assert abs(per_day.get(day, 0) - quota) < 1


def test_dates_are_chronological():
    dates = spread_over_days(50, "2024-03")
    assert dates == sorted(dates)


def test_delay_inside_the_month_is_kept():
    anchor = datetime(2024, 2, 5, 10, tzinfo=timezone.utc)
    moment = after_in_month(anchor, timedelta(hours=30), "2024-02", SeededRNG("s"))
    assert moment == anchor + timedelta(hours=30)


def test_spill_over_is_resampled_before_month_end():
    rng = SeededRNG("s")
    anchor = datetime(2024, 2, 26, 10, tzinfo=timezone.utc)
    _, end = month_bounds("2024-02")

    moments = [after_in_month(anchor, timedelta(days=10), "2024-02", rng) for _ in range(50)]

    assert all(anchor <= m < end for m in moments)
    assert len(set(moments)) > 40


def test_anchor_on_the_last_second_stays_in_month():
    _, end = month_bounds("2024-02")
    anchor = end - timedelta(seconds=1)
    assert after_in_month(anchor, timedelta(hours=1), "2024-02", SeededRNG("s")) == anchor
