from datetime import date
from decimal import Decimal

import pytest

from demo_generator.allocator import allocate, allocate_amount, growth_weights, plan_from_config
from demo_generator.config import normalize_config
from demo_generator.exceptions import ConfigError


def test_exponential_allocation_sums_exactly_and_grows():
    parts = allocate(2000, 6, "exponential", 15)
    assert sum(parts) == 2000
    assert parts == sorted(parts)
    assert parts[0] < parts[-1]


@pytest.mark.parametrize("curve", ["linear", "exponential", "logistic", "step"])
def test_every_curve_produces_normalized_weights(curve):
    weights = growth_weights(12, curve, 10, seasonality=True, first_month=3)
    assert len(weights) == 12
    assert sum(weights) == pytest.approx(1.0)


def test_zero_total_gives_zero_months():
    assert allocate(0, 4) == [0, 0, 0, 0]


def test_negative_total_is_rejected():
    with pytest.raises(ConfigError):
        allocate(-1, 3)


def test_amount_allocation_is_exact_to_the_cent():
    parts = allocate_amount(Decimal("1000.00"), [1 / 3, 1 / 3, 1 / 3])
    assert sum(parts) == Decimal("1000.00")
    assert all(p == p.quantize(Decimal("0.01")) for p in parts)


def test_plan_from_config_matches_configured_totals(growth_payload):
    config = normalize_config(growth_payload, today=date(2024, 6, 15))
    plan = plan_from_config(config)
    months = [m.metrics for m in plan.months]

    assert plan.month_keys == ["2024-01", "2024-02", "2024-03"]
    assert sum(m.leads_created for m in months) == 30
    assert sum(m.contacts_created for m in months) == 70
    assert sum(m.companies_created for m in months) == 12
    assert sum(m.closed_won_count for m in months) == 6
    assert sum(m.closed_won_value for m in months) == Decimal("20000.00")
    assert sum(m.pipeline_added_value for m in months) == Decimal("60000.00")
    for m in months:
        assert m.closed_won_count <= m.deals_created
        assert m.pipeline_added_value >= m.closed_won_value
        if m.closed_won_value > 0:
            assert m.closed_won_count > 0


def test_won_value_follows_won_deals():
    config = normalize_config(
        {
            "startDate": "2024-01-01",
            "months": 4,
            "targets": {"closedWonCount": 1, "closedWonValue": 5000, "pipelineValue": 9000},
            "growth": {"curve": "linear", "monthlyRate": 0, "seasonality": False},
        },
        today=date(2024, 6, 15),
    )
    plan = plan_from_config(config)
    for target in plan.months:
        m = target.metrics
        assert (m.closed_won_value > 0) == (m.closed_won_count > 0)
    assert sum(t.metrics.closed_won_value for t in plan.months) == Decimal("5000.00")
