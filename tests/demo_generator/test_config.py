from datetime import date
from decimal import Decimal

import pytest

from demo_generator.config import (
    MonthlyMetrics,
    MonthlyPlan,
    PatchPlan,
    ToleranceConfig,
    normalize_config,
    parse_generation_request,
)
from demo_generator.exceptions import ConfigError

TODAY = date(2024, 6, 15)


def test_defaults_cover_the_last_twelve_months():
    config = normalize_config({}, today=TODAY)
    assert config.start_date == date(2023, 7, 1)
    assert config.months == 12
    assert config.month_keys[0] == "2023-07"
    assert config.month_keys[-1] == "2024-06"
    assert config.currency == "USD"


def test_partial_config_is_deep_merged():
    config = normalize_config({"targets": {"contacts": 10}, "country": "fr"}, today=TODAY)
    assert config.targets.contacts == 10
    assert config.targets.companies == 200
    assert config.country == "FR"
    assert config.currency == "EUR"
    assert config.timezone == "Europe/Paris"


def test_channel_mix_is_replaced_as_a_whole():
    config = normalize_config({"channelMix": {"direct": 100}}, today=TODAY)
    assert config.channel_mix == {"direct": 100.0}


@pytest.mark.parametrize(
    "partial",
    [
        {"industry": "mining"},
        {"teamSize": 0},
        {"targets": {"contacts": -1}},
        {"targets": {"pipelineValue": 100, "closedWonValue": 200}},
        {"targets": {"closedWonValue": 100, "closedWonCount": 0}},
        {"growth": {"curve": "zigzag"}},
        {"growth": {"monthlyRate": -100}},
        {"channelMix": {"seo": 50, "direct": 40}},
        {"realism": {"whaleRatio": 120}},
        {"startDate": "2022-01-01", "months": 30},
        {"startDate": "2024-05-01", "months": 3},
    ],
)
def test_invalid_configs_are_rejected(partial):
    with pytest.raises(ConfigError):
        normalize_config(partial, today=TODAY)


def test_leads_may_exceed_qualified_contacts():
    config = normalize_config({"targets": {"leads": 2000, "contacts": 500}}, today=TODAY)
    assert config.targets.leads == 2000


def test_metrics_accept_camel_and_snake_case():
    metrics = MonthlyMetrics.from_dict({"contactsCreated": 3, "closed_won_value": "10.5"})
    assert metrics.contacts_created == 3
    assert metrics.closed_won_value == Decimal("10.50")
    assert metrics.to_dict() == {"contactsCreated": 3, "closedWonValue": 10.5}


def test_unknown_metric_is_rejected():
    with pytest.raises(ConfigError):
        MonthlyMetrics.from_dict({"revenue": 1})


def test_monthly_plan_round_trips_through_its_dict_form(monthly_plan):
    plan = MonthlyPlan.from_dict(monthly_plan)
    again = MonthlyPlan.from_dict(plan.to_dict())
    assert again.month_keys == ["2024-01", "2024-02", "2024-03"]
    assert again.months[2].metrics.contacts_created == 24


def test_tolerance_checks_counts_and_values():
    tolerances = ToleranceConfig(count_tolerance=1, value_tolerance=Decimal("0.01"))
    assert tolerances.within("contacts_created", 11, 10)
    assert not tolerances.within("contacts_created", 12, 10)
    assert tolerances.within("closed_won_value", Decimal("1009"), Decimal("1000"))
    assert not tolerances.within("closed_won_value", Decimal("1011"), Decimal("1000"))


def test_patch_plan_rejects_unknown_mode():
    with pytest.raises(ConfigError):
        PatchPlan.from_dict({"mode": "delete", "months": []})


def test_monthly_plan_request_ignores_window_settings(monthly_payload):
    request = parse_generation_request({**monthly_payload, "months": 99}, today=TODAY)
    assert request.mode == "monthly-plan"
    assert request.plan.month_keys == ["2024-01", "2024-02", "2024-03"]
    assert request.seed == monthly_payload["seed"]


def test_monthly_plan_mode_requires_a_plan():
    with pytest.raises(ConfigError):
        parse_generation_request({"mode": "monthly-plan"}, today=TODAY)
