from datetime import date

from demo_generator.config import MonthlyPlan
from demo_generator.plan_validator import estimate_generation_seconds, validate_plan

TODAY = date(2024, 6, 15)


def _plan(*months):
    return MonthlyPlan.from_dict({"months": list(months)})


def test_valid_plan_has_an_estimate(monthly_plan):
    result = validate_plan(MonthlyPlan.from_dict(monthly_plan), today=TODAY)
    assert result.valid
    assert result.errors == []
    assert result.estimated_generation_seconds > 0
    assert result.derived["totals"]["contactsCreated"] == 64
    assert result.derived["overallWinRate"] == 37.5


def test_won_deals_above_created_deals_is_an_error():
    result = validate_plan(
        _plan({"month": "2024-01", "targets": {"dealsCreated": 10, "closedWonCount": 12}}),
        today=TODAY,
    )
    assert not result.valid
    message = result.errors[0].message
    assert "12" in message and "10" in message and "2024-01" in message
    assert result.errors[0].path == "months[0].targets.closedWonCount"


def test_month_level_errors():
    result = validate_plan(
        _plan(
            {"month": "2024-13", "targets": {}},
            {"month": "2024-03", "targets": {"leadsCreated": 9, "contactsCreated": 4}},
            {"month": "2024-03", "targets": {"closedWonValue": 100}},
            {"month": "2024-07", "targets": {}},
        ),
        today=TODAY,
    )
    messages = [e.message for e in result.errors]
    assert any("2024-13" in m for m in messages)
    assert any("leads" in m for m in messages)
    assert any("plusieurs fois" in m for m in messages)
    assert any("sans aucune affaire gagnee" in m for m in messages)
    assert any("futur" in m for m in messages)


def test_empty_and_oversized_plans_are_rejected():
    assert not validate_plan(_plan(), today=TODAY).valid
    months = [{"month": f"{2020 + i // 12}-{i % 12 + 1:02d}", "targets": {}} for i in range(25)]
    result = validate_plan(_plan(*months), today=TODAY)
    assert any("maximum 24" in e.message for e in result.errors)


def test_growth_spike_is_only_a_warning():
    result = validate_plan(
        _plan(
            {"month": "2024-01", "targets": {"contactsCreated": 10}},
            {"month": "2024-02", "targets": {"contactsCreated": 50}},
        ),
        today=TODAY,
    )
    assert result.valid
    assert any("400%" in w.message for w in result.warnings)


def test_estimate_counts_default_activities():
    plan = _plan({"month": "2024-01", "targets": {"contactsCreated": 100}})
    # 100 contacts + 200 activities at 100 records/s, plus 2s per month
    assert estimate_generation_seconds(plan) == 5
