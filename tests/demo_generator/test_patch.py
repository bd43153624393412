from datetime import date
from decimal import Decimal

import pytest

from crm.models import Tenant
from demo_generator.config import MonthlyMetrics, PatchPlan
from demo_generator.exceptions import TenantIneligibleError
from demo_generator.kpi import KpiSnapshot
from demo_generator.models import DemoTenantMetadata
from demo_generator.patch import compute_deltas, generate_preview, validate_demo_tenant, validate_patch_plan

TODAY = date(2024, 6, 15)


def _current(month="2024-02", **metrics):
    values = MonthlyMetrics.zero()
    for name, value in metrics.items():
        setattr(values, name, value)
    return [KpiSnapshot(month, values)]


def _plan(mode="additive", plan_type="targets", tolerances=None, **targets):
    data = {"mode": mode, "planType": plan_type, "months": [{"month": "2024-02", "targets": targets}]}
    if tolerances:
        data["tolerances"] = tolerances
    return PatchPlan.from_dict(data)


class TestComputeDeltas:
    def test_target_above_current_gives_positive_delta(self):
        result = compute_deltas(_plan(contactsCreated=80), _current(contacts_created=50))
        assert result.blockers == []
        assert result.deltas["2024-02"] == {"contacts_created": 30}

    def test_target_below_current_is_blocked_in_additive_mode(self):
        result = compute_deltas(_plan(contactsCreated=40), _current(contacts_created=50))
        assert result.deltas["2024-02"] == {}
        assert len(result.blockers) == 1
        assert "contactsCreated" in result.blockers[0].message

    def test_reconcile_reports_required_deletion(self):
        result = compute_deltas(_plan(mode="reconcile", contactsCreated=40), _current(contacts_created=50))
        assert "suppression" in result.blockers[0].message

    def test_negative_delta_within_tolerance_becomes_zero(self):
        plan = _plan(tolerances={"countTolerance": 2, "valueTolerance": 0.01}, contactsCreated=49, closedWonValue=995)
        result = compute_deltas(plan, _current(contacts_created=50, closed_won_value=Decimal("1000.00")))
        assert result.blockers == []
        assert result.deltas["2024-02"] == {"contacts_created": 0, "closed_won_value": Decimal("0.00")}

    def test_deltas_plan_uses_values_as_given(self):
        result = compute_deltas(_plan(plan_type="deltas", companiesCreated=7), _current(companies_created=100))
        assert result.deltas["2024-02"] == {"companies_created": 7}

    def test_metrics_only_accepts_closed_won_in_both_directions(self):
        plan = _plan(mode="metrics-only", plan_type="deltas", closedWonCount=-2, closedWonValue=1500, contactsCreated=5)
        result = compute_deltas(plan, _current(closed_won_count=10))
        assert result.deltas["2024-02"] == {"closed_won_count": -2, "closed_won_value": Decimal("1500.00")}
        assert len(result.blockers) == 1
        assert "metrics-only" in result.blockers[0].message


class TestPreview:
    def test_contacts_bring_default_activities(self):
        plan = _plan(contactsCreated=80)
        current = _current(contacts_created=50)
        preview = generate_preview(plan, current, compute_deltas(plan, current))
        assert preview.estimated_records == {"contacts": 30, "companies": 0, "deals": 0, "activities": 60}
        assert preview.affected_months == ["2024-02"]
        assert preview.estimated_duration_seconds == 10

    def test_won_count_above_new_deals_creates_extra_deals(self):
        plan = _plan(plan_type="deltas", dealsCreated=2, closedWonCount=5)
        current = _current()
        preview = generate_preview(plan, current, compute_deltas(plan, current))
        assert preview.estimated_records["deals"] == 5
        assert any("gagnee" in w.message for w in preview.warnings)

    def test_metrics_only_creates_no_records(self):
        plan = _plan(mode="metrics-only", plan_type="deltas", closedWonCount=3)
        current = _current()
        preview = generate_preview(plan, current, compute_deltas(plan, current))
        assert preview.total_records == 0
        assert preview.estimated_duration_seconds == 10

    def test_large_patch_warns_and_scales_duration(self):
        plan = _plan(plan_type="deltas", contactsCreated=5000)
        current = _current()
        preview = generate_preview(plan, current, compute_deltas(plan, current))
        assert preview.total_records == 15000
        assert preview.estimated_duration_seconds == 152
        assert any("volumineux" in w.message for w in preview.warnings)

    def test_empty_patch_warns(self):
        plan = _plan(contactsCreated=50)
        current = _current(contacts_created=50)
        preview = generate_preview(plan, current, compute_deltas(plan, current))
        assert preview.total_records == 0
        assert any("Aucun enregistrement" in w.message for w in preview.warnings)


@pytest.mark.django_db
class TestValidatePatchPlan:
    def test_non_demo_tenant_is_ineligible(self):
        tenant = Tenant.objects.create(name="Real customer")
        with pytest.raises(TenantIneligibleError):
            validate_demo_tenant(tenant.pk)

    def test_flagged_tenant_is_ineligible(self, demo_metadata):
        DemoTenantMetadata.objects.filter(pk=demo_metadata.pk).update(is_demo_generated=False)
        with pytest.raises(TenantIneligibleError):
            validate_demo_tenant(demo_metadata.tenant_id)

    def test_valid_additive_patch(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(contactsCreated=80),
            _current(contacts_created=50),
            today=TODAY,
        )
        assert result.valid
        assert result.delta_result.deltas["2024-02"] == {"contacts_created": 30}

    def test_blockers_are_errors(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(contactsCreated=10),
            _current(contacts_created=50),
            today=TODAY,
        )
        assert not result.valid
        assert len(result.errors) == 1

    def test_month_rules(self, demo_metadata):
        plan = PatchPlan.from_dict(
            {
                "months": [
                    {"month": "2023-12", "targets": {}},
                    {"month": "2024-08", "targets": {}},
                    {"month": "2024-02", "targets": {}},
                    {"month": "2024-02", "targets": {}},
                ]
            }
        )
        result = validate_patch_plan(demo_metadata.tenant_id, plan, _current(), today=TODAY)
        messages = " ".join(e.message for e in result.errors)
        assert "precede le debut" in messages
        assert "futur" in messages
        assert "plusieurs fois" in messages

    def test_malformed_month_stops_before_deltas(self, demo_metadata):
        plan = PatchPlan.from_dict({"months": [{"month": "Feb 2024", "targets": {"contactsCreated": 1}}]})
        result = validate_patch_plan(demo_metadata.tenant_id, plan, [], today=TODAY)
        assert not result.valid
        assert result.delta_result is None

    def test_target_constraints(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(dealsCreated=3, closedWonCount=4, leadsCreated=9, contactsCreated=5),
            _current(),
            today=TODAY,
        )
        messages = " ".join(e.message for e in result.errors)
        assert "affaires gagnees (4)" in messages
        assert "leads (9)" in messages

    def test_won_value_without_won_deals_is_an_error(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(plan_type="deltas", closedWonValue=1000),
            _current(),
            today=TODAY,
        )
        assert not result.valid

    def test_growth_spike_warns(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(contactsCreated=40),
            _current(contacts_created=10),
            today=TODAY,
        )
        assert result.valid
        assert any("300%" in w.message for w in result.warnings)

    def test_metrics_only_count_cannot_go_negative(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(mode="metrics-only", plan_type="deltas", closedWonCount=-10),
            _current(deals_created=5, closed_won_count=3),
            today=TODAY,
        )
        assert not result.valid
        assert "deviendrait negatif (-7)" in result.errors[0].message

    def test_metrics_only_count_cannot_exceed_deals(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(mode="metrics-only", closedWonCount=100),
            _current(deals_created=5, closed_won_count=3),
            today=TODAY,
        )
        assert not result.valid
        assert "100 affaires gagnees pour seulement 5" in result.errors[0].message

    def test_metrics_only_value_cannot_go_negative(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(mode="metrics-only", plan_type="deltas", closedWonValue=-5000),
            _current(deals_created=2, closed_won_count=1, closed_won_value=Decimal("1000.00")),
            today=TODAY,
        )
        assert not result.valid
        assert result.errors[0].path == "2024-02.closedWonValue"

    def test_metrics_only_within_bounds_is_valid(self, demo_metadata):
        result = validate_patch_plan(
            demo_metadata.tenant_id,
            _plan(mode="metrics-only", plan_type="deltas", closedWonCount=2, closedWonValue=3000),
            _current(deals_created=5, closed_won_count=3, closed_won_value=Decimal("9000.00")),
            today=TODAY,
        )
        assert result.valid
