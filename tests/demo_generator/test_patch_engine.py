from datetime import date

import pytest

from crm.models import Activity, Company, Contact, Deal
from demo_generator import services
from demo_generator.exceptions import JobConflictError, PlanValidationError, TenantIneligibleError
from demo_generator.kpi import query_monthly_kpis
from demo_generator.models import JobStatus, KpiOverride, PatchJob
from demo_generator.patch_engine import PatchEngine

TODAY = date(2024, 6, 15)


def _patch(mode="additive", plan_type="deltas", **targets):
    return {"mode": mode, "planType": plan_type, "months": [{"month": "2024-02", "targets": targets}]}


def _february(tenant_id):
    return query_monthly_kpis(tenant_id, "2024-02", "2024-02", apply_overrides=True)[0].metrics


def _apply(tenant, payload, capture):
    with capture(execute=True):
        patch_job_id = services.apply_patch(tenant.pk, payload, today=TODAY)
    return PatchJob.objects.get(pk=patch_job_id)


@pytest.mark.django_db
class TestAdditivePatch:
    def test_adds_records_to_the_month(self, demo_tenant, django_capture_on_commit_callbacks):
        before = _february(demo_tenant.pk)

        job = _apply(demo_tenant, _patch(contactsCreated=10, companiesCreated=3), django_capture_on_commit_callbacks)

        assert job.status == JobStatus.COMPLETED
        assert job.diff_report["overallPassed"] is True
        assert job.metrics["recordsCreated"] == {"contacts": 10, "companies": 3, "deals": 0, "activities": 20}
        after = _february(demo_tenant.pk)
        assert after.contacts_created == before.contacts_created + 10
        assert after.companies_created == before.companies_created + 3
        assert Contact.objects.filter(demo_job_id=job.pk, demo_source_month="2024-02").count() == 10
        assert [k["month"] for k in job.before_kpis] == ["2024-02"]

    def test_target_plan_fills_the_gap(self, demo_tenant, django_capture_on_commit_callbacks):
        current = _february(demo_tenant.pk).companies_created

        job = _apply(
            demo_tenant,
            _patch(plan_type="targets", companiesCreated=current + 4),
            django_capture_on_commit_callbacks,
        )

        assert job.status == JobStatus.COMPLETED
        assert Company.objects.filter(demo_job_id=job.pk).count() == 4
        assert _february(demo_tenant.pk).companies_created == current + 4

    def test_re_execution_does_not_duplicate(self, demo_tenant, django_capture_on_commit_callbacks):
        job = _apply(demo_tenant, _patch(contactsCreated=5), django_capture_on_commit_callbacks)
        contacts = Contact.objects.count()
        activities = Activity.objects.count()
        PatchJob.objects.filter(pk=job.pk).update(status=JobStatus.PENDING)

        engine = PatchEngine(job.pk)
        assert engine.already_applied() is True
        engine.execute()

        assert Contact.objects.count() == contacts
        assert Activity.objects.count() == activities
        job.refresh_from_db()
        assert job.status == JobStatus.COMPLETED

    def test_claimed_job_is_left_alone(self, demo_tenant, django_capture_on_commit_callbacks):
        job = _apply(demo_tenant, _patch(contactsCreated=5), django_capture_on_commit_callbacks)
        contacts = Contact.objects.count()

        PatchEngine(job.pk).execute()

        assert Contact.objects.count() == contacts


@pytest.mark.django_db
class TestMetricsOnlyPatch:
    def test_writes_override_instead_of_records(self, demo_tenant, django_capture_on_commit_callbacks):
        before = _february(demo_tenant.pk)
        deals = Deal.objects.count()

        job = _apply(
            demo_tenant,
            _patch(mode="metrics-only", closedWonCount=2, closedWonValue=5000),
            django_capture_on_commit_callbacks,
        )

        assert job.status == JobStatus.COMPLETED
        override = KpiOverride.objects.get(patch_job=job)
        assert override.month == "2024-02"
        assert override.closed_won_count == 2
        after = _february(demo_tenant.pk)
        assert after.closed_won_count == before.closed_won_count + 2
        assert after.closed_won_value == before.closed_won_value + 5000
        assert after.contacts_created == before.contacts_created
        assert Deal.objects.count() == deals

    def test_raw_kpis_ignore_overrides(self, demo_tenant, django_capture_on_commit_callbacks):
        raw = query_monthly_kpis(demo_tenant.pk, "2024-02", "2024-02")[0].metrics

        _apply(demo_tenant, _patch(mode="metrics-only", closedWonCount=1), django_capture_on_commit_callbacks)

        assert query_monthly_kpis(demo_tenant.pk, "2024-02", "2024-02")[0].metrics == raw


@pytest.mark.django_db
class TestApplyPatchGuards:
    def test_removal_is_rejected_before_queueing(self, demo_tenant):
        with pytest.raises(PlanValidationError) as excinfo:
            services.apply_patch(demo_tenant.pk, _patch(plan_type="targets", contactsCreated=0), today=TODAY)

        assert excinfo.value.errors
        assert not PatchJob.objects.exists()

    def test_second_patch_conflicts_while_first_is_pending(self, demo_tenant):
        services.apply_patch(demo_tenant.pk, _patch(contactsCreated=1), today=TODAY)

        with pytest.raises(JobConflictError):
            services.apply_patch(demo_tenant.pk, _patch(contactsCreated=1), today=TODAY)

        assert PatchJob.objects.filter(status=JobStatus.PENDING).count() == 1

    def test_non_demo_tenant_is_rejected(self, db):
        from crm.models import Tenant

        tenant = Tenant.objects.create(name="Real Customer", country="FR", currency="EUR")
        with pytest.raises(TenantIneligibleError):
            services.apply_patch(tenant.pk, _patch(contactsCreated=1), today=TODAY)

    def test_seed_is_stored_on_the_job(self, demo_tenant):
        job_id = services.apply_patch(demo_tenant.pk, _patch(contactsCreated=1), seed="patch-seed", today=TODAY)

        job = PatchJob.objects.get(pk=job_id)
        assert job.seed == "patch-seed"
        assert job.from_month == job.to_month == "2024-02"
