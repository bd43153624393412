from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from crm.models import Contact, Deal, PipelineStage, Tenant
from demo_generator.config import MonthlyMetrics, ToleranceConfig
from demo_generator.exceptions import ConfigError
from demo_generator.kpi import KpiSnapshot, compute_diff, month_range, query_monthly_kpis
from demo_generator.models import KpiOverride


def _at(year, month, day=10):
    return datetime(year, month, day, 12, tzinfo=dt_timezone.utc)


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(name="KPI Tenant")


@pytest.fixture
def stages(tenant):
    return {
        "open": PipelineStage.objects.create(tenant=tenant, name="Demo", position=0),
        "won": PipelineStage.objects.create(tenant=tenant, name="Gagne", position=1, is_won=True),
        "lost": PipelineStage.objects.create(tenant=tenant, name="Perdu", position=2, is_lost=True),
    }


def test_month_range_is_inclusive():
    assert month_range("2023-11", "2024-02") == ["2023-11", "2023-12", "2024-01", "2024-02"]


@pytest.mark.parametrize("bounds", [("2024-1", "2024-02"), ("2024-03", "2024-01")])
def test_month_range_rejects_bad_bounds(bounds):
    with pytest.raises(ConfigError):
        month_range(*bounds)


@pytest.mark.django_db
def test_month_axis_is_dense(tenant, stages):
    Contact.objects.create(tenant=tenant, first_name="A", last_name="B", created_at=_at(2024, 1))
    Contact.objects.create(tenant=tenant, first_name="C", last_name="D", created_at=_at(2024, 3))

    snapshots = query_monthly_kpis(tenant.pk, "2024-01", "2024-03")

    assert [s.month for s in snapshots] == ["2024-01", "2024-02", "2024-03"]
    assert snapshots[1].metrics == MonthlyMetrics.zero()
    assert snapshots[0].metrics.contacts_created == 1
    assert snapshots[0].metrics.leads_created == 1


@pytest.mark.django_db
def test_deal_metrics_split_won_open_and_lost(tenant, stages):
    for stage, value in (("won", "100.00"), ("won", "50.00"), ("open", "30.00"), ("lost", "999.00")):
        Deal.objects.create(
            tenant=tenant,
            title=f"{stage} {value}",
            value=Decimal(value),
            stage=stages[stage],
            created_at=_at(2024, 2),
        )

    metrics = query_monthly_kpis(tenant.pk, "2024-02", "2024-02")[0].metrics

    assert metrics.deals_created == 4
    assert metrics.closed_won_count == 2
    assert metrics.closed_won_value == Decimal("150.00")
    assert metrics.pipeline_added_value == Decimal("180.00")


@pytest.mark.django_db
def test_soft_deleted_records_are_excluded(tenant):
    Contact.objects.create(tenant=tenant, first_name="A", last_name="B", created_at=_at(2024, 1))
    Contact.objects.create(
        tenant=tenant,
        first_name="C",
        last_name="D",
        created_at=_at(2024, 1),
        deleted_at=_at(2024, 2),
    )

    assert query_monthly_kpis(tenant.pk, "2024-01", "2024-01")[0].metrics.contacts_created == 1


@pytest.mark.django_db
def test_month_boundaries_are_utc(tenant):
    Contact.objects.create(
        tenant=tenant,
        first_name="Late",
        last_name="Night",
        created_at=datetime(2024, 1, 31, 23, 59, 59, tzinfo=dt_timezone.utc),
    )

    snapshots = query_monthly_kpis(tenant.pk, "2024-01", "2024-02")

    assert [s.metrics.contacts_created for s in snapshots] == [1, 0]


@pytest.mark.django_db
def test_overrides_apply_only_when_requested(tenant):
    KpiOverride.objects.create(tenant=tenant, month="2024-01", closed_won_count=2, closed_won_value=Decimal("500"))

    raw = query_monthly_kpis(tenant.pk, "2024-01", "2024-01")[0].metrics
    adjusted = query_monthly_kpis(tenant.pk, "2024-01", "2024-01", apply_overrides=True)[0].metrics

    assert raw.closed_won_count == 0
    assert adjusted.closed_won_count == 2
    assert adjusted.closed_won_value == Decimal("500.00")


def test_compute_diff_reports_per_metric():
    before = [KpiSnapshot("2024-01", MonthlyMetrics(contacts_created=10, closed_won_value=Decimal("100")))]
    after = [KpiSnapshot("2024-01", MonthlyMetrics(contacts_created=15, closed_won_value=Decimal("100")))]

    report = compute_diff(
        before,
        after,
        {"2024-01": {"contacts_created": 15, "closed_won_value": Decimal("200")}},
        ToleranceConfig(),
    )

    entries = {e["metric"]: e for e in report["months"][0]["entries"]}
    assert entries["contactsCreated"]["delta"] == 5
    assert entries["contactsCreated"]["deltaPercent"] == 50.0
    assert entries["contactsCreated"]["passed"] is True
    assert entries["closedWonValue"]["passed"] is False
    assert report["overallPassed"] is False
    assert report["passedMetrics"] == 1
    assert report["failedMetrics"] == 1
