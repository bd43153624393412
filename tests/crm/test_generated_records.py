from datetime import timedelta

import pytest

from crm.models import Activity, Company, Contact, Deal
from demo_generator.scheduling import month_bounds


@pytest.mark.django_db
def test_records_are_dated_inside_their_source_month(demo_tenant):
    for model in (Company, Contact, Deal, Activity):
        for created_at, month in model.objects.filter(tenant=demo_tenant).values_list("created_at", "demo_source_month"):
            start, end = month_bounds(month)
            assert start <= created_at < end


@pytest.mark.django_db
def test_references_stay_inside_the_tenant(demo_tenant):
    foreign = {"tenant": demo_tenant}
    assert not Contact.objects.filter(company__isnull=False).exclude(company__tenant=demo_tenant).filter(**foreign).exists()
    assert not Deal.objects.filter(**foreign).exclude(stage__tenant=demo_tenant).exists()
    assert not Deal.objects.filter(**foreign, contact__isnull=False).exclude(contact__tenant=demo_tenant).exists()
    assert not Activity.objects.filter(**foreign, deal__isnull=False).exclude(deal__tenant=demo_tenant).exists()


@pytest.mark.django_db
def test_closed_deals_have_a_close_date(demo_tenant):
    deals = Deal.objects.filter(tenant=demo_tenant)
    assert not deals.filter(stage__is_won=True, closed_at__isnull=True).exists()
    assert not deals.filter(stage__is_won=False, stage__is_lost=False, closed_at__isnull=False).exists()
    for deal in deals.exclude(closed_at__isnull=True):
        assert deal.closed_at >= deal.created_at
        assert deal.currency == "EUR"


@pytest.mark.django_db
def test_soft_deleted_records_leave_kpis(demo_tenant):
    from demo_generator.kpi import query_monthly_kpis

    before = query_monthly_kpis(demo_tenant.pk, "2024-01", "2024-01")[0].metrics.companies_created
    company = Company.objects.filter(tenant=demo_tenant, demo_source_month="2024-01").first()
    company.deleted_at = company.created_at
    company.save(update_fields=["deleted_at"])

    after = query_monthly_kpis(demo_tenant.pk, "2024-01", "2024-01")[0].metrics.companies_created
    assert after == before - 1


@pytest.mark.django_db
def test_follow_ups_do_not_pile_up_on_month_end(demo_tenant):
    for month in ("2024-01", "2024-02", "2024-03"):
        _, end = month_bounds(month)
        last_second = end - timedelta(seconds=1)
        assert Activity.objects.filter(tenant=demo_tenant, created_at=last_second).count() <= 1
        assert Deal.objects.filter(tenant=demo_tenant, closed_at=last_second).count() <= 1
