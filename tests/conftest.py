from datetime import date

import pytest
from django.contrib.auth import get_user_model

from crm.models import Tenant
from demo_generator import services
from demo_generator.generator import DemoGenerator
from demo_generator.models import DemoTenantMetadata, GenerationJob

SEED = "d3m0f0rge-test-seed"


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="ops",
        email="ops@test.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture
def plain_user(db):
    return get_user_model().objects.create_user(
        username="viewer",
        email="viewer@test.com",
        password="testpass123",
    )


@pytest.fixture
def today():
    return date(2024, 6, 15)


@pytest.fixture
def growth_payload():
    return {
        "tenantName": "Acme Demo",
        "country": "FR",
        "industry": "saas",
        "teamSize": 3,
        "startDate": "2024-01-01",
        "months": 3,
        "targets": {
            "leads": 30,
            "contacts": 40,
            "companies": 12,
            "pipelineValue": 60000,
            "closedWonValue": 20000,
            "closedWonCount": 6,
        },
        "growth": {"curve": "exponential", "monthlyRate": 10, "seasonality": False},
        "realism": {"dropOffRate": 20, "whaleRatio": 5, "responseSlaHours": 4},
        "seed": SEED,
    }


def _month(month, **overrides):
    targets = {
        "leadsCreated": 5,
        "contactsCreated": 20,
        "companiesCreated": 6,
        "dealsCreated": 8,
        "closedWonCount": 3,
        "closedWonValue": 9000,
        "pipelineAddedValue": 20000,
        "activitiesCreated": 30,
    }
    targets.update(overrides)
    return {"month": month, "targets": targets}


@pytest.fixture
def monthly_plan():
    return {
        "months": [_month("2024-01"), _month("2024-02"), _month("2024-03", contactsCreated=24)],
        "tolerances": {"countTolerance": 0, "valueTolerance": 0.005},
    }


@pytest.fixture
def monthly_payload(monthly_plan):
    return {
        "mode": "monthly-plan",
        "tenantName": "Plan Demo",
        "country": "US",
        "industry": "saas",
        "teamSize": 2,
        "monthlyPlan": monthly_plan,
        "seed": SEED,
    }


@pytest.fixture
def create_job(db):
    """Create a generation job without dispatching it."""

    def _create(payload):
        created = services.start_generation(payload, dispatch=False)
        return GenerationJob.objects.get(pk=created["job_id"])

    return _create


@pytest.fixture
def generated_job(create_job, growth_payload):
    job = create_job(growth_payload)
    DemoGenerator(job).run()
    job.refresh_from_db()
    return job


@pytest.fixture
def demo_tenant(generated_job):
    return generated_job.tenant


@pytest.fixture
def demo_metadata(db):
    tenant = Tenant.objects.create(name="Metadata Only", country="US", currency="USD")
    return DemoTenantMetadata.objects.create(
        tenant=tenant,
        country="US",
        industry="saas",
        start_month="2024-01",
    )
