import json
import uuid

import pytest
from django.test import Client

from crm.models import Tenant
from demo_generator.models import GenerationJob, JobStatus, PatchJob

JOBS_URL = "/api/v1/demo-generator/jobs/"


@pytest.fixture
def api_client(staff_user):
    client = Client()
    client.force_login(staff_user)
    return client


def _post(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


def _february_patch(**targets):
    return {"mode": "additive", "planType": "deltas", "months": [{"month": "2024-02", "targets": targets}]}


@pytest.mark.django_db
class TestAccess:
    def test_anonymous_is_rejected(self):
        response = Client().get(JOBS_URL)
        assert response.status_code in (401, 403)

    def test_non_staff_is_forbidden(self, plain_user):
        client = Client()
        client.force_login(plain_user)
        assert client.get(JOBS_URL).status_code == 403


@pytest.mark.django_db
class TestGenerationJobs:
    def test_create_returns_accepted(self, api_client, growth_payload):
        response = _post(api_client, JOBS_URL, growth_payload)

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["estimatedSeconds"] > 0
        job = GenerationJob.objects.get(pk=body["jobId"])
        assert job.requested_by == "ops"
        assert job.mode == GenerationJob.Mode.GROWTH_CURVE

    def test_invalid_monthly_plan_lists_errors(self, api_client, monthly_payload):
        monthly_payload["monthlyPlan"]["months"][0]["targets"]["closedWonCount"] = 50

        response = _post(api_client, JOBS_URL, monthly_payload)

        assert response.status_code == 400
        assert response.json()["errors"]
        assert not GenerationJob.objects.exists()

    def test_list_and_filter(self, api_client, create_job, growth_payload, monthly_payload):
        create_job(growth_payload)
        create_job(monthly_payload)

        everything = api_client.get(JOBS_URL).json()
        monthly = api_client.get(JOBS_URL, {"mode": "monthly-plan"}).json()

        assert everything["count"] == 2
        assert monthly["count"] == 1
        assert monthly["results"][0]["mode"] == "monthly-plan"

    def test_detail_includes_chunk_state(self, api_client, create_job, monthly_payload):
        job = create_job(monthly_payload)

        body = api_client.get(f"{JOBS_URL}{job.pk}/").json()

        assert body["status"] == JobStatus.PENDING
        assert body["chunk_state"]["phase"] == "init"

    def test_detail_of_growth_job_has_no_chunk_state(self, api_client, generated_job):
        body = api_client.get(f"{JOBS_URL}{generated_job.pk}/").json()

        assert body["chunk_state"] is None
        assert body["verification_passed"] is True
        assert body["tenant_name"] == "Acme Demo"

    def test_unknown_job_is_404(self, api_client):
        assert api_client.get(f"{JOBS_URL}{uuid.uuid4()}/").status_code == 404

    def test_continue_runs_a_chunk(self, api_client, create_job, monthly_payload):
        job = create_job(monthly_payload)

        response = api_client.post(f"{JOBS_URL}{job.pk}/continue/")

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_continue_rejects_growth_jobs(self, api_client, create_job, growth_payload):
        job = create_job(growth_payload)

        response = api_client.post(f"{JOBS_URL}{job.pk}/continue/")

        assert response.status_code == 400


@pytest.mark.django_db
class TestPlanning:
    def test_validate_plan(self, api_client, monthly_plan):
        response = _post(api_client, "/api/v1/demo-generator/validate-plan/", {"monthlyPlan": monthly_plan})

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["estimatedGenerationSeconds"] > 0

    def test_preview_growth(self, api_client, growth_payload):
        response = _post(api_client, "/api/v1/demo-generator/preview/", growth_payload)

        assert response.status_code == 200
        months = response.json()["monthlyPlan"]["months"]
        assert [m["month"] for m in months] == ["2024-01", "2024-02", "2024-03"]
        assert not GenerationJob.objects.exists()


@pytest.mark.django_db
class TestTenantKpis:
    def test_kpis_for_a_range(self, api_client, demo_tenant):
        response = api_client.get(
            f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/kpis/",
            {"from": "2024-01", "to": "2024-04"},
        )

        assert response.status_code == 200
        months = response.json()["months"]
        assert [m["month"] for m in months] == ["2024-01", "2024-02", "2024-03", "2024-04"]
        assert months[3]["metrics"]["contactsCreated"] == 0

    def test_kpis_require_a_range(self, api_client, demo_tenant):
        response = api_client.get(f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/kpis/")
        assert response.status_code == 400

    def test_kpis_for_unknown_tenant(self, api_client):
        response = api_client.get(
            f"/api/v1/demo-generator/tenants/{uuid.uuid4()}/kpis/",
            {"from": "2024-01", "to": "2024-02"},
        )
        assert response.status_code == 404


@pytest.mark.django_db
class TestPatchEndpoints:
    def test_validate_returns_preview(self, api_client, demo_tenant):
        response = _post(
            api_client,
            f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/patch/validate/",
            _february_patch(contactsCreated=10),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["preview"]["estimatedRecords"]["contacts"] == 10
        assert body["preview"]["affectedMonths"] == ["2024-02"]
        assert len(body["currentKpis"]) == 1

    def test_validate_on_real_tenant_is_forbidden(self, api_client):
        tenant = Tenant.objects.create(name="Real Customer", country="FR", currency="EUR")

        response = _post(
            api_client,
            f"/api/v1/demo-generator/tenants/{tenant.pk}/patch/validate/",
            _february_patch(contactsCreated=10),
        )

        assert response.status_code == 403

    def test_apply_then_conflict(self, api_client, demo_tenant):
        url = f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/patch/apply/"

        first = _post(api_client, url, _february_patch(contactsCreated=2))
        second = _post(api_client, url, _february_patch(contactsCreated=2))

        assert first.status_code == 202
        assert first.json()["status"] == "pending"
        assert second.status_code == 409
        assert PatchJob.objects.count() == 1

    def test_apply_invalid_patch(self, api_client, demo_tenant):
        response = _post(
            api_client,
            f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/patch/apply/",
            {"mode": "additive", "planType": "targets", "months": [{"month": "2024-02", "targets": {"contactsCreated": 0}}]},
        )

        assert response.status_code == 400
        assert response.json()["errors"]

    def test_patch_job_detail(self, api_client, demo_tenant):
        created = _post(
            api_client,
            f"/api/v1/demo-generator/tenants/{demo_tenant.pk}/patch/apply/",
            _february_patch(contactsCreated=2),
        ).json()

        response = api_client.get(f"/api/v1/demo-generator/patch-jobs/{created['patchJobId']}/")

        assert response.status_code == 200
        body = response.json()
        assert body["mode"] == "additive"
        assert body["from_month"] == "2024-02"

    def test_unknown_patch_job_is_404(self, api_client):
        assert api_client.get(f"/api/v1/demo-generator/patch-jobs/{uuid.uuid4()}/").status_code == 404
