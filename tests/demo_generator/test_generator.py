import pytest

from crm.models import Activity, Company, Contact, Deal, PipelineStage, TeamMember
from demo_generator.exceptions import GenerationFailure
from demo_generator.generator import DemoGenerator
from demo_generator.kpi import query_monthly_kpis
from demo_generator.models import DemoTenantMetadata, GenerationJob, JobStatus


@pytest.mark.django_db
def test_growth_generation_meets_targets(generated_job):
    job = generated_job

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.verification_passed is True
    assert job.verification_report["failedMetrics"] == 0
    totals = job.metrics["totals"]
    assert totals["contactsCreated"] == 70
    assert totals["leadsCreated"] == 30
    assert totals["companiesCreated"] == 12
    assert totals["closedWonCount"] == 6
    assert totals["closedWonValue"] == 20000.0
    assert totals["pipelineAddedValue"] == 60000.0
    assert [m["month"] for m in job.metrics["monthly"]] == ["2024-01", "2024-02", "2024-03"]


@pytest.mark.django_db
def test_tenant_is_provisioned_from_the_template(demo_tenant):
    assert demo_tenant.name == "Acme Demo"
    assert demo_tenant.currency == "EUR"
    assert TeamMember.objects.filter(tenant=demo_tenant).count() == 3
    assert PipelineStage.objects.filter(tenant=demo_tenant, is_won=True).exists()
    metadata = DemoTenantMetadata.objects.get(tenant=demo_tenant)
    assert metadata.start_month == "2024-01"
    assert metadata.industry == "saas"


@pytest.mark.django_db
def test_records_carry_provenance(generated_job):
    tenant = generated_job.tenant
    for model in (Company, Contact, Deal, Activity):
        records = model.objects.filter(tenant=tenant)
        assert records.exists()
        assert not records.exclude(demo_job_id=generated_job.pk).exists()
        assert not records.filter(demo_generated=False).exists()


@pytest.mark.django_db
def test_same_seed_gives_same_dataset(create_job, growth_payload, generated_job):
    other = create_job(growth_payload)
    DemoGenerator(other).run()

    first = query_monthly_kpis(generated_job.tenant_id, "2024-01", "2024-03")
    second = query_monthly_kpis(other.tenant_id, "2024-01", "2024-03")
    assert [s.metrics for s in first] == [s.metrics for s in second]

    def names(tenant_id):
        return list(
            Contact.objects.filter(tenant_id=tenant_id)
            .order_by("demo_source_month", "demo_sequence")
            .values_list("first_name", "last_name", "status")
        )

    assert names(generated_job.tenant_id) == names(other.tenant_id)


@pytest.mark.django_db
def test_failure_marks_job_failed_and_keeps_tenant(create_job, growth_payload, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("deal builder exploded")

    monkeypatch.setattr("demo_generator.generator.build_deals", broken)
    job = create_job(growth_payload)

    with pytest.raises(GenerationFailure):
        DemoGenerator(job).run()

    job.refresh_from_db()
    assert job.status == JobStatus.FAILED
    assert "deal builder exploded" in job.error_message
    assert job.logs[-1]["level"] == "error"
    assert job.tenant_id is not None
    # The failing month was rolled back as a whole.
    assert not Company.objects.filter(tenant_id=job.tenant_id).exists()


@pytest.mark.django_db
def test_run_is_a_no_op_once_claimed(generated_job):
    job = GenerationJob.objects.get(pk=generated_job.pk)
    contacts = Contact.objects.count()

    DemoGenerator(job).run()

    assert Contact.objects.count() == contacts
