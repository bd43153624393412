"""Growth-curve generation: one invocation builds the whole tenant.

The projected monthly plan is stored on the job when it is created; this
module walks it month by month, committing each month in its own
transaction. A failure marks the job failed and keeps the months already
committed.
"""
from __future__ import annotations

import logging
import time

from django.db import transaction
from django.utils import timezone

from crm.models import Activity, Company, Contact, Deal
from demo_generator.config import MonthlyPlan
from demo_generator.exceptions import GenerationFailure
from demo_generator.factory import (
    ContactRef,
    DealRef,
    TenantContext,
    build_activities,
    build_companies,
    build_contacts,
    build_deals,
)
from demo_generator.kpi import query_monthly_kpis, verify_against_targets
from demo_generator.models import GenerationJob, JobStatus
from demo_generator.provisioning import provision_tenant
from demo_generator.rng import SeededRNG

logger = logging.getLogger("demoforge")


def summarize_snapshots(snapshots) -> dict:
    """Totals plus the per-month breakdown, JSON-safe."""
    totals: dict = {}
    for snapshot in snapshots:
        for key, value in snapshot.metrics.to_dict(include_none=True).items():
            totals[key] = totals.get(key, 0) + value
    totals = {k: round(v, 2) if isinstance(v, float) else v for k, v in totals.items()}
    return {"totals": totals, "monthly": [s.to_dict() for s in snapshots]}


class DemoGenerator:
    def __init__(self, job: GenerationJob):
        self.job = job
        self.rng = SeededRNG(job.seed)
        self.plan = MonthlyPlan.from_dict(job.monthly_plan)
        self.created = {"companies": 0, "contacts": 0, "deals": 0, "activities": 0}

    def _save(self, *fields):
        self.job.save(update_fields=[*fields, "logs", "updated_at"])

    def _progress(self, progress: int, step: str):
        self.job.progress = progress
        self.job.current_step = step
        self.job.append_log("info", step)
        self._save("progress", "current_step")

    def _claim(self) -> bool:
        now = timezone.now()
        claimed = GenerationJob.objects.filter(pk=self.job.pk, status=JobStatus.PENDING).update(
            status=JobStatus.RUNNING,
            started_at=now,
            current_step="Demarrage",
        )
        self.job.refresh_from_db()
        return bool(claimed)

    def run(self) -> GenerationJob:
        if not self._claim():
            logger.info("Generation job %s already claimed (status=%s)", self.job.pk, self.job.status)
            return self.job

        started = time.monotonic()
        try:
            months = self.plan.months
            tenant = provision_tenant(self.job, self.job.config, months[0].month, self.rng)
            self._progress(10, "Tenant cree")
            ctx = TenantContext.load(tenant, self.job.config, self.job.seed)

            for index, target in enumerate(months):
                with transaction.atomic():
                    self._generate_month(ctx, target)
                self._progress(10 + int(80 * (index + 1) / len(months)), f"Mois {target.month} genere")

            self._finalize(tenant.pk, time.monotonic() - started)
        except Exception as exc:
            logger.exception("Growth-curve generation %s failed", self.job.pk)
            self.job.status = JobStatus.FAILED
            self.job.error_message = str(exc) or exc.__class__.__name__
            self.job.completed_at = timezone.now()
            self.job.metrics = {**(self.job.metrics or {}), "recordsCreated": self.created}
            self.job.append_log("error", f"Echec de la generation: {self.job.error_message}")
            self._save("status", "error_message", "completed_at", "metrics")
            raise GenerationFailure(self.job.error_message) from exc
        return self.job

    def _generate_month(self, ctx: TenantContext, target):
        month = target.month
        m = target.metrics
        job_id = self.job.pk

        companies = build_companies(ctx, job_id, month, m.companies_created or 0, self.rng.child(f"companies:{month}"))
        Company.objects.bulk_create(companies)
        company_ids = [c.pk for c in companies]

        contacts = build_contacts(
            ctx,
            job_id,
            month,
            m.contacts_created or 0,
            m.leads_created or 0,
            company_ids,
            self.rng.child(f"contacts:{month}"),
        )
        Contact.objects.bulk_create(contacts)
        contact_refs = [ContactRef(c.pk, c.company_id, c.created_at) for c in contacts]

        deals = build_deals(
            ctx,
            job_id,
            month,
            m.deals_created or 0,
            m.closed_won_count or 0,
            m.closed_won_value,
            m.pipeline_added_value,
            contact_refs,
            company_ids,
            self.rng.child(f"deals:{month}"),
        )
        Deal.objects.bulk_create(deals)
        deal_refs = [DealRef(d.pk, d.contact_id, d.created_at) for d in deals]

        activities = build_activities(
            ctx,
            job_id,
            month,
            deal_refs,
            contact_refs,
            self.rng.child(f"activities:{month}"),
            count=m.activities_created,
        )
        Activity.objects.bulk_create(activities)

        self.created["companies"] += len(companies)
        self.created["contacts"] += len(contacts)
        self.created["deals"] += len(deals)
        self.created["activities"] += len(activities)

    def _finalize(self, tenant_id, duration: float):
        months = self.plan.months
        actual = query_monthly_kpis(tenant_id, months[0].month, months[-1].month)
        report = verify_against_targets(actual, months, self.plan.tolerances)

        job = self.job
        job.status = JobStatus.COMPLETED
        job.progress = 100
        job.current_step = "Termine"
        job.completed_at = timezone.now()
        job.verification_passed = report["overallPassed"]
        job.verification_report = report
        job.metrics = {
            **summarize_snapshots(actual),
            "recordsCreated": self.created,
            "durationSeconds": round(duration, 2),
        }
        level = "info" if report["overallPassed"] else "warn"
        job.append_log(
            level,
            f"Verification: {report['passedMetrics']}/{report['totalMetrics']} metriques dans la tolerance",
        )
        self._save(
            "status",
            "progress",
            "current_step",
            "completed_at",
            "verification_passed",
            "verification_report",
            "metrics",
        )
        logger.info(
            "Growth-curve job %s completed in %.1fs (verification %s)",
            job.pk,
            duration,
            "passed" if report["overallPassed"] else "failed",
        )
