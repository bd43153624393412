"""Applies a validated patch job to a demo tenant."""
from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from crm.models import Activity, Company, Contact, Deal
from demo_generator.config import PatchPlan
from demo_generator.exceptions import GenerationFailure, PatchBlockedError
from demo_generator.factory import (
    ContactRef,
    DealRef,
    TenantContext,
    build_activities,
    build_companies,
    build_contacts,
    build_deals,
)
from demo_generator.kpi import compute_diff, query_monthly_kpis
from demo_generator.models import JobStatus, KpiOverride, PatchJob
from demo_generator.patch import compute_deltas, records_for_month, validate_demo_tenant
from demo_generator.rng import SeededRNG
from demo_generator.scheduling import month_bounds

logger = logging.getLogger("demoforge")


def _month_contact_refs(tenant, month_start, month_end) -> list[ContactRef]:
    rows = (
        Contact.objects.filter(
            tenant=tenant,
            deleted_at__isnull=True,
            created_at__gte=month_start,
            created_at__lt=month_end,
        )
        .order_by("created_at", "pk")
        .values_list("pk", "company_id", "created_at")
    )
    return [ContactRef(*row) for row in rows]


def _month_company_ids(tenant, month_start, month_end) -> list:
    return list(
        Company.objects.filter(
            tenant=tenant,
            deleted_at__isnull=True,
            created_at__gte=month_start,
            created_at__lt=month_end,
        )
        .order_by("created_at", "pk")
        .values_list("pk", flat=True)
    )


class PatchEngine:
    def __init__(self, patch_job_id):
        self.job = PatchJob.objects.select_related("tenant").get(pk=patch_job_id)
        self.plan = PatchPlan.from_dict(self.job.plan)
        self.created = {"contacts": 0, "companies": 0, "deals": 0, "activities": 0}

    def _save(self, *fields):
        self.job.save(update_fields=[*fields, "logs", "updated_at"])

    def _claim(self) -> bool:
        claimed = PatchJob.objects.filter(pk=self.job.pk, status=JobStatus.PENDING).update(
            status=JobStatus.RUNNING,
            started_at=timezone.now(),
            current_step="Lecture des KPI",
        )
        self.job.refresh_from_db()
        return bool(claimed)

    def _snapshot(self):
        return query_monthly_kpis(
            self.job.tenant_id,
            self.job.from_month,
            self.job.to_month,
            apply_overrides=True,
        )

    def already_applied(self) -> bool:
        job_id = self.job.pk
        if KpiOverride.objects.filter(patch_job_id=job_id).exists():
            return True
        return any(
            model.objects.filter(tenant_id=self.job.tenant_id, demo_job_id=job_id).exists()
            for model in (Company, Contact, Deal, Activity)
        )

    def execute(self) -> PatchJob:
        if not self._claim():
            logger.info("Patch job %s already claimed (status=%s)", self.job.pk, self.job.status)
            return self.job

        job = self.job
        try:
            metadata = validate_demo_tenant(job.tenant_id)
            before = self._snapshot()
            job.before_kpis = [s.to_dict() for s in before]
            job.progress = 20
            job.append_log("info", "KPI avant patch enregistres")
            self._save("before_kpis", "progress")

            delta_result = compute_deltas(self.plan, before)
            if delta_result.blockers:
                raise PatchBlockedError([b.to_dict() for b in delta_result.blockers])

            if self.already_applied():
                job.append_log("warn", "Enregistrements deja presents pour ce patch, creation ignoree")
                self._save()
            elif self.plan.mode == "metrics-only":
                self._write_overrides(delta_result.deltas)
            else:
                self._create_records(metadata, delta_result.deltas)

            job.current_step = "Verification"
            job.progress = 80
            self._save("current_step", "progress")

            after = self._snapshot()
            expected = self._expected(before, delta_result.deltas)
            report = compute_diff(before, after, expected, self.plan.tolerances)

            job.after_kpis = [s.to_dict() for s in after]
            job.diff_report = report
            job.metrics = {"recordsCreated": self.created, "affectedMonths": sorted(expected)}
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.current_step = "Termine"
            job.completed_at = timezone.now()
            job.append_log(
                "info" if report["overallPassed"] else "warn",
                f"Patch applique: {report['passedMetrics']}/{report['totalMetrics']} metriques conformes",
            )
            self._save("after_kpis", "diff_report", "metrics", "status", "progress", "current_step", "completed_at")
        except Exception as exc:
            logger.exception("Patch job %s failed", job.pk)
            job.status = JobStatus.FAILED
            job.error_message = str(exc) or exc.__class__.__name__
            job.completed_at = timezone.now()
            data = {"blockers": exc.blockers} if isinstance(exc, PatchBlockedError) else None
            job.append_log("error", f"Echec du patch: {job.error_message}", data)
            self._save("status", "error_message", "completed_at")
            raise GenerationFailure(job.error_message) from exc

        logger.info("Patch job %s completed (%s)", job.pk, self.plan.mode)
        return job

    def _expected(self, before, deltas: dict) -> dict:
        current = {s.month: s.metrics for s in before}
        expected = {}
        targets = {t.month: t.metrics for t in self.plan.months}
        for month, values in deltas.items():
            expected[month] = {}
            for metric, delta in values.items():
                if self.plan.plan_type == "targets":
                    expected[month][metric] = targets[month].get(metric)
                else:
                    now = current[month].get(metric) if month in current else 0
                    expected[month][metric] = (now or 0) + delta
        return expected

    def _write_overrides(self, deltas: dict):
        with transaction.atomic():
            for month, values in deltas.items():
                count = values.get("closed_won_count", 0)
                value = values.get("closed_won_value", Decimal("0.00"))
                if not count and not value:
                    continue
                KpiOverride.objects.update_or_create(
                    tenant_id=self.job.tenant_id,
                    month=month,
                    patch_job=self.job,
                    defaults={"closed_won_count": count, "closed_won_value": value},
                )
                self.job.append_log("info", f"{month}: ajustement des metriques gagnees", {"count": count, "value": float(value)})
        self._save()

    def _create_records(self, metadata, deltas: dict):
        tenant = self.job.tenant
        generation_job = metadata.generation_job
        config = dict(generation_job.config) if generation_job else {}
        config.setdefault("industry", metadata.industry)
        config.setdefault("country", metadata.country)
        seed = self.plan.seed or self.job.seed
        ctx = TenantContext.load(tenant, config, seed)
        rng = SeededRNG(seed)
        job_id = self.job.pk

        # All months or none: a retried job never finds half a patch.
        with transaction.atomic():
            for month, values in deltas.items():
                counts = records_for_month(values)
                if not any(counts.values()):
                    continue
                start, end = month_bounds(month)

                companies = build_companies(ctx, job_id, month, counts["companies"], rng.child(f"patch:{month}:companies"))
                Company.objects.bulk_create(companies)
                company_ids = [c.pk for c in companies] or _month_company_ids(tenant, start, end)

                contacts = build_contacts(
                    ctx,
                    job_id,
                    month,
                    counts["contacts"],
                    values.get("leads_created", 0),
                    company_ids,
                    rng.child(f"patch:{month}:contacts"),
                )
                Contact.objects.bulk_create(contacts)
                contact_refs = [ContactRef(c.pk, c.company_id, c.created_at) for c in contacts]
                if not contact_refs:
                    contact_refs = _month_contact_refs(tenant, start, end)

                deals = build_deals(
                    ctx,
                    job_id,
                    month,
                    counts["deals"],
                    values.get("closed_won_count", 0),
                    values.get("closed_won_value"),
                    values.get("pipeline_added_value"),
                    contact_refs,
                    company_ids,
                    rng.child(f"patch:{month}:deals"),
                )
                Deal.objects.bulk_create(deals)
                deal_refs = [DealRef(d.pk, d.contact_id, d.created_at) for d in deals]

                activities = build_activities(
                    ctx,
                    job_id,
                    month,
                    deal_refs,
                    [ContactRef(c.pk, c.company_id, c.created_at) for c in contacts],
                    rng.child(f"patch:{month}:activities"),
                    count=counts["activities"],
                )
                Activity.objects.bulk_create(activities)

                self.created["companies"] += len(companies)
                self.created["contacts"] += len(contacts)
                self.created["deals"] += len(deals)
                self.created["activities"] += len(activities)
                self.job.append_log(
                    "info",
                    f"{month}: {len(contacts)} contacts, {len(companies)} entreprises, "
                    f"{len(deals)} affaires, {len(activities)} activites",
                )
        self.job.current_step = "Enregistrements crees"
        self._save("current_step")
