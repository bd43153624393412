"""Resumable monthly-plan generation.

A job advances through ``init -> companies -> contacts -> deals ->
activities -> finalize -> completed``. Each invocation:

1. claims the job's lease with a conditional UPDATE (a concurrent call that
   finds the lease held returns ``skipped``);
2. inserts records batch by batch, writing each batch together with the
   cursor that accounts for it in one transaction fenced by the lease token;
3. checks its time budget before every batch and, when it runs low,
   releases the lease and returns ``paused``.

Records for a (phase, month) are rebuilt from the named RNG stream
``"{phase}:{month}"`` and sliced at the cursor, so a resumed run inserts
exactly what an uninterrupted run would have.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from crm.models import Activity, Company, Contact, Deal
from demo_generator.config import MonthlyPlan
from demo_generator.exceptions import ChunkTimeoutRisk, LeaseLost
from demo_generator.factory import (
    TenantContext,
    build_activities,
    build_companies,
    build_contacts,
    build_deals,
    month_company_ids,
    month_contact_refs,
    month_deal_refs,
)
from demo_generator.generator import summarize_snapshots
from demo_generator.kpi import query_monthly_kpis, verify_against_targets
from demo_generator.models import ChunkedJobState, GenerationJob, JobStatus
from demo_generator.provisioning import provision_tenant
from demo_generator.rng import SeededRNG

logger = logging.getLogger("demoforge")

Phase = ChunkedJobState.Phase

PHASE_ORDER = [
    Phase.INIT,
    Phase.COMPANIES,
    Phase.CONTACTS,
    Phase.DEALS,
    Phase.ACTIVITIES,
    Phase.FINALIZE,
    Phase.COMPLETED,
]
ENTITY_MODELS = {
    Phase.COMPANIES: Company,
    Phase.CONTACTS: Contact,
    Phase.DEALS: Deal,
    Phase.ACTIVITIES: Activity,
}
PHASE_STEPS = {
    Phase.INIT: "Creation du tenant",
    Phase.COMPANIES: "Creation des entreprises",
    Phase.CONTACTS: "Creation des contacts",
    Phase.DEALS: "Creation des affaires",
    Phase.ACTIVITIES: "Creation des activites",
    Phase.FINALIZE: "Verification des KPI",
    Phase.COMPLETED: "Termine",
}


def phase_progress(phase: str) -> int:
    """Completed phases over working phases, as a percentage."""
    working = len(PHASE_ORDER) - 1
    return int(PHASE_ORDER.index(phase) * 100 / working)


def _next_phase(phase: str) -> str:
    return PHASE_ORDER[PHASE_ORDER.index(phase) + 1]


@dataclass
class ChunkResult:
    status: str  # completed | paused | failed | skipped
    phase: str
    progress: int
    message: str = ""

    def to_dict(self) -> dict:
        return {"status": self.status, "phase": self.phase, "progress": self.progress, "message": self.message}


class ChunkedMonthlyPlanGenerator:
    def __init__(self, job_id, *, time_budget: float | None = None, batch_size: int | None = None, clock=time.monotonic):
        self.job_id = job_id
        if time_budget is None:
            time_budget = getattr(settings, "DEMO_CHUNK_TIME_BUDGET_SECONDS", 50)
        self.time_budget = time_budget
        self.batch_size = batch_size or getattr(settings, "DEMO_BATCH_SIZE", 200)
        self.clock = clock
        self.job: GenerationJob | None = None
        self.state: ChunkedJobState | None = None
        self._token = None
        self._deadline = 0.0
        self._batches = 0
        self._records: dict[tuple[str, str], list] = {}
        self._ctx: TenantContext | None = None

    # -- lease ------------------------------------------------------------

    def _activate(self):
        GenerationJob.objects.filter(pk=self.job_id, status=JobStatus.PENDING).update(
            status=JobStatus.RUNNING,
            started_at=timezone.now(),
            current_step=PHASE_STEPS[Phase.INIT],
        )

    def _acquire_lease(self) -> bool:
        now = timezone.now()
        grace = getattr(settings, "DEMO_LEASE_GRACE_SECONDS", 30)
        token = uuid.uuid4()
        acquired = (
            ChunkedJobState.objects.filter(job_id=self.job_id, job__status=JobStatus.RUNNING)
            .filter(Q(lease_token__isnull=True) | Q(lease_expires_at__lte=now))
            .update(
                lease_token=token,
                lease_expires_at=now + timedelta(seconds=self.time_budget + grace),
                invocations=F("invocations") + 1,
            )
        )
        if acquired:
            self._token = token
        return bool(acquired)

    def _release_lease(self):
        ChunkedJobState.objects.filter(pk=self.state.pk, lease_token=self._token).update(
            lease_token=None,
            lease_expires_at=None,
        )

    def _checkpoint(self, **changes):
        """Persist state under the lease. Must run inside the batch's transaction."""
        updated = ChunkedJobState.objects.filter(pk=self.state.pk, lease_token=self._token).update(
            version=F("version") + 1,
            updated_at=timezone.now(),
            **changes,
        )
        if not updated:
            raise LeaseLost()
        self.state.version += 1
        for field, value in changes.items():
            setattr(self.state, field, value)

    def _check_budget(self):
        # At least one batch per invocation, so a tiny budget still makes progress.
        if self._batches and self.clock() >= self._deadline:
            raise ChunkTimeoutRisk()

    # -- entry point ------------------------------------------------------

    def continue_generation(self) -> ChunkResult:
        self._deadline = self.clock() + self.time_budget
        self._activate()
        job = GenerationJob.objects.select_related("chunk_state").get(pk=self.job_id)
        if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
            return ChunkResult(job.status, job.chunk_state.phase, job.progress, "Job deja termine.")

        if not self._acquire_lease():
            logger.info("Chunked job %s: lease held by another invocation, skipping", self.job_id)
            return ChunkResult("skipped", job.chunk_state.phase, job.progress, "Execution deja en cours.")

        # The previous holder may have logged since the status check.
        job.refresh_from_db()
        self.job = job
        self.state = ChunkedJobState.objects.get(job_id=self.job_id)
        self.plan = MonthlyPlan.from_dict(job.monthly_plan)
        self.rng = SeededRNG(job.seed)
        started_phase = self.state.phase

        try:
            while self.state.phase != Phase.COMPLETED:
                self._run_phase(self.state.phase)
        except ChunkTimeoutRisk:
            # Written while the lease is still held.
            self._log(
                "info",
                f"Pause apres {self._batches} lot(s), reprise en phase {self.state.phase}",
                {"cursor": self.state.cursor},
            )
            self._release_lease()
            return ChunkResult("paused", self.state.phase, self.job.progress)
        except LeaseLost:
            logger.warning("Chunked job %s: lease lost, abandoning this invocation", self.job_id)
            return ChunkResult("skipped", self.state.phase, self.job.progress, "Verrou perdu.")
        except Exception as exc:
            logger.exception("Chunked job %s failed in phase %s", self.job_id, self.state.phase)
            self._mark_failed(exc)
            return ChunkResult("failed", self.state.phase, self.job.progress, self.job.error_message)

        logger.info("Chunked job %s completed (resumed from %s)", self.job_id, started_phase)
        return ChunkResult("completed", Phase.COMPLETED, 100)

    # -- phases -----------------------------------------------------------

    def _log(self, level: str, message: str, data: dict | None = None):
        self.job.append_log(level, message, data)
        self.job.save(update_fields=["logs", "updated_at"])

    def _advance(self, phase: str):
        """Move to the next phase; runs inside the caller's transaction."""
        following = _next_phase(phase)
        self._checkpoint(phase=following, cursor={"month_index": 0, "offset": 0})
        self.job.progress = phase_progress(following)
        self.job.current_step = PHASE_STEPS[following]
        self.job.metrics = {**(self.job.metrics or {}), "recordsCreated": dict(self.state.tallies)}
        self.job.append_log("info", f"Phase {phase} terminee")
        self.job.save(update_fields=["progress", "current_step", "metrics", "logs", "updated_at"])

    def _run_phase(self, phase: str):
        if phase == Phase.INIT:
            self._run_init()
        elif phase in ENTITY_MODELS:
            self._run_entity_phase(phase)
        elif phase == Phase.FINALIZE:
            self._run_finalize()
        else:
            raise ValueError(f"Unknown phase {phase}")

    def _run_init(self):
        self._check_budget()
        with transaction.atomic():
            if self.job.tenant_id is None:
                provision_tenant(self.job, self.job.config, self.plan.months[0].month, self.rng)
            self._advance(Phase.INIT)
        self._batches += 1

    def _context(self) -> TenantContext:
        if self._ctx is None:
            self._ctx = TenantContext.load(self.job.tenant, self.job.config, self.job.seed)
        return self._ctx

    def _month_records(self, phase: str, target) -> list:
        key = (phase, target.month)
        if key in self._records:
            return self._records[key]
        ctx = self._context()
        tenant, job_id, month, m = ctx.tenant, self.job.pk, target.month, target.metrics
        rng = self.rng.child(f"{phase}:{month}")
        if phase == Phase.COMPANIES:
            records = build_companies(ctx, job_id, month, m.companies_created or 0, rng)
        elif phase == Phase.CONTACTS:
            records = build_contacts(
                ctx,
                job_id,
                month,
                m.contacts_created or 0,
                m.leads_created or 0,
                month_company_ids(tenant, job_id, month),
                rng,
            )
        elif phase == Phase.DEALS:
            records = build_deals(
                ctx,
                job_id,
                month,
                m.deals_created or 0,
                m.closed_won_count or 0,
                m.closed_won_value,
                m.pipeline_added_value,
                month_contact_refs(tenant, job_id, month),
                month_company_ids(tenant, job_id, month),
                rng,
            )
        else:
            records = build_activities(
                ctx,
                job_id,
                month,
                month_deal_refs(tenant, job_id, month),
                month_contact_refs(tenant, job_id, month),
                rng,
                count=m.activities_created,
            )
        # Only the current month is ever needed again.
        self._records = {key: records}
        return records

    def _run_entity_phase(self, phase: str):
        model = ENTITY_MODELS[phase]
        months = self.plan.months
        month_index = self.state.cursor.get("month_index", 0)
        offset = self.state.cursor.get("offset", 0)

        while month_index < len(months):
            records = self._month_records(phase, months[month_index])
            if offset >= len(records):
                month_index, offset = month_index + 1, 0
                continue
            self._check_budget()
            batch = records[offset:offset + self.batch_size]
            tallies = dict(self.state.tallies or {})
            tallies[phase] = tallies.get(phase, 0) + len(batch)
            with transaction.atomic():
                model.objects.bulk_create(batch)
                self._checkpoint(
                    cursor={"month_index": month_index, "offset": offset + len(batch)},
                    tallies=tallies,
                )
            self._batches += 1
            offset += len(batch)

        with transaction.atomic():
            self._advance(phase)

    def _run_finalize(self):
        self._check_budget()
        months = self.plan.months
        actual = query_monthly_kpis(self.job.tenant_id, months[0].month, months[-1].month)
        report = verify_against_targets(actual, months, self.plan.tolerances)

        with transaction.atomic():
            self._checkpoint(
                phase=Phase.COMPLETED,
                cursor={},
                lease_token=None,
                lease_expires_at=None,
            )
            job = self.job
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.current_step = PHASE_STEPS[Phase.COMPLETED]
            job.completed_at = timezone.now()
            job.verification_passed = report["overallPassed"]
            job.verification_report = report
            job.metrics = {**summarize_snapshots(actual), "recordsCreated": dict(self.state.tallies)}
            job.append_log(
                "info" if report["overallPassed"] else "warn",
                f"Verification: {report['passedMetrics']}/{report['totalMetrics']} metriques dans la tolerance",
            )
            job.save(
                update_fields=[
                    "status",
                    "progress",
                    "current_step",
                    "completed_at",
                    "verification_passed",
                    "verification_report",
                    "metrics",
                    "logs",
                    "updated_at",
                ]
            )

    def _mark_failed(self, exc: Exception):
        job = self.job
        job.status = JobStatus.FAILED
        job.error_message = str(exc) or exc.__class__.__name__
        job.completed_at = timezone.now()
        job.append_log("error", f"Echec en phase {self.state.phase}: {job.error_message}")
        job.save(update_fields=["status", "error_message", "completed_at", "logs", "updated_at"])
        self._release_lease()
