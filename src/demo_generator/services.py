"""Entry points used by the API, the management command and the Celery tasks."""
from __future__ import annotations

import logging
from datetime import date

from django.db import transaction

from crm.models import Tenant
from demo_generator import plan_validator
from demo_generator.allocator import plan_from_config
from demo_generator.config import MonthlyPlan, PatchPlan, parse_generation_request
from demo_generator.exceptions import ConfigError, JobConflictError, PlanValidationError
from demo_generator.kpi import query_monthly_kpis
from demo_generator.models import ChunkedJobState, GenerationJob, JobStatus, PatchJob
from demo_generator.patch import generate_preview, validate_patch_plan
from demo_generator.rng import generate_seed

logger = logging.getLogger("demoforge")

ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)


def _dispatch_generation(job: GenerationJob) -> None:
    from demo_generator.tasks import continue_generation_job, run_growth_generation

    job_id = str(job.pk)

    def _dispatch() -> None:
        if job.mode == GenerationJob.Mode.MONTHLY_PLAN:
            continue_generation_job.delay(job_id)
        else:
            run_growth_generation.delay(job_id)

    # Queue after commit so the worker reads the committed job row.
    transaction.on_commit(_dispatch)


def start_generation(
    payload: dict,
    *,
    requested_by: str = "",
    today: date | None = None,
    dispatch: bool = True,
) -> dict:
    """Create a generation job and queue it. Returns ``{"job_id", "estimated_seconds"}``.

    ``dispatch=False`` leaves the job pending for an in-process run.
    """
    request = parse_generation_request(payload, today=today)
    if request.mode == GenerationJob.Mode.MONTHLY_PLAN:
        result = plan_validator.validate_plan(request.plan, today=today)
        if not result.valid:
            raise PlanValidationError([e.to_dict() for e in result.errors])
        plan = request.plan
        estimated = result.estimated_generation_seconds
    else:
        plan = plan_from_config(request.config)
        estimated = plan_validator.estimate_generation_seconds(plan)

    seed = request.seed or generate_seed()
    with transaction.atomic():
        job = GenerationJob(
            mode=request.mode,
            config=request.config.to_dict(),
            monthly_plan=plan.to_dict(),
            seed=seed,
            requested_by=requested_by,
        )
        job.append_log(
            "info",
            "Job cree",
            {"mode": request.mode, "months": len(plan.months), "estimatedSeconds": estimated},
        )
        job.save()
        if request.mode == GenerationJob.Mode.MONTHLY_PLAN:
            ChunkedJobState.objects.create(job=job)
        if dispatch:
            _dispatch_generation(job)

    logger.info(
        "Generation job %s created (%s, %d months, seed=%s)",
        job.pk,
        request.mode,
        len(plan.months),
        seed,
    )
    return {"job_id": str(job.pk), "estimated_seconds": estimated}


def get_job_status(job_id) -> GenerationJob:
    return GenerationJob.objects.select_related("tenant", "chunk_state").get(pk=job_id)


def continue_job(job_id) -> dict:
    """Run one chunk of a monthly-plan job in-process."""
    from demo_generator.chunked import ChunkedMonthlyPlanGenerator

    job = GenerationJob.objects.get(pk=job_id)
    if job.mode != GenerationJob.Mode.MONTHLY_PLAN:
        raise ConfigError("Seuls les jobs en mode monthly-plan peuvent etre poursuivis.")
    return ChunkedMonthlyPlanGenerator(job.pk).continue_generation().to_dict()


def validate_plan(payload: dict, *, today: date | None = None) -> dict:
    raw = payload.get("monthlyPlan", payload) if isinstance(payload, dict) else payload
    plan = MonthlyPlan.from_dict(raw)
    return plan_validator.validate_plan(plan, today=today).to_dict()


def preview_growth(payload: dict, *, today: date | None = None) -> dict:
    """Monthly targets a growth-curve configuration would produce, without creating a job."""
    request = parse_generation_request({**(payload or {}), "mode": "growth-curve"}, today=today)
    plan = plan_from_config(request.config)
    return {
        "config": request.config.to_dict(),
        "monthlyPlan": plan.to_dict(),
        "derived": plan_validator.derive_metrics(plan),
        "estimatedGenerationSeconds": plan_validator.estimate_generation_seconds(plan),
    }


def _patch_window(plan: PatchPlan) -> tuple[str, str]:
    months = sorted(m for m in plan.month_keys if plan_validator.MONTH_PATTERN.match(m))
    if not months:
        raise ConfigError("Le patch doit contenir au moins un mois valide (format YYYY-MM).")
    return months[0], months[-1]


def validate_patch(tenant_id, payload: dict, *, today: date | None = None) -> dict:
    Tenant.objects.only("pk").get(pk=tenant_id)
    plan = PatchPlan.from_dict(payload)
    from_month, to_month = _patch_window(plan)
    current = query_monthly_kpis(tenant_id, from_month, to_month, apply_overrides=True)
    result = validate_patch_plan(tenant_id, plan, current, today=today)
    preview = None
    if result.delta_result is not None:
        preview = generate_preview(plan, current, result.delta_result).to_dict()
    return {
        **result.to_dict(),
        "preview": preview,
        "currentKpis": [s.to_dict() for s in current],
    }


def apply_patch(tenant_id, payload: dict, *, seed: str | None = None, requested_by: str = "", today: date | None = None) -> str:
    """Validate and queue a patch job. Returns the patch job id."""
    Tenant.objects.only("pk").get(pk=tenant_id)
    plan = PatchPlan.from_dict(payload)
    from_month, to_month = _patch_window(plan)
    current = query_monthly_kpis(tenant_id, from_month, to_month, apply_overrides=True)
    result = validate_patch_plan(tenant_id, plan, current, today=today)
    if not result.valid:
        raise PlanValidationError([e.to_dict() for e in result.errors], "Le patch est invalide.")

    if seed:
        plan.seed = str(seed)
    with transaction.atomic():
        # Lock the tenant row so two concurrent requests cannot both pass the check.
        Tenant.objects.select_for_update().get(pk=tenant_id)
        if (
            PatchJob.objects.filter(tenant_id=tenant_id, status__in=ACTIVE_STATUSES).exists()
            or GenerationJob.objects.filter(tenant_id=tenant_id, status__in=ACTIVE_STATUSES).exists()
        ):
            raise JobConflictError()
        job = PatchJob(
            tenant_id=tenant_id,
            mode=plan.mode,
            plan_type=plan.plan_type,
            plan=plan.to_dict(),
            from_month=from_month,
            to_month=to_month,
            seed=plan.seed or generate_seed(),
            requested_by=requested_by,
        )
        job.append_log("info", "Patch cree", {"mode": plan.mode, "months": len(plan.months)})
        job.save()

        from demo_generator.tasks import run_patch_job

        job_id = str(job.pk)
        transaction.on_commit(lambda: run_patch_job.delay(job_id))

    logger.info("Patch job %s created for tenant %s (%s)", job.pk, tenant_id, plan.mode)
    return job_id


def get_patch_job(patch_job_id) -> PatchJob:
    return PatchJob.objects.select_related("tenant").get(pk=patch_job_id)


def get_kpis(tenant_id, from_month: str, to_month: str) -> list[dict]:
    Tenant.objects.only("pk").get(pk=tenant_id)
    snapshots = query_monthly_kpis(tenant_id, from_month, to_month, apply_overrides=True)
    return [s.to_dict() for s in snapshots]
