"""Celery tasks for demo generation and patching."""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger("demoforge")


@shared_task(name="demo_generator.run_growth_generation")
def run_growth_generation(job_id: str):
    """Run a growth-curve job to completion in one worker invocation."""
    from demo_generator.exceptions import GenerationFailure
    from demo_generator.generator import DemoGenerator
    from demo_generator.models import GenerationJob

    job = GenerationJob.objects.get(pk=job_id)
    try:
        job = DemoGenerator(job).run()
    except GenerationFailure as exc:
        # Already recorded on the job row.
        logger.warning("Growth-curve job %s failed: %s", job_id, exc)
        return {"status": "failed", "job_id": job_id}
    return {"status": job.status, "job_id": job_id}


@shared_task(name="demo_generator.continue_generation_job")
def continue_generation_job(job_id: str):
    """Run one time-boxed chunk of a monthly-plan job and re-enqueue while paused."""
    from demo_generator.chunked import ChunkedMonthlyPlanGenerator

    result = ChunkedMonthlyPlanGenerator(job_id).continue_generation()
    logger.info(
        "Chunk for job %s: %s (phase=%s, progress=%s%%)",
        job_id,
        result.status,
        result.phase,
        result.progress,
    )
    if result.status == "paused":
        continue_generation_job.apply_async(
            args=[job_id],
            countdown=settings.DEMO_CONTINUATION_COUNTDOWN,
        )
    return result.to_dict()


@shared_task(name="demo_generator.run_patch_job")
def run_patch_job(patch_job_id: str):
    from demo_generator.exceptions import GenerationFailure
    from demo_generator.patch_engine import PatchEngine

    try:
        job = PatchEngine(patch_job_id).execute()
    except GenerationFailure as exc:
        logger.warning("Patch job %s failed: %s", patch_job_id, exc)
        return {"status": "failed", "patch_job_id": patch_job_id}
    return {"status": job.status, "patch_job_id": patch_job_id}


@shared_task(name="demo_generator.resume_stalled_generation_jobs")
def resume_stalled_generation_jobs():
    """Scheduled (Celery Beat). Re-enqueue monthly-plan jobs nobody is working on.

    A job is stalled when its lease expired, or when it holds no lease and its
    checkpoint has not moved for ``DEMO_STALLED_JOB_MINUTES``.

    Growth-curve and patch jobs run in a single invocation and cannot be
    resumed: one still running after ``DEMO_RUN_TIMEOUT_MINUTES`` is marked
    failed, which frees the tenant for new jobs.
    """
    from demo_generator.models import GenerationJob, JobStatus, PatchJob

    now = timezone.now()
    idle_since = now - timedelta(minutes=settings.DEMO_STALLED_JOB_MINUTES)
    stalled = GenerationJob.objects.filter(mode=GenerationJob.Mode.MONTHLY_PLAN).filter(
        Q(status=JobStatus.RUNNING, chunk_state__lease_expires_at__lte=now)
        | Q(status=JobStatus.RUNNING, chunk_state__lease_token__isnull=True, chunk_state__updated_at__lte=idle_since)
        | Q(status=JobStatus.PENDING, created_at__lte=idle_since)
    )
    job_ids = [str(pk) for pk in stalled.values_list("pk", flat=True)]
    for job_id in job_ids:
        continue_generation_job.delay(job_id)
    if job_ids:
        logger.warning("Resumed %d stalled generation job(s): %s", len(job_ids), ", ".join(job_ids))

    started_before = now - timedelta(minutes=settings.DEMO_RUN_TIMEOUT_MINUTES)
    abandoned = [
        *GenerationJob.objects.filter(
            mode=GenerationJob.Mode.GROWTH_CURVE,
            status=JobStatus.RUNNING,
            started_at__lte=started_before,
        ),
        *PatchJob.objects.filter(status=JobStatus.RUNNING, started_at__lte=started_before),
    ]
    failed = 0
    for job in abandoned:
        message = (
            f"Aucune progression depuis plus de {settings.DEMO_RUN_TIMEOUT_MINUTES} minutes, "
            "le worker a probablement ete interrompu."
        )
        job.append_log("error", message)
        # Conditional update: a worker finishing meanwhile keeps its result.
        failed += type(job).objects.filter(pk=job.pk, status=JobStatus.RUNNING).update(
            status=JobStatus.FAILED,
            error_message=message,
            completed_at=now,
            logs=job.logs,
            updated_at=now,
        )
    if failed:
        logger.warning("Marked %d abandoned growth-curve or patch job(s) as failed", failed)
    return {"resumed": len(job_ids), "failed": failed}
