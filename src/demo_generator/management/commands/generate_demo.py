"""Create a demo tenant from the command line.

Without ``--plan`` the defaults (or ``--config``) drive a growth-curve job;
``--plan`` takes a monthly-plan JSON file and runs the chunked generator.
"""

from __future__ import annotations

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from demo_generator.exceptions import DemoGeneratorError, PlanValidationError


class Command(BaseCommand):
    help = "Generate a demo CRM tenant (growth-curve or monthly plan)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--config",
            help="JSON file with a partial generation config (merged over the defaults).",
        )
        parser.add_argument(
            "--plan",
            help="JSON file with a monthly plan; switches to monthly-plan mode.",
        )
        parser.add_argument(
            "--seed",
            help="Seed for reproducible generation (default: random).",
        )
        parser.add_argument(
            "--sync",
            action="store_true",
            help="Run in this process (all chunks) instead of queueing a Celery task.",
        )

    def _load_json(self, path: str) -> dict:
        try:
            return json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CommandError(f"Cannot read {path}: {exc}") from exc

    def handle(self, *args, **options):
        from demo_generator import services
        from demo_generator.chunked import ChunkedMonthlyPlanGenerator
        from demo_generator.generator import DemoGenerator
        from demo_generator.models import GenerationJob, JobStatus

        payload = self._load_json(options["config"]) if options["config"] else {}
        if options["plan"]:
            payload["mode"] = "monthly-plan"
            payload["monthlyPlan"] = self._load_json(options["plan"])
        if options["seed"]:
            payload["seed"] = options["seed"]

        try:
            created = services.start_generation(payload, requested_by="cli", dispatch=not options["sync"])
        except PlanValidationError as exc:
            for error in exc.errors:
                self.stderr.write(f"  {error['path']}: {error['message']}")
            raise CommandError(exc.message) from exc
        except DemoGeneratorError as exc:
            raise CommandError(exc.message) from exc

        job_id = created["job_id"]
        self.stdout.write(f"Job {job_id} created (estimated {created['estimated_seconds']}s).")
        if not options["sync"]:
            self.stdout.write("Queued on Celery.")
            return

        job = GenerationJob.objects.get(pk=job_id)
        if job.mode == GenerationJob.Mode.MONTHLY_PLAN:
            while True:
                result = ChunkedMonthlyPlanGenerator(job.pk).continue_generation()
                self.stdout.write(f"  {result.status}: phase={result.phase} progress={result.progress}%")
                if result.status != "paused":
                    break
        else:
            try:
                DemoGenerator(job).run()
            except DemoGeneratorError as exc:
                raise CommandError(exc.message) from exc

        job.refresh_from_db()
        if job.status != JobStatus.COMPLETED:
            raise CommandError(f"Job {job_id} ended as {job.status}: {job.error_message}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Tenant {job.tenant_id} generated; verification "
                f"{'passed' if job.verification_passed else 'failed'}."
            )
        )
