"""Persisted job records for demo generation and patching."""
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel

MAX_LOG_ENTRIES = 500


class JobStatus(models.TextChoices):
    PENDING = "pending", "En attente"
    RUNNING = "running", "En cours"
    COMPLETED = "completed", "Termine"
    FAILED = "failed", "Echoue"


class JobRecord(TimeStampedModel):
    """Fields shared by generation and patch jobs."""

    status = models.CharField(
        "statut",
        max_length=10,
        choices=JobStatus.choices,
        default=JobStatus.PENDING,
        db_index=True,
    )
    progress = models.PositiveSmallIntegerField("progression (%)", default=0)
    current_step = models.CharField("etape", max_length=120, blank=True, default="")
    seed = models.CharField("graine", max_length=64)
    metrics = models.JSONField("metriques", default=dict, blank=True)
    logs = models.JSONField("journal", default=list, blank=True)
    error_message = models.TextField("erreur", blank=True, default="")
    requested_by = models.CharField("demande par", max_length=150, blank=True, default="")
    started_at = models.DateTimeField("demarre le", null=True, blank=True)
    completed_at = models.DateTimeField("termine le", null=True, blank=True)

    class Meta(TimeStampedModel.Meta):
        abstract = True

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)

    def append_log(self, level: str, message: str, data: dict | None = None):
        """Append an audit entry. The caller persists ``logs``."""
        entry = {"timestamp": timezone.now().isoformat(), "level": level, "message": message}
        if data:
            entry["data"] = data
        self.logs = (list(self.logs or []) + [entry])[-MAX_LOG_ENTRIES:]


class GenerationJob(JobRecord):
    class Mode(models.TextChoices):
        GROWTH_CURVE = "growth-curve", "Courbe de croissance"
        MONTHLY_PLAN = "monthly-plan", "Plan mensuel"

    tenant = models.ForeignKey(
        "crm.Tenant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="generation_jobs",
    )
    mode = models.CharField("mode", max_length=20, choices=Mode.choices, default=Mode.GROWTH_CURVE)
    config = models.JSONField("configuration", default=dict)
    monthly_plan = models.JSONField("plan mensuel", null=True, blank=True)
    verification_passed = models.BooleanField("verification reussie", null=True, blank=True)
    verification_report = models.JSONField("rapport de verification", null=True, blank=True)

    class Meta(JobRecord.Meta):
        verbose_name = "job de generation"
        verbose_name_plural = "jobs de generation"

    def __str__(self):
        return f"{self.get_mode_display()} {self.pk} ({self.status})"


class ChunkedJobState(TimeStampedModel):
    """Resumable checkpoint of a monthly-plan job.

    ``cursor`` and ``tallies`` are only ever written in the same transaction
    as the batch they describe, under the current lease token.
    """

    class Phase(models.TextChoices):
        INIT = "init", "Initialisation"
        COMPANIES = "companies", "Entreprises"
        CONTACTS = "contacts", "Contacts"
        DEALS = "deals", "Affaires"
        ACTIVITIES = "activities", "Activites"
        FINALIZE = "finalize", "Verification"
        COMPLETED = "completed", "Termine"

    job = models.OneToOneField(
        GenerationJob,
        on_delete=models.CASCADE,
        related_name="chunk_state",
    )
    phase = models.CharField("phase", max_length=12, choices=Phase.choices, default=Phase.INIT)
    cursor = models.JSONField("curseur", default=dict, blank=True)
    tallies = models.JSONField("compteurs", default=dict, blank=True)
    version = models.PositiveIntegerField("version", default=0)
    invocations = models.PositiveIntegerField("executions", default=0)
    lease_token = models.UUIDField("jeton de verrou", null=True, blank=True)
    lease_expires_at = models.DateTimeField("expiration du verrou", null=True, blank=True)

    class Meta:
        verbose_name = "etat de job fractionne"
        verbose_name_plural = "etats de jobs fractionnes"

    def __str__(self):
        return f"{self.job_id} @ {self.phase}"


class DemoTenantMetadata(TimeStampedModel):
    """Marks a tenant as demo-generated. Only such tenants accept patches."""

    tenant = models.OneToOneField(
        "crm.Tenant",
        on_delete=models.CASCADE,
        related_name="demo_metadata",
    )
    generation_job = models.ForeignKey(
        GenerationJob,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    is_demo_generated = models.BooleanField("genere pour la demo", default=True)
    country = models.CharField("pays", max_length=2, default="US")
    industry = models.CharField("secteur", max_length=20, default="saas")
    start_month = models.CharField("premier mois", max_length=7)
    seed = models.CharField("graine", max_length=64, blank=True, default="")

    class Meta:
        verbose_name = "metadonnees de tenant de demo"
        verbose_name_plural = "metadonnees de tenants de demo"

    def __str__(self):
        return f"demo:{self.tenant_id}"


class PatchJob(JobRecord):
    class Mode(models.TextChoices):
        ADDITIVE = "additive", "Ajout"
        RECONCILE = "reconcile", "Reconciliation"
        METRICS_ONLY = "metrics-only", "Metriques uniquement"

    class PlanType(models.TextChoices):
        TARGETS = "targets", "Objectifs"
        DELTAS = "deltas", "Ecarts"

    tenant = models.ForeignKey(
        "crm.Tenant",
        on_delete=models.CASCADE,
        related_name="patch_jobs",
    )
    mode = models.CharField("mode", max_length=20, choices=Mode.choices)
    plan_type = models.CharField("type de plan", max_length=10, choices=PlanType.choices)
    plan = models.JSONField("plan", default=dict)
    from_month = models.CharField("du mois", max_length=7)
    to_month = models.CharField("au mois", max_length=7)
    before_kpis = models.JSONField("KPI avant", null=True, blank=True)
    after_kpis = models.JSONField("KPI apres", null=True, blank=True)
    diff_report = models.JSONField("rapport d'ecarts", null=True, blank=True)

    class Meta(JobRecord.Meta):
        verbose_name = "job de patch"
        verbose_name_plural = "jobs de patch"

    def __str__(self):
        return f"patch {self.mode} {self.pk} ({self.status})"


class KpiOverride(TimeStampedModel):
    """Reported-metric adjustment written by a metrics-only patch. No records back it."""

    tenant = models.ForeignKey(
        "crm.Tenant",
        on_delete=models.CASCADE,
        related_name="kpi_overrides",
    )
    month = models.CharField("mois", max_length=7)
    closed_won_count = models.IntegerField("ajustement affaires gagnees", default=0)
    closed_won_value = models.DecimalField(
        "ajustement valeur gagnee",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    patch_job = models.ForeignKey(
        PatchJob,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="kpi_overrides",
    )

    class Meta:
        verbose_name = "ajustement de KPI"
        verbose_name_plural = "ajustements de KPI"
        indexes = [
            models.Index(fields=["tenant", "month"], name="kpi_override_tenant_month_idx"),
        ]

    def __str__(self):
        return f"{self.tenant_id} {self.month}"
