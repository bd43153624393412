"""Tenant-scoped CRM entities that demo jobs populate."""
from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class Tenant(TimeStampedModel):
    """A CRM workspace. Every entity below belongs to exactly one tenant."""

    name = models.CharField("nom", max_length=200)
    country = models.CharField("pays", max_length=2, default="US")
    currency = models.CharField("devise", max_length=3, default="USD")
    timezone = models.CharField("fuseau horaire", max_length=64, default="UTC")
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "tenant"
        verbose_name_plural = "tenants"
        ordering = ["name"]

    def __str__(self):
        return self.name


class TeamMember(TimeStampedModel):
    class Role(models.TextChoices):
        OWNER = "owner", "Proprietaire"
        ADMIN = "admin", "Administrateur"
        MEMBER = "member", "Membre"

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="team_members",
    )
    first_name = models.CharField("prenom", max_length=100)
    last_name = models.CharField("nom", max_length=100)
    email = models.EmailField("email")
    role = models.CharField("role", max_length=10, choices=Role.choices, default=Role.MEMBER)
    demo_generated = models.BooleanField(default=False)

    class Meta:
        verbose_name = "membre d'equipe"
        verbose_name_plural = "membres d'equipe"
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"


class PipelineStage(TimeStampedModel):
    """Deal stage. Won/lost flags drive every KPI computed over deals."""

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="pipeline_stages",
    )
    name = models.CharField("nom", max_length=100)
    position = models.PositiveSmallIntegerField("position", default=0)
    probability = models.PositiveSmallIntegerField(
        "probabilite (%)",
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    color = models.CharField("couleur", max_length=7, default="#6B7280")
    is_won = models.BooleanField("gagne", default=False)
    is_lost = models.BooleanField("perdu", default=False)

    class Meta:
        verbose_name = "etape de pipeline"
        verbose_name_plural = "etapes de pipeline"
        ordering = ["tenant", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "position"],
                name="uniq_pipeline_stage_position",
            ),
        ]

    def __str__(self):
        return self.name


class CrmRecord(TimeStampedModel):
    """Base for entities counted by the KPI layer.

    ``created_at`` is settable so generated history can be backdated into the
    month it belongs to.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE)
    created_at = models.DateTimeField("cree le", default=timezone.now, db_index=True)
    deleted_at = models.DateTimeField("supprime le", null=True, blank=True)

    demo_generated = models.BooleanField(default=False, db_index=True)
    demo_job_id = models.UUIDField(null=True, blank=True, db_index=True)
    demo_source_month = models.CharField(max_length=7, blank=True, default="")
    # Position inside the month's generated batch, used to re-link references on resume.
    demo_sequence = models.PositiveIntegerField(null=True, blank=True)

    class Meta(TimeStampedModel.Meta):
        abstract = True


class Company(CrmRecord):
    name = models.CharField("nom", max_length=200)
    domain = models.CharField("domaine", max_length=200, blank=True, default="")
    industry = models.CharField("secteur", max_length=100, blank=True, default="")
    size = models.CharField("taille", max_length=20, blank=True, default="")
    country = models.CharField("pays", max_length=2, blank=True, default="")
    city = models.CharField("ville", max_length=100, blank=True, default="")

    class Meta(CrmRecord.Meta):
        verbose_name = "entreprise"
        verbose_name_plural = "entreprises"
        indexes = [
            models.Index(fields=["tenant", "created_at"], name="company_tenant_created_idx"),
            models.Index(fields=["demo_job_id", "demo_source_month"], name="company_demo_job_month_idx"),
        ]

    def __str__(self):
        return self.name


class Contact(CrmRecord):
    class Status(models.TextChoices):
        LEAD = "lead", "Lead"
        PROSPECT = "prospect", "Prospect"
        CUSTOMER = "customer", "Client"
        CHURNED = "churned", "Perdu"
        OTHER = "other", "Autre"

    first_name = models.CharField("prenom", max_length=100)
    last_name = models.CharField("nom", max_length=100)
    email = models.EmailField("email", blank=True, default="")
    phone = models.CharField("telephone", max_length=40, blank=True, default="")
    status = models.CharField("statut", max_length=10, choices=Status.choices, default=Status.LEAD)
    source = models.CharField("canal d'acquisition", max_length=40, blank=True, default="")
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contacts",
    )
    owner = models.ForeignKey(
        TeamMember,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contacts",
    )

    class Meta(CrmRecord.Meta):
        verbose_name = "contact"
        verbose_name_plural = "contacts"
        indexes = [
            models.Index(fields=["tenant", "created_at"], name="contact_tenant_created_idx"),
            models.Index(fields=["tenant", "status"], name="contact_tenant_status_idx"),
            models.Index(fields=["demo_job_id", "demo_source_month"], name="contact_demo_job_month_idx"),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"


class Deal(CrmRecord):
    title = models.CharField("titre", max_length=200)
    value = models.DecimalField("montant", max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField("devise", max_length=3, default="USD")
    stage = models.ForeignKey(
        PipelineStage,
        on_delete=models.PROTECT,
        related_name="deals",
    )
    contact = models.ForeignKey(
        Contact,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deals",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deals",
    )
    owner = models.ForeignKey(
        TeamMember,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deals",
    )
    expected_close_date = models.DateField("cloture prevue", null=True, blank=True)
    closed_at = models.DateTimeField("cloture le", null=True, blank=True)

    class Meta(CrmRecord.Meta):
        verbose_name = "affaire"
        verbose_name_plural = "affaires"
        indexes = [
            models.Index(fields=["tenant", "created_at"], name="deal_tenant_created_idx"),
            models.Index(fields=["demo_job_id", "demo_source_month"], name="deal_demo_job_month_idx"),
        ]

    def __str__(self):
        return self.title


class Activity(CrmRecord):
    class Type(models.TextChoices):
        CALL = "call", "Appel"
        EMAIL = "email", "Email"
        MEETING = "meeting", "Rendez-vous"
        NOTE = "note", "Note"
        TASK = "task", "Tache"

    type = models.CharField("type", max_length=10, choices=Type.choices)
    subject = models.CharField("objet", max_length=200)
    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="activities",
    )
    contact = models.ForeignKey(
        Contact,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="activities",
    )
    owner = models.ForeignKey(
        TeamMember,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )
    completed_at = models.DateTimeField("realisee le", null=True, blank=True)

    class Meta(CrmRecord.Meta):
        verbose_name = "activite"
        verbose_name_plural = "activites"
        indexes = [
            models.Index(fields=["tenant", "created_at"], name="activity_tenant_created_idx"),
            models.Index(fields=["demo_job_id", "demo_source_month"], name="activity_demo_job_month_idx"),
        ]

    def __str__(self):
        return self.subject
