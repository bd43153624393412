import decimal
import uuid

import django.db.models.deletion
from django.db import migrations, models


JOB_STATUS_CHOICES = [
    ("pending", "En attente"),
    ("running", "En cours"),
    ("completed", "Termine"),
    ("failed", "Echoue"),
]


def job_record_fields():
    return [
        ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
        ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
        (
            "status",
            models.CharField(
                choices=JOB_STATUS_CHOICES,
                db_index=True,
                default="pending",
                max_length=10,
                verbose_name="statut",
            ),
        ),
        ("progress", models.PositiveSmallIntegerField(default=0, verbose_name="progression (%)")),
        ("current_step", models.CharField(blank=True, default="", max_length=120, verbose_name="etape")),
        ("seed", models.CharField(max_length=64, verbose_name="graine")),
        ("metrics", models.JSONField(blank=True, default=dict, verbose_name="metriques")),
        ("logs", models.JSONField(blank=True, default=list, verbose_name="journal")),
        ("error_message", models.TextField(blank=True, default="", verbose_name="erreur")),
        ("requested_by", models.CharField(blank=True, default="", max_length=150, verbose_name="demande par")),
        ("started_at", models.DateTimeField(blank=True, null=True, verbose_name="demarre le")),
        ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="termine le")),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("crm", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="GenerationJob",
            fields=job_record_fields() + [
                (
                    "mode",
                    models.CharField(
                        choices=[("growth-curve", "Courbe de croissance"), ("monthly-plan", "Plan mensuel")],
                        default="growth-curve",
                        max_length=20,
                        verbose_name="mode",
                    ),
                ),
                ("config", models.JSONField(default=dict, verbose_name="configuration")),
                ("monthly_plan", models.JSONField(blank=True, null=True, verbose_name="plan mensuel")),
                (
                    "verification_passed",
                    models.BooleanField(blank=True, null=True, verbose_name="verification reussie"),
                ),
                (
                    "verification_report",
                    models.JSONField(blank=True, null=True, verbose_name="rapport de verification"),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="generation_jobs",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "job de generation",
                "verbose_name_plural": "jobs de generation",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="ChunkedJobState",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "phase",
                    models.CharField(
                        choices=[
                            ("init", "Initialisation"),
                            ("companies", "Entreprises"),
                            ("contacts", "Contacts"),
                            ("deals", "Affaires"),
                            ("activities", "Activites"),
                            ("finalize", "Verification"),
                            ("completed", "Termine"),
                        ],
                        default="init",
                        max_length=12,
                        verbose_name="phase",
                    ),
                ),
                ("cursor", models.JSONField(blank=True, default=dict, verbose_name="curseur")),
                ("tallies", models.JSONField(blank=True, default=dict, verbose_name="compteurs")),
                ("version", models.PositiveIntegerField(default=0, verbose_name="version")),
                ("invocations", models.PositiveIntegerField(default=0, verbose_name="executions")),
                ("lease_token", models.UUIDField(blank=True, null=True, verbose_name="jeton de verrou")),
                (
                    "lease_expires_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="expiration du verrou"),
                ),
                (
                    "job",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chunk_state",
                        to="demo_generator.generationjob",
                    ),
                ),
            ],
            options={
                "verbose_name": "etat de job fractionne",
                "verbose_name_plural": "etats de jobs fractionnes",
            },
        ),
        migrations.CreateModel(
            name="DemoTenantMetadata",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("is_demo_generated", models.BooleanField(default=True, verbose_name="genere pour la demo")),
                ("country", models.CharField(default="US", max_length=2, verbose_name="pays")),
                ("industry", models.CharField(default="saas", max_length=20, verbose_name="secteur")),
                ("start_month", models.CharField(max_length=7, verbose_name="premier mois")),
                ("seed", models.CharField(blank=True, default="", max_length=64, verbose_name="graine")),
                (
                    "generation_job",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="demo_generator.generationjob",
                    ),
                ),
                (
                    "tenant",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="demo_metadata",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "metadonnees de tenant de demo",
                "verbose_name_plural": "metadonnees de tenants de demo",
            },
        ),
        migrations.CreateModel(
            name="PatchJob",
            fields=job_record_fields() + [
                (
                    "mode",
                    models.CharField(
                        choices=[
                            ("additive", "Ajout"),
                            ("reconcile", "Reconciliation"),
                            ("metrics-only", "Metriques uniquement"),
                        ],
                        max_length=20,
                        verbose_name="mode",
                    ),
                ),
                (
                    "plan_type",
                    models.CharField(
                        choices=[("targets", "Objectifs"), ("deltas", "Ecarts")],
                        max_length=10,
                        verbose_name="type de plan",
                    ),
                ),
                ("plan", models.JSONField(default=dict, verbose_name="plan")),
                ("from_month", models.CharField(max_length=7, verbose_name="du mois")),
                ("to_month", models.CharField(max_length=7, verbose_name="au mois")),
                ("before_kpis", models.JSONField(blank=True, null=True, verbose_name="KPI avant")),
                ("after_kpis", models.JSONField(blank=True, null=True, verbose_name="KPI apres")),
                ("diff_report", models.JSONField(blank=True, null=True, verbose_name="rapport d'ecarts")),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="patch_jobs",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "job de patch",
                "verbose_name_plural": "jobs de patch",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="KpiOverride",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("month", models.CharField(max_length=7, verbose_name="mois")),
                (
                    "closed_won_count",
                    models.IntegerField(default=0, verbose_name="ajustement affaires gagnees"),
                ),
                (
                    "closed_won_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        max_digits=14,
                        verbose_name="ajustement valeur gagnee",
                    ),
                ),
                (
                    "patch_job",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="kpi_overrides",
                        to="demo_generator.patchjob",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="kpi_overrides",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "ajustement de KPI",
                "verbose_name_plural": "ajustements de KPI",
            },
        ),
        migrations.AddIndex(
            model_name="kpioverride",
            index=models.Index(fields=["tenant", "month"], name="kpi_override_tenant_month_idx"),
        ),
    ]
