import decimal
import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("name", models.CharField(max_length=200, verbose_name="nom")),
                ("country", models.CharField(default="US", max_length=2, verbose_name="pays")),
                ("currency", models.CharField(default="USD", max_length=3, verbose_name="devise")),
                ("timezone", models.CharField(default="UTC", max_length=64, verbose_name="fuseau horaire")),
                ("is_active", models.BooleanField(default=True, verbose_name="actif")),
            ],
            options={
                "verbose_name": "tenant",
                "verbose_name_plural": "tenants",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="TeamMember",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("first_name", models.CharField(max_length=100, verbose_name="prenom")),
                ("last_name", models.CharField(max_length=100, verbose_name="nom")),
                ("email", models.EmailField(max_length=254, verbose_name="email")),
                (
                    "role",
                    models.CharField(
                        choices=[("owner", "Proprietaire"), ("admin", "Administrateur"), ("member", "Membre")],
                        default="member",
                        max_length=10,
                        verbose_name="role",
                    ),
                ),
                ("demo_generated", models.BooleanField(default=False)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="team_members",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "membre d'equipe",
                "verbose_name_plural": "membres d'equipe",
                "ordering": ["last_name", "first_name"],
            },
        ),
        migrations.CreateModel(
            name="PipelineStage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="cree le")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                ("name", models.CharField(max_length=100, verbose_name="nom")),
                ("position", models.PositiveSmallIntegerField(default=0, verbose_name="position")),
                (
                    "probability",
                    models.PositiveSmallIntegerField(
                        default=0,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                        verbose_name="probabilite (%)",
                    ),
                ),
                ("color", models.CharField(default="#6B7280", max_length=7, verbose_name="couleur")),
                ("is_won", models.BooleanField(default=False, verbose_name="gagne")),
                ("is_lost", models.BooleanField(default=False, verbose_name="perdu")),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pipeline_stages",
                        to="crm.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "etape de pipeline",
                "verbose_name_plural": "etapes de pipeline",
                "ordering": ["tenant", "position"],
            },
        ),
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="cree le"),
                ),
                ("deleted_at", models.DateTimeField(blank=True, null=True, verbose_name="supprime le")),
                ("demo_generated", models.BooleanField(db_index=True, default=False)),
                ("demo_job_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("demo_source_month", models.CharField(blank=True, default="", max_length=7)),
                ("demo_sequence", models.PositiveIntegerField(blank=True, null=True)),
                ("name", models.CharField(max_length=200, verbose_name="nom")),
                ("domain", models.CharField(blank=True, default="", max_length=200, verbose_name="domaine")),
                ("industry", models.CharField(blank=True, default="", max_length=100, verbose_name="secteur")),
                ("size", models.CharField(blank=True, default="", max_length=20, verbose_name="taille")),
                ("country", models.CharField(blank=True, default="", max_length=2, verbose_name="pays")),
                ("city", models.CharField(blank=True, default="", max_length=100, verbose_name="ville")),
                (
                    "tenant",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="crm.tenant"),
                ),
            ],
            options={
                "verbose_name": "entreprise",
                "verbose_name_plural": "entreprises",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Contact",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="cree le"),
                ),
                ("deleted_at", models.DateTimeField(blank=True, null=True, verbose_name="supprime le")),
                ("demo_generated", models.BooleanField(db_index=True, default=False)),
                ("demo_job_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("demo_source_month", models.CharField(blank=True, default="", max_length=7)),
                ("demo_sequence", models.PositiveIntegerField(blank=True, null=True)),
                ("first_name", models.CharField(max_length=100, verbose_name="prenom")),
                ("last_name", models.CharField(max_length=100, verbose_name="nom")),
                ("email", models.EmailField(blank=True, default="", max_length=254, verbose_name="email")),
                ("phone", models.CharField(blank=True, default="", max_length=40, verbose_name="telephone")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("lead", "Lead"),
                            ("prospect", "Prospect"),
                            ("customer", "Client"),
                            ("churned", "Perdu"),
                            ("other", "Autre"),
                        ],
                        default="lead",
                        max_length=10,
                        verbose_name="statut",
                    ),
                ),
                (
                    "source",
                    models.CharField(blank=True, default="", max_length=40, verbose_name="canal d'acquisition"),
                ),
                (
                    "company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="contacts",
                        to="crm.company",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="contacts",
                        to="crm.teammember",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="crm.tenant"),
                ),
            ],
            options={
                "verbose_name": "contact",
                "verbose_name_plural": "contacts",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Deal",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="cree le"),
                ),
                ("deleted_at", models.DateTimeField(blank=True, null=True, verbose_name="supprime le")),
                ("demo_generated", models.BooleanField(db_index=True, default=False)),
                ("demo_job_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("demo_source_month", models.CharField(blank=True, default="", max_length=7)),
                ("demo_sequence", models.PositiveIntegerField(blank=True, null=True)),
                ("title", models.CharField(max_length=200, verbose_name="titre")),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14, verbose_name="montant"
                    ),
                ),
                ("currency", models.CharField(default="USD", max_length=3, verbose_name="devise")),
                ("expected_close_date", models.DateField(blank=True, null=True, verbose_name="cloture prevue")),
                ("closed_at", models.DateTimeField(blank=True, null=True, verbose_name="cloture le")),
                (
                    "company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deals",
                        to="crm.company",
                    ),
                ),
                (
                    "contact",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deals",
                        to="crm.contact",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deals",
                        to="crm.teammember",
                    ),
                ),
                (
                    "stage",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="deals",
                        to="crm.pipelinestage",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="crm.tenant"),
                ),
            ],
            options={
                "verbose_name": "affaire",
                "verbose_name_plural": "affaires",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Activity",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="modifie le")),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="cree le"),
                ),
                ("deleted_at", models.DateTimeField(blank=True, null=True, verbose_name="supprime le")),
                ("demo_generated", models.BooleanField(db_index=True, default=False)),
                ("demo_job_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("demo_source_month", models.CharField(blank=True, default="", max_length=7)),
                ("demo_sequence", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("call", "Appel"),
                            ("email", "Email"),
                            ("meeting", "Rendez-vous"),
                            ("note", "Note"),
                            ("task", "Tache"),
                        ],
                        max_length=10,
                        verbose_name="type",
                    ),
                ),
                ("subject", models.CharField(max_length=200, verbose_name="objet")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="realisee le")),
                (
                    "contact",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="crm.contact",
                    ),
                ),
                (
                    "deal",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="crm.deal",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="activities",
                        to="crm.teammember",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="crm.tenant"),
                ),
            ],
            options={
                "verbose_name": "activite",
                "verbose_name_plural": "activites",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.AddConstraint(
            model_name="pipelinestage",
            constraint=models.UniqueConstraint(fields=("tenant", "position"), name="uniq_pipeline_stage_position"),
        ),
        migrations.AddIndex(
            model_name="company",
            index=models.Index(fields=["tenant", "created_at"], name="company_tenant_created_idx"),
        ),
        migrations.AddIndex(
            model_name="company",
            index=models.Index(fields=["demo_job_id", "demo_source_month"], name="company_demo_job_month_idx"),
        ),
        migrations.AddIndex(
            model_name="contact",
            index=models.Index(fields=["tenant", "created_at"], name="contact_tenant_created_idx"),
        ),
        migrations.AddIndex(
            model_name="contact",
            index=models.Index(fields=["tenant", "status"], name="contact_tenant_status_idx"),
        ),
        migrations.AddIndex(
            model_name="contact",
            index=models.Index(fields=["demo_job_id", "demo_source_month"], name="contact_demo_job_month_idx"),
        ),
        migrations.AddIndex(
            model_name="deal",
            index=models.Index(fields=["tenant", "created_at"], name="deal_tenant_created_idx"),
        ),
        migrations.AddIndex(
            model_name="deal",
            index=models.Index(fields=["demo_job_id", "demo_source_month"], name="deal_demo_job_month_idx"),
        ),
        migrations.AddIndex(
            model_name="activity",
            index=models.Index(fields=["tenant", "created_at"], name="activity_tenant_created_idx"),
        ),
        migrations.AddIndex(
            model_name="activity",
            index=models.Index(fields=["demo_job_id", "demo_source_month"], name="activity_demo_job_month_idx"),
        ),
    ]
