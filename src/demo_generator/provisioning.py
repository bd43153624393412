"""Creates the demo tenant: tenant row, demo marker, team and pipeline."""
from __future__ import annotations

import logging

from django.db import transaction

from crm.models import PipelineStage, TeamMember, Tenant
from demo_generator.localization import LocalizationProvider
from demo_generator.models import DemoTenantMetadata, GenerationJob
from demo_generator.templates import get_template

logger = logging.getLogger("demoforge")


def provision_tenant(job: GenerationJob, config: dict, start_month: str, rng) -> Tenant:
    """Create and attach the job's tenant. Runs in a single transaction."""
    template = get_template(config.get("industry", "saas"))
    localization = LocalizationProvider(config.get("country", "US"), job.seed)
    stream = rng.child("provision")

    with transaction.atomic():
        tenant = Tenant.objects.create(
            name=config.get("tenantName") or "Demo Company",
            country=(config.get("country") or "US")[:2],
            currency=config.get("currency") or "USD",
            timezone=config.get("timezone") or "UTC",
        )
        DemoTenantMetadata.objects.create(
            tenant=tenant,
            generation_job=job,
            country=tenant.country,
            industry=template.id,
            start_month=start_month,
            seed=job.seed,
        )

        domain = f"{tenant.name.lower().replace(' ', '')[:30] or 'demo'}.example.com"
        members = []
        for i in range(int(config.get("teamSize", 1))):
            person = localization.person(stream)
            if i == 0:
                role = TeamMember.Role.OWNER
            elif i == 1:
                role = TeamMember.Role.ADMIN
            else:
                role = TeamMember.Role.MEMBER
            members.append(
                TeamMember(
                    tenant=tenant,
                    first_name=person["first_name"],
                    last_name=person["last_name"],
                    email=f"{i + 1:02d}.{localization.work_email(person['first_name'], person['last_name'], domain)}",
                    role=role,
                    demo_generated=True,
                )
            )
        TeamMember.objects.bulk_create(members)

        PipelineStage.objects.bulk_create(
            [
                PipelineStage(
                    tenant=tenant,
                    name=stage.name,
                    position=position,
                    probability=stage.probability,
                    color=stage.color,
                    is_won=stage.kind == "won",
                    is_lost=stage.kind == "lost",
                )
                for position, stage in enumerate(template.stages)
            ]
        )

        job.tenant = tenant
        job.save(update_fields=["tenant", "updated_at"])

    logger.info(
        "Provisioned demo tenant %s (%s, %d members) for job %s",
        tenant.pk,
        template.id,
        len(members),
        job.pk,
    )
    return tenant
