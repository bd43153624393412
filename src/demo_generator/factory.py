"""Builds one month's worth of CRM records for a tenant.

Every builder returns unsaved model instances in a deterministic order for a
given RNG stream; callers persist them with ``bulk_create`` (possibly in
slices, when a chunked job resumes mid-month).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import NamedTuple

from crm.models import Activity, Company, Contact, Deal, PipelineStage, TeamMember, Tenant
from demo_generator.defaults import COMPANY_LINK_RATE, DEFAULT_LOST_SHARE
from demo_generator.localization import LocalizationProvider
from demo_generator.scheduling import after_in_month, spread_over_days, timestamp_on
from demo_generator.templates import IndustryTemplate, get_template
from demo_generator.values import allocate_deal_values, sample_deal_value

NON_LEAD_STATUSES = (Contact.Status.PROSPECT, Contact.Status.CUSTOMER, Contact.Status.OTHER)
NON_LEAD_WEIGHTS = (0.6, 0.3, 0.1)
ACTIVITY_SUBJECTS = {
    Activity.Type.CALL: ("Appel de qualification", "Appel de suivi", "Appel de decouverte"),
    Activity.Type.EMAIL: ("Email de presentation", "Relance par email", "Envoi de proposition"),
    Activity.Type.MEETING: ("Rendez-vous de demo", "Reunion de cadrage", "Point de negociation"),
    Activity.Type.NOTE: ("Compte rendu", "Note interne"),
    Activity.Type.TASK: ("Preparer la proposition", "Mettre a jour le CRM"),
}
OTHER_ACTIVITY_TYPES = (Activity.Type.EMAIL, Activity.Type.MEETING, Activity.Type.NOTE, Activity.Type.TASK)
OTHER_ACTIVITY_WEIGHTS = (0.55, 0.2, 0.15, 0.1)


class ContactRef(NamedTuple):
    id: object
    company_id: object
    created_at: object


class DealRef(NamedTuple):
    id: object
    contact_id: object
    created_at: object


@dataclass
class TenantContext:
    """Everything the builders need to know about the target tenant."""

    tenant: Tenant
    template: IndustryTemplate
    localization: LocalizationProvider
    owners: list[TeamMember]
    open_stages: list[PipelineStage]
    won_stages: list[PipelineStage]
    lost_stages: list[PipelineStage]
    channel_mix: dict[str, float] = field(default_factory=dict)
    whale_ratio: float = 0
    response_sla_hours: float = 4
    lost_share: float = DEFAULT_LOST_SHARE

    @classmethod
    def load(cls, tenant: Tenant, config: dict, seed: str) -> "TenantContext":
        stages = list(PipelineStage.objects.filter(tenant=tenant).order_by("position"))
        realism = config.get("realism") or {}
        return cls(
            tenant=tenant,
            template=get_template(config.get("industry", "saas")),
            localization=LocalizationProvider(config.get("country", tenant.country), seed),
            owners=list(TeamMember.objects.filter(tenant=tenant).order_by("email", "pk")),
            open_stages=[s for s in stages if not s.is_won and not s.is_lost],
            won_stages=[s for s in stages if s.is_won],
            lost_stages=[s for s in stages if s.is_lost],
            channel_mix=config.get("channelMix") or {"direct": 100},
            whale_ratio=float(realism.get("whaleRatio", 0)),
            response_sla_hours=float(realism.get("responseSlaHours", 4)),
        )

    def owner(self, rng):
        return rng.pick(self.owners) if self.owners else None

    def channel(self, rng) -> str:
        channels = list(self.channel_mix)
        return rng.pick_weighted(channels, [self.channel_mix[c] for c in channels])


def _provenance(ctx: TenantContext, job_id, month: str, sequence: int) -> dict:
    return {
        "tenant": ctx.tenant,
        "demo_generated": True,
        "demo_job_id": job_id,
        "demo_source_month": month,
        "demo_sequence": sequence,
    }


def build_companies(ctx: TenantContext, job_id, month: str, count: int, rng) -> list[Company]:
    companies = []
    sizes = ("1-10", "11-50", "51-200", "201-500", "500+")
    for i, day in enumerate(spread_over_days(count, month)):
        details = ctx.localization.company(rng, ctx.template.company_suffixes)
        companies.append(
            Company(
                name=details["name"],
                domain=details["domain"],
                city=details["city"],
                country=details["country"],
                industry=ctx.template.name,
                size=rng.pick_weighted(sizes, (0.35, 0.3, 0.2, 0.1, 0.05)),
                created_at=timestamp_on(day, rng),
                **_provenance(ctx, job_id, month, i),
            )
        )
    return companies


def build_contacts(
    ctx: TenantContext,
    job_id,
    month: str,
    count: int,
    leads: int,
    company_ids: list,
    rng,
) -> list[Contact]:
    """``leads`` of the ``count`` contacts stay in lead status."""
    leads = min(max(leads, 0), count)
    statuses = [Contact.Status.LEAD] * leads + [
        rng.pick_weighted(NON_LEAD_STATUSES, NON_LEAD_WEIGHTS) for _ in range(count - leads)
    ]
    statuses = rng.shuffle(statuses)
    contacts = []
    for i, day in enumerate(spread_over_days(count, month)):
        person = ctx.localization.person(rng)
        company_id = None
        if company_ids and rng.bool(COMPANY_LINK_RATE):
            company_id = rng.pick(company_ids)
        owner = ctx.owner(rng)
        contacts.append(
            Contact(
                first_name=person["first_name"],
                last_name=person["last_name"],
                email=person["email"],
                phone=person["phone"],
                status=statuses[i],
                source=ctx.channel(rng),
                company_id=company_id,
                owner=owner,
                created_at=timestamp_on(day, rng),
                **_provenance(ctx, job_id, month, i),
            )
        )
    return contacts


def build_deals(
    ctx: TenantContext,
    job_id,
    month: str,
    count: int,
    won_count: int,
    won_value: Decimal,
    pipeline_value: Decimal | None,
    contacts: list[ContactRef],
    company_ids: list,
    rng,
) -> list[Deal]:
    """Create ``count`` deals of which ``won_count`` are won.

    Won values sum to ``won_value``. Open deals carry ``pipeline_value -
    won_value``; lost deals sit outside the pipeline. A missing target
    (``None``) leaves the corresponding values free-standing.
    """
    won_count = min(max(won_count or 0, 0), count)
    free_won_values = won_value is None
    won_value = Decimal(won_value or 0)
    others = count - won_count
    free_open_values = pipeline_value is None
    open_value = Decimal("0.00")
    if not free_open_values:
        open_value = max(Decimal(pipeline_value) - Decimal(won_value), Decimal("0.00"))

    if free_open_values:
        lost_flags = [rng.bool(ctx.lost_share) for _ in range(others)]
    elif open_value > 0:
        lost_flags = [rng.bool(ctx.lost_share) for _ in range(others)]
        if others and all(lost_flags):
            lost_flags[0] = False
    else:
        lost_flags = [True] * others
    open_count = lost_flags.count(False)

    if free_won_values:
        won_values = [sample_deal_value(ctx.template, rng) for _ in range(won_count)]
    else:
        won_values = allocate_deal_values(won_count, won_value, rng, ctx.whale_ratio)
    if free_open_values:
        open_values = [sample_deal_value(ctx.template, rng) for _ in range(open_count)]
    else:
        open_values = allocate_deal_values(open_count, open_value, rng, ctx.whale_ratio)
    plan = [("won", v) for v in won_values] + [("open", v) for v in open_values]
    plan += [("lost", sample_deal_value(ctx.template, rng)) for _ in range(others - open_count)]
    plan = rng.shuffle(plan)

    cycle_min, cycle_max = ctx.template.cycle_days
    deals = []
    for i, day in enumerate(spread_over_days(count, month)):
        kind, value = plan[i]
        created_at = timestamp_on(day, rng)
        contact = rng.pick(contacts) if contacts else None
        company_id = contact.company_id if contact else None
        if company_id is None and company_ids and rng.bool(0.5):
            company_id = rng.pick(company_ids)

        if kind == "won":
            stage = rng.pick(ctx.won_stages)
        elif kind == "lost":
            stage = rng.pick(ctx.lost_stages)
        else:
            stage = rng.pick(ctx.open_stages)
        closed_at = None
        if kind != "open":
            closed_at = after_in_month(created_at, timedelta(hours=rng.int(1, 20 * 24)), month, rng)

        deals.append(
            Deal(
                title=f"{rng.pick(ctx.template.deal_titles)} {month}-{i + 1:04d}",
                value=value,
                currency=ctx.tenant.currency,
                stage=stage,
                contact_id=contact.id if contact else None,
                company_id=company_id,
                owner=ctx.owner(rng),
                expected_close_date=(created_at + timedelta(days=rng.int(cycle_min, cycle_max))).date(),
                closed_at=closed_at,
                created_at=created_at,
                **_provenance(ctx, job_id, month, i),
            )
        )
    return deals


def _activity_type(ctx: TenantContext, rng):
    if rng.bool(ctx.template.call_to_email_ratio):
        return Activity.Type.CALL
    return rng.pick_weighted(OTHER_ACTIVITY_TYPES, OTHER_ACTIVITY_WEIGHTS)


def build_activities(
    ctx: TenantContext,
    job_id,
    month: str,
    deals: list[DealRef],
    contacts: list[ContactRef],
    rng,
    count: int | None = None,
) -> list[Activity]:
    """Activities attached to the month's deals (or contacts when there are none).

    Without an explicit ``count`` each deal gets a first touch inside the
    response SLA plus a few follow-ups.
    """
    parents: list[tuple] = [(d.id, d.contact_id, d.created_at) for d in deals]
    if not parents:
        parents = [(None, c.id, c.created_at) for c in contacts]

    schedule: list[tuple] = []
    if count is None:
        max_followups = max(1, ctx.template.activities_per_deal // 5)
        for deal_id, contact_id, created_at in parents:
            sla_seconds = int(ctx.response_sla_hours * 3600)
            delay = timedelta(seconds=rng.int(60, max(60, sla_seconds)))
            schedule.append((deal_id, contact_id, after_in_month(created_at, delay, month, rng)))
            for _ in range(rng.int(0, max_followups)):
                delay = timedelta(hours=rng.int(24, 24 * 14))
                schedule.append((deal_id, contact_id, after_in_month(created_at, delay, month, rng)))
    elif parents:
        for i in range(count):
            deal_id, contact_id, created_at = parents[i % len(parents)]
            delay = timedelta(hours=rng.int(1, 72))
            schedule.append((deal_id, contact_id, after_in_month(created_at, delay, month, rng)))
    else:
        schedule = [(None, None, timestamp_on(day, rng)) for day in spread_over_days(count, month)]

    activities = []
    for i, (deal_id, contact_id, moment) in enumerate(schedule):
        kind = _activity_type(ctx, rng)
        activities.append(
            Activity(
                type=kind,
                subject=rng.pick(ACTIVITY_SUBJECTS[kind]),
                deal_id=deal_id,
                contact_id=contact_id,
                owner=ctx.owner(rng),
                completed_at=moment,
                created_at=moment,
                **_provenance(ctx, job_id, month, i),
            )
        )
    return activities


def month_company_ids(tenant: Tenant, job_id, month: str) -> list:
    return list(
        Company.objects.filter(tenant=tenant, demo_job_id=job_id, demo_source_month=month)
        .order_by("demo_sequence")
        .values_list("pk", flat=True)
    )


def month_contact_refs(tenant: Tenant, job_id, month: str) -> list[ContactRef]:
    rows = (
        Contact.objects.filter(tenant=tenant, demo_job_id=job_id, demo_source_month=month)
        .order_by("demo_sequence")
        .values_list("pk", "company_id", "created_at")
    )
    return [ContactRef(*row) for row in rows]


def month_deal_refs(tenant: Tenant, job_id, month: str) -> list[DealRef]:
    rows = (
        Deal.objects.filter(tenant=tenant, demo_job_id=job_id, demo_source_month=month)
        .order_by("demo_sequence")
        .values_list("pk", "contact_id", "created_at")
    )
    return [DealRef(*row) for row in rows]
