"""Patch validation, delta computation and preview for existing demo tenants.

A patch plan lists per-month targets (absolute values) or deltas. Patches
only ever add records: negative deltas beyond tolerance are blockers in
``additive`` and ``reconcile`` mode. ``metrics-only`` writes reported-metric
adjustments for closed-won figures instead of records.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.conf import settings

from demo_generator.config import (
    CAMEL_CASE,
    COUNT_METRICS,
    MonthlyMetrics,
    PatchPlan,
    current_month,
)
from demo_generator.exceptions import TenantIneligibleError
from demo_generator.models import DemoTenantMetadata
from demo_generator.plan_validator import (
    ACTIVITIES_PER_CONTACT,
    GROWTH_WARNING_PERCENT,
    MONTH_PATTERN,
    RECORDS_PER_SECOND,
    SECONDS_PER_MONTH,
    PlanIssue,
)

logger = logging.getLogger("demoforge")

METRICS_ONLY_ALLOWED = ("closed_won_count", "closed_won_value")
MIN_PATCH_SECONDS = 10
LARGE_PATCH_RECORDS = 10000


@dataclass
class DeltaResult:
    """``deltas`` maps month -> {metric: delta}; blocked metrics are left out."""

    deltas: dict[str, dict] = field(default_factory=dict)
    blockers: list[PlanIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deltas": {
                month: {CAMEL_CASE[k]: float(v) if isinstance(v, Decimal) else v for k, v in values.items()}
                for month, values in self.deltas.items()
            },
            "blockers": [b.to_dict() for b in self.blockers],
        }


@dataclass
class PatchPreview:
    estimated_records: dict[str, int]
    warnings: list[PlanIssue] = field(default_factory=list)
    blockers: list[PlanIssue] = field(default_factory=list)
    affected_months: list[str] = field(default_factory=list)
    estimated_duration_seconds: int = MIN_PATCH_SECONDS

    @property
    def total_records(self) -> int:
        return sum(self.estimated_records.values())

    def to_dict(self) -> dict:
        return {
            "estimatedRecords": dict(self.estimated_records),
            "totalRecords": self.total_records,
            "affectedMonths": list(self.affected_months),
            "warnings": [w.to_dict() for w in self.warnings],
            "blockers": [b.to_dict() for b in self.blockers],
            "estimatedDurationSeconds": self.estimated_duration_seconds,
        }


@dataclass
class ValidationResult:
    valid: bool
    errors: list[PlanIssue] = field(default_factory=list)
    warnings: list[PlanIssue] = field(default_factory=list)
    delta_result: DeltaResult | None = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def validate_demo_tenant(tenant_id) -> DemoTenantMetadata:
    metadata = DemoTenantMetadata.objects.select_related("tenant", "generation_job").filter(tenant_id=tenant_id).first()
    if metadata is None or not metadata.is_demo_generated:
        raise TenantIneligibleError()
    return metadata


def _current_by_month(current_kpis) -> dict[str, MonthlyMetrics]:
    return {snapshot.month: snapshot.metrics for snapshot in current_kpis}


def _metrics_only_bounds(month: str, existing: MonthlyMetrics, deltas: dict) -> list[PlanIssue]:
    """Closed-won figures after an override must stay non-negative and within the month's deals."""
    issues = []
    deals = existing.deals_created or 0
    count = (existing.closed_won_count or 0) + deltas.get("closed_won_count", 0)
    value = (existing.closed_won_value or Decimal("0.00")) + deltas.get("closed_won_value", Decimal("0.00"))
    if count < 0:
        issues.append(
            PlanIssue(
                f"{month}.closedWonCount",
                f"{month}: le nombre d'affaires gagnees deviendrait negatif ({count}).",
                f"Limitez la baisse a {existing.closed_won_count or 0}.",
            )
        )
    elif count > deals:
        issues.append(
            PlanIssue(
                f"{month}.closedWonCount",
                f"{month}: {count} affaires gagnees pour seulement {deals} affaire(s) creee(s).",
                "Creez d'abord les affaires en mode additive.",
            )
        )
    if value < 0:
        issues.append(
            PlanIssue(
                f"{month}.closedWonValue",
                f"{month}: la valeur gagnee deviendrait negative ({value}).",
                f"Limitez la baisse a {existing.closed_won_value or 0}.",
            )
        )
    return issues


def compute_deltas(plan: PatchPlan, current_kpis) -> DeltaResult:
    current = _current_by_month(current_kpis)
    tolerances = plan.tolerances
    result = DeltaResult()

    for target in plan.months:
        month = target.month
        existing = current.get(month) or MonthlyMetrics.zero()
        month_deltas = {}
        for metric, value in target.metrics.provided().items():
            label = CAMEL_CASE[metric]
            now = existing.get(metric) or 0
            delta = value - now if plan.plan_type == "targets" else value

            if plan.mode == "metrics-only":
                if metric not in METRICS_ONLY_ALLOWED:
                    result.blockers.append(
                        PlanIssue(
                            f"{month}.{label}",
                            f"{month}: {label} ne peut pas etre modifie en mode metrics-only.",
                            "Utilisez le mode additive pour creer des enregistrements.",
                        )
                    )
                    continue
                month_deltas[metric] = delta
                continue

            if delta < 0:
                if metric in COUNT_METRICS:
                    slack = tolerances.count_tolerance
                else:
                    slack = tolerances.value_slack(Decimal(now))
                if -delta <= slack:
                    delta = 0 if metric in COUNT_METRICS else Decimal("0.00")
                elif plan.mode == "reconcile":
                    result.blockers.append(
                        PlanIssue(
                            f"{month}.{label}",
                            f"{month}: {label} passerait de {now} a {now + delta}, ce qui necessite une suppression.",
                            "La reconciliation ne supprime pas de donnees. Relevez l'objectif.",
                        )
                    )
                    continue
                else:
                    result.blockers.append(
                        PlanIssue(
                            f"{month}.{label}",
                            f"{month}: {label} diminuerait de {-delta} (actuel {now}). Le mode additive ne fait qu'ajouter.",
                            f"Fixez un objectif superieur ou egal a {now}.",
                        )
                    )
                    continue
            month_deltas[metric] = delta
        result.deltas[month] = month_deltas
    return result


def records_for_month(deltas: dict) -> dict[str, int]:
    """Records a patch creates for one month's deltas."""
    leads = max(deltas.get("leads_created", 0), 0)
    contacts = max(deltas.get("contacts_created", 0), leads)
    deals = max(deltas.get("deals_created", 0), deltas.get("closed_won_count", 0), 0)
    activities = deltas.get("activities_created")
    if activities is None:
        activities = contacts * ACTIVITIES_PER_CONTACT
    return {
        "contacts": contacts,
        "companies": max(deltas.get("companies_created", 0), 0),
        "deals": deals,
        "activities": max(activities, 0),
    }


def generate_preview(plan: PatchPlan, current_kpis, delta_result: DeltaResult) -> PatchPreview:
    estimated = {"contacts": 0, "companies": 0, "deals": 0, "activities": 0}
    warnings: list[PlanIssue] = []
    affected = [month for month, values in delta_result.deltas.items() if any(values.values())]

    if plan.mode != "metrics-only":
        for month, values in delta_result.deltas.items():
            won = values.get("closed_won_count", 0)
            if won > values.get("deals_created", 0):
                warnings.append(
                    PlanIssue(
                        f"{month}.closedWonCount",
                        f"{month}: {won} affaire(s) gagnee(s) supplementaire(s) pour {values.get('deals_created', 0)} nouvelle(s) affaire(s).",
                        f"{won} affaires seront creees pour porter les gains.",
                    )
                )
            for kind, count in records_for_month(values).items():
                estimated[kind] += count

    total = sum(estimated.values())
    if plan.mode != "metrics-only" and total == 0:
        warnings.append(PlanIssue("months", "Aucun enregistrement ne sera cree.", "Verifiez les objectifs du plan."))
    if total > LARGE_PATCH_RECORDS:
        warnings.append(
            PlanIssue("months", f"Patch volumineux: {total} enregistrements.", "Envisagez de le fractionner.")
        )
    duration = max(
        MIN_PATCH_SECONDS,
        math.ceil(total / RECORDS_PER_SECOND) + SECONDS_PER_MONTH * len(affected),
    )
    return PatchPreview(
        estimated_records=estimated,
        warnings=warnings,
        blockers=list(delta_result.blockers),
        affected_months=affected,
        estimated_duration_seconds=duration,
    )


def validate_patch_plan(tenant_id, plan: PatchPlan, current_kpis, *, today: date | None = None) -> ValidationResult:
    metadata = validate_demo_tenant(tenant_id)
    errors: list[PlanIssue] = []
    warnings: list[PlanIssue] = []
    max_months = getattr(settings, "DEMO_MAX_PLAN_MONTHS", 24)
    now_month = current_month(today)

    if not plan.months:
        errors.append(PlanIssue("months", "Le patch doit contenir au moins un mois.", "Ajoutez un mois."))
    if len(plan.months) > max_months:
        errors.append(PlanIssue("months", f"Le patch couvre {len(plan.months)} mois (maximum {max_months})."))

    seen: set[str] = set()
    well_formed = True
    for i, target in enumerate(plan.months):
        month, path = target.month, f"months[{i}]"
        if not MONTH_PATTERN.match(month):
            errors.append(PlanIssue(f"{path}.month", f"Mois invalide: {month!r}.", "Utilisez le format YYYY-MM."))
            well_formed = False
            continue
        if month in seen:
            errors.append(PlanIssue(f"{path}.month", f"Le mois {month} apparait plusieurs fois."))
        seen.add(month)
        if month > now_month:
            errors.append(PlanIssue(f"{path}.month", f"Le mois {month} est dans le futur."))
        if metadata.start_month and month < metadata.start_month:
            errors.append(
                PlanIssue(
                    f"{path}.month",
                    f"Le mois {month} precede le debut des donnees du tenant ({metadata.start_month}).",
                )
            )

        m = target.metrics
        if plan.plan_type == "targets":
            for name, value in m.provided().items():
                if value < 0:
                    errors.append(
                        PlanIssue(
                            f"{path}.targets.{CAMEL_CASE[name]}",
                            f"{month}: {CAMEL_CASE[name]} ne peut pas etre negatif ({value}).",
                        )
                    )
            if m.leads_created is not None and m.contacts_created is not None and m.leads_created > m.contacts_created:
                errors.append(
                    PlanIssue(
                        f"{path}.targets.leadsCreated",
                        f"{month}: les leads ({m.leads_created}) ne peuvent pas depasser les contacts ({m.contacts_created}).",
                    )
                )
            if m.closed_won_count is not None and m.deals_created is not None and m.closed_won_count > m.deals_created:
                errors.append(
                    PlanIssue(
                        f"{path}.targets.closedWonCount",
                        f"{month}: le nombre d'affaires gagnees ({m.closed_won_count}) depasse le nombre d'affaires ({m.deals_created}).",
                    )
                )
            if m.closed_won_value and m.closed_won_value > 0 and m.closed_won_count == 0:
                errors.append(
                    PlanIssue(
                        f"{path}.targets.closedWonValue",
                        f"{month}: valeur gagnee de {m.closed_won_value} sans aucune affaire gagnee.",
                    )
                )

    if not well_formed:
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    delta_result = compute_deltas(plan, current_kpis)
    errors.extend(delta_result.blockers)
    current = _current_by_month(current_kpis)

    for month, values in delta_result.deltas.items():
        if plan.mode != "metrics-only" and values.get("closed_won_value", 0) > 0 and not values.get("closed_won_count"):
            errors.append(
                PlanIssue(
                    f"{month}.closedWonValue",
                    f"{month}: une valeur gagnee supplementaire exige des affaires gagnees supplementaires.",
                    "Augmentez closedWonCount ou utilisez le mode metrics-only.",
                )
            )
        existing = current.get(month)
        if plan.mode == "metrics-only":
            errors.extend(_metrics_only_bounds(month, existing or MonthlyMetrics.zero(), values))
        contacts_delta = values.get("contacts_created")
        if existing and existing.contacts_created and contacts_delta:
            growth = contacts_delta / existing.contacts_created * 100
            if growth > GROWTH_WARNING_PERCENT:
                warnings.append(
                    PlanIssue(
                        f"{month}.contactsCreated",
                        f"{month}: les contacts augmenteraient de {growth:.0f}%.",
                        "Verifiez que ce pic est voulu.",
                    )
                )

    logger.debug(
        "Patch plan for tenant %s: %d error(s), %d warning(s)",
        tenant_id,
        len(errors),
        len(warnings),
    )
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, delta_result=delta_result)
