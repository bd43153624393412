"""Validation of monthly plans before any data is generated.

Pure functions: nothing here touches the database, so plans can be checked
from the API without side effects.
"""
from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal

from django.conf import settings

from demo_generator.config import (
    CAMEL_CASE,
    COUNT_METRICS,
    MonthlyPlan,
    VALUE_METRICS,
    current_month,
)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
RECORDS_PER_SECOND = 100
SECONDS_PER_MONTH = 2
ACTIVITIES_PER_CONTACT = 2
GROWTH_WARNING_PERCENT = 200
WIN_RATE_WARNING_PERCENT = 80


@dataclass
class PlanIssue:
    path: str
    message: str
    suggestion: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PlanValidationResult:
    valid: bool
    errors: list[PlanIssue] = field(default_factory=list)
    warnings: list[PlanIssue] = field(default_factory=list)
    derived: dict = field(default_factory=dict)
    estimated_generation_seconds: int = 0

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "derived": self.derived,
            "estimatedGenerationSeconds": self.estimated_generation_seconds,
        }


def estimate_generation_seconds(plan: MonthlyPlan) -> int:
    """Rough wall-clock estimate: records at a fixed throughput plus per-month overhead."""
    records = 0
    for target in plan.months:
        m = target.metrics
        contacts = m.contacts_created or 0
        records += contacts + (m.companies_created or 0) + (m.deals_created or 0)
        if m.activities_created is not None:
            records += m.activities_created
        else:
            records += contacts * ACTIVITIES_PER_CONTACT
    return max(1, math.ceil(records / RECORDS_PER_SECOND) + SECONDS_PER_MONTH * len(plan.months))


def derive_metrics(plan: MonthlyPlan) -> dict:
    totals = {CAMEL_CASE[name]: 0 for name in COUNT_METRICS}
    totals.update({CAMEL_CASE[name]: Decimal("0.00") for name in VALUE_METRICS})
    for target in plan.months:
        for name, value in target.metrics.provided().items():
            totals[CAMEL_CASE[name]] += value

    won_count = totals["closedWonCount"]
    deals = totals["dealsCreated"]
    avg_deal_size = totals["closedWonValue"] / won_count if won_count else Decimal("0")
    win_rate = won_count / deals * 100 if deals else 0.0

    growth_rates = []
    previous = None
    for target in plan.months:
        contacts = target.metrics.contacts_created
        if previous and contacts is not None:
            growth_rates.append((contacts - previous) / previous * 100)
        previous = contacts
    avg_growth = sum(growth_rates) / len(growth_rates) if growth_rates else 0.0

    return {
        "totals": {k: float(v) if isinstance(v, Decimal) else v for k, v in totals.items()},
        "avgDealSize": round(float(avg_deal_size), 2),
        "overallWinRate": round(win_rate, 2),
        "avgMonthlyGrowth": round(avg_growth, 2),
    }


def validate_plan(plan: MonthlyPlan, *, today: date | None = None) -> PlanValidationResult:
    errors: list[PlanIssue] = []
    warnings: list[PlanIssue] = []
    max_months = getattr(settings, "DEMO_MAX_PLAN_MONTHS", 24)
    now_month = current_month(today)

    if not plan.months:
        errors.append(PlanIssue("months", "Le plan doit contenir au moins un mois.", "Ajoutez un mois."))
    if len(plan.months) > max_months:
        errors.append(
            PlanIssue(
                "months",
                f"Le plan contient {len(plan.months)} mois (maximum {max_months}).",
                "Divisez le plan en plusieurs jobs.",
            )
        )

    seen: set[str] = set()
    previous_month = None
    previous_contacts = None
    for i, target in enumerate(plan.months):
        month = target.month
        path = f"months[{i}]"
        if not MONTH_PATTERN.match(month):
            errors.append(PlanIssue(f"{path}.month", f"Mois invalide: {month!r}.", "Utilisez le format YYYY-MM."))
            continue
        if month in seen:
            errors.append(PlanIssue(f"{path}.month", f"Le mois {month} apparait plusieurs fois.", "Fusionnez les doublons."))
        seen.add(month)
        if month > now_month:
            errors.append(
                PlanIssue(f"{path}.month", f"Le mois {month} est dans le futur.", f"Limitez le plan a {now_month}.")
            )
        if previous_month and month <= previous_month:
            errors.append(
                PlanIssue(
                    f"{path}.month",
                    f"Le mois {month} doit suivre {previous_month}.",
                    "Triez les mois par ordre chronologique.",
                )
            )
        previous_month = month

        m = target.metrics
        for name, value in m.provided().items():
            if value < 0:
                errors.append(
                    PlanIssue(
                        f"{path}.targets.{CAMEL_CASE[name]}",
                        f"{month}: {CAMEL_CASE[name]} ne peut pas etre negatif ({value}).",
                        "Utilisez une valeur positive ou nulle.",
                    )
                )

        leads, contacts = m.leads_created, m.contacts_created
        if leads is not None and contacts is not None and leads > contacts:
            errors.append(
                PlanIssue(
                    f"{path}.targets.leadsCreated",
                    f"{month}: les leads ({leads}) ne peuvent pas depasser les contacts ({contacts}).",
                    f"Augmentez contactsCreated a au moins {leads}.",
                )
            )
        won, deals = m.closed_won_count, m.deals_created
        if won is not None and deals is not None and won > deals:
            errors.append(
                PlanIssue(
                    f"{path}.targets.closedWonCount",
                    f"{month}: le nombre d'affaires gagnees ({won}) depasse le nombre d'affaires creees ({deals}).",
                    f"Augmentez dealsCreated a au moins {won}.",
                )
            )
        won_value = m.closed_won_value
        if won_value is not None and won_value > 0 and not won:
            errors.append(
                PlanIssue(
                    f"{path}.targets.closedWonValue",
                    f"{month}: valeur gagnee de {won_value} sans aucune affaire gagnee.",
                    "Renseignez closedWonCount ou mettez closedWonValue a 0.",
                )
            )

        pipeline = m.pipeline_added_value
        if pipeline is not None and won_value is not None and pipeline < won_value:
            warnings.append(
                PlanIssue(
                    f"{path}.targets.pipelineAddedValue",
                    f"{month}: la valeur ajoutee au pipeline ({pipeline}) est inferieure a la valeur gagnee ({won_value}).",
                    "Le pipeline inclut les affaires gagnees.",
                )
            )
        elif (
            pipeline is not None
            and pipeline > (won_value or 0)
            and deals is not None
            and deals <= (won or 0)
        ):
            warnings.append(
                PlanIssue(
                    f"{path}.targets.pipelineAddedValue",
                    f"{month}: aucune affaire ouverte pour porter {pipeline - (won_value or 0)} de pipeline.",
                    "Ajoutez des affaires ou reduisez pipelineAddedValue.",
                )
            )
        if deals and won is not None and won / deals * 100 > WIN_RATE_WARNING_PERCENT:
            warnings.append(
                PlanIssue(
                    f"{path}.targets.closedWonCount",
                    f"{month}: taux de gain de {won / deals * 100:.0f}%, inhabituellement eleve.",
                )
            )
        if previous_contacts and contacts is not None:
            growth = (contacts - previous_contacts) / previous_contacts * 100
            if growth > GROWTH_WARNING_PERCENT:
                warnings.append(
                    PlanIssue(
                        f"{path}.targets.contactsCreated",
                        f"{month}: croissance de {growth:.0f}% par rapport au mois precedent.",
                        "Verifiez que ce pic est voulu.",
                    )
                )
        previous_contacts = contacts

    return PlanValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        derived=derive_metrics(plan),
        estimated_generation_seconds=estimate_generation_seconds(plan) if plan.months else 0,
    )

