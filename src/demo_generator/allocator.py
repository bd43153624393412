"""Distribute totals across months along a growth curve.

Integer allocations floor every month's share and put the rounding residual
on the final month, so the parts always sum exactly to the requested total.
"""
from __future__ import annotations

import math
from decimal import ROUND_DOWN, Decimal

from demo_generator.config import (
    CENTS,
    DemoConfig,
    MonthlyMetrics,
    MonthlyPlan,
    MonthTarget,
    ToleranceConfig,
)
from demo_generator.exceptions import ConfigError

# Calendar-month multipliers (January first).
SEASONAL_INDEX = (0.90, 0.95, 1.05, 1.00, 1.00, 1.10, 0.85, 0.85, 1.10, 1.05, 1.00, 0.90)


def growth_weights(
    months: int,
    curve: str = "exponential",
    monthly_rate: float = 0,
    seasonality: bool = False,
    first_month: int = 1,
) -> list[float]:
    """Return normalized month weights (they sum to 1)."""
    if months < 1:
        raise ConfigError("Le nombre de mois doit etre superieur ou egal a 1.")
    rate = monthly_rate / 100
    if curve == "linear":
        raw = [max(0.0, 1 + i * rate) for i in range(months)]
    elif curve == "exponential":
        raw = [(1 + rate) ** i for i in range(months)]
    elif curve == "logistic":
        midpoint = months / 2
        steepness = max(months / 6, 0.5)
        raw = [1 / (1 + math.exp(-(i - midpoint) / steepness)) for i in range(months)]
    elif curve == "step":
        raw = [float(i // 3 + 1) for i in range(months)]
    else:
        raise ConfigError(f"Courbe de croissance inconnue: {curve}.")

    if seasonality:
        raw = [w * SEASONAL_INDEX[(first_month - 1 + i) % 12] for i, w in enumerate(raw)]

    total = sum(raw)
    if total <= 0:
        raise ConfigError("La courbe de croissance ne produit aucun volume.")
    return [w / total for w in raw]


def allocate_counts(total: int, weights: list[float]) -> list[int]:
    if total < 0:
        raise ConfigError("Un total negatif ne peut pas etre reparti.")
    if total == 0:
        return [0] * len(weights)
    parts = [math.floor(total * w) for w in weights]
    parts[-1] += total - sum(parts)
    return parts


def allocate_amount(total: Decimal, weights: list[float]) -> list[Decimal]:
    total = Decimal(total).quantize(CENTS)
    if total < 0:
        raise ConfigError("Un montant negatif ne peut pas etre reparti.")
    if total == 0:
        return [Decimal("0.00")] * len(weights)
    parts = [(total * Decimal(repr(w))).quantize(CENTS, rounding=ROUND_DOWN) for w in weights]
    parts[-1] += total - sum(parts)
    return parts


def allocate(
    total: int,
    months: int,
    curve: str = "exponential",
    monthly_rate: float = 0,
    seasonality: bool = False,
    first_month: int = 1,
) -> list[int]:
    """Split an integer ``total`` over ``months`` months along ``curve``."""
    return allocate_counts(total, growth_weights(months, curve, monthly_rate, seasonality, first_month))


def expected_deals(qualified_contacts: int, won: int, drop_off_rate: float) -> int:
    """Deals opened in a month: non-dropped-out contacts, never fewer than the won count."""
    return max(won, round(qualified_contacts * (1 - drop_off_rate / 100)))


def plan_from_config(config: DemoConfig) -> MonthlyPlan:
    """Project a growth-curve configuration onto concrete monthly targets.

    Pipeline value is split as won value plus open value, so every month's
    pipeline covers its won value and both totals are exact.
    """
    weights = growth_weights(
        config.months,
        config.growth.curve,
        config.growth.monthly_rate,
        config.growth.seasonality,
        config.start_date.month,
    )
    targets = config.targets
    leads = allocate_counts(targets.leads, weights)
    qualified = allocate_counts(targets.contacts, weights)
    companies = allocate_counts(targets.companies, weights)
    won = allocate_counts(targets.closed_won_count, weights)
    won_value = allocate_amount(targets.closed_won_value, weights)
    open_value = allocate_amount(targets.pipeline_value - targets.closed_won_value, weights)

    # Won value can only sit in months that have won deals.
    busiest = max(range(len(won)), key=lambda j: won[j])
    for i in range(len(won)):
        if won[i] == 0 and won_value[i] > 0:
            won_value[busiest] += won_value[i]
            won_value[i] = Decimal("0.00")

    months = []
    for i, key in enumerate(config.month_keys):
        deals = expected_deals(qualified[i], won[i], config.realism.drop_off_rate)
        if open_value[i] > 0:
            deals = max(deals, won[i] + 1)
        months.append(
            MonthTarget(
                month=key,
                metrics=MonthlyMetrics(
                    leads_created=leads[i],
                    contacts_created=leads[i] + qualified[i],
                    companies_created=companies[i],
                    deals_created=deals,
                    closed_won_count=won[i],
                    closed_won_value=won_value[i],
                    pipeline_added_value=won_value[i] + open_value[i],
                ),
            )
        )
    return MonthlyPlan(months=months, tolerances=ToleranceConfig())
