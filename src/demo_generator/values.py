"""Deal value allocation.

Values are drawn from a log-normal shape with occasional whale deals, then
scaled so that a group of deals sums exactly to its target amount.
"""
from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from demo_generator.config import CENTS

WHALE_MULTIPLIER = (4.0, 10.0)


def value_weights(count: int, rng, whale_ratio: float, sigma: float = 0.5) -> list[float]:
    weights = []
    for _ in range(count):
        weight = rng.lognormal(0.0, sigma)
        if rng.bool(whale_ratio / 100):
            weight *= rng.float(*WHALE_MULTIPLIER)
        weights.append(weight)
    return weights


def allocate_deal_values(count: int, total: Decimal, rng, whale_ratio: float = 0) -> list[Decimal]:
    """Split ``total`` over ``count`` deals; the residual lands on the last deal."""
    if count <= 0:
        return []
    total = Decimal(total).quantize(CENTS)
    weights = value_weights(count, rng, whale_ratio)
    if total <= 0:
        return [Decimal("0.00")] * count
    weight_sum = sum(weights)
    values = [
        (total * Decimal(repr(w / weight_sum))).quantize(CENTS, rounding=ROUND_DOWN)
        for w in weights
    ]
    values[-1] += total - sum(values)
    return values


def sample_deal_value(template, rng) -> Decimal:
    """Free-standing value for deals outside any target (lost deals)."""
    value = rng.lognormal_around(template.deal_avg_value)
    value = min(max(value, template.deal_min_value), template.deal_max_value)
    return Decimal(repr(value)).quantize(CENTS)
