"""Monthly KPI read-back over a tenant's CRM records.

Months are bucketed on ``created_at`` in UTC and the month axis is always
dense: months without activity come back as zero snapshots.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from crm.models import Activity, Company, Contact, Deal
from demo_generator.config import (
    CAMEL_CASE,
    METRICS,
    VALUE_METRICS,
    MonthlyMetrics,
    ToleranceConfig,
    add_months,
    month_key,
)
from demo_generator.exceptions import ConfigError
from demo_generator.models import KpiOverride
from demo_generator.plan_validator import MONTH_PATTERN
from demo_generator.scheduling import month_bounds

logger = logging.getLogger("demoforge")

ZERO = Decimal("0.00")


def month_range(from_month: str, to_month: str) -> list[str]:
    """Every month key from ``from_month`` to ``to_month`` inclusive."""
    for value in (from_month, to_month):
        if not isinstance(value, str) or not MONTH_PATTERN.match(value):
            raise ConfigError(f"Mois invalide: {value!r} (format YYYY-MM).")
    if from_month > to_month:
        raise ConfigError(f"Le mois de debut ({from_month}) est posterieur au mois de fin ({to_month}).")
    start = datetime(int(from_month[:4]), int(from_month[5:7]), 1).date()
    months = []
    key = from_month
    while key <= to_month:
        months.append(key)
        key = month_key(add_months(start, len(months)))
    return months


@dataclass
class KpiSnapshot:
    month: str
    metrics: MonthlyMetrics
    snapshot_at: datetime = field(default_factory=timezone.now)

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "metrics": self.metrics.to_dict(include_none=True),
            "snapshotAt": self.snapshot_at.isoformat(),
        }


def _bucket(queryset, **aggregates) -> dict[str, dict]:
    rows = (
        queryset.order_by()
        .annotate(bucket=TruncMonth("created_at", tzinfo=dt_timezone.utc))
        .values("bucket")
        .annotate(**aggregates)
    )
    return {row["bucket"].strftime("%Y-%m"): row for row in rows}


class KpiAggregator:
    def __init__(self, tenant_id):
        self.tenant_id = tenant_id

    def _live(self, model, start, end):
        return model.objects.filter(
            tenant_id=self.tenant_id,
            deleted_at__isnull=True,
            created_at__gte=start,
            created_at__lt=end,
        )

    def query_monthly_kpis(
        self,
        from_month: str,
        to_month: str,
        *,
        apply_overrides: bool = False,
    ) -> list[KpiSnapshot]:
        months = month_range(from_month, to_month)
        start, _ = month_bounds(months[0])
        _, end = month_bounds(months[-1])
        money = DecimalField(max_digits=16, decimal_places=2)

        contacts = _bucket(
            self._live(Contact, start, end),
            total=Count("id"),
            leads=Count("id", filter=Q(status=Contact.Status.LEAD)),
        )
        companies = _bucket(self._live(Company, start, end), total=Count("id"))
        deals = _bucket(
            self._live(Deal, start, end),
            total=Count("id"),
            won=Count("id", filter=Q(stage__is_won=True)),
            won_value=Coalesce(Sum("value", filter=Q(stage__is_won=True)), Value(ZERO), output_field=money),
            pipeline_value=Coalesce(Sum("value", filter=Q(stage__is_lost=False)), Value(ZERO), output_field=money),
        )
        activities = _bucket(self._live(Activity, start, end), total=Count("id"))

        overrides: dict[str, dict] = {}
        if apply_overrides:
            rows = (
                KpiOverride.objects.filter(tenant_id=self.tenant_id, month__in=months)
                .values("month")
                .annotate(count=Sum("closed_won_count"), value=Sum("closed_won_value"))
                .order_by()
            )
            overrides = {row["month"]: row for row in rows}

        now = timezone.now()
        snapshots = []
        for month in months:
            c = contacts.get(month, {})
            d = deals.get(month, {})
            metrics = MonthlyMetrics(
                leads_created=c.get("leads", 0),
                contacts_created=c.get("total", 0),
                companies_created=companies.get(month, {}).get("total", 0),
                deals_created=d.get("total", 0),
                closed_won_count=d.get("won", 0),
                activities_created=activities.get(month, {}).get("total", 0),
                closed_won_value=Decimal(d.get("won_value") or ZERO).quantize(ZERO),
                pipeline_added_value=Decimal(d.get("pipeline_value") or ZERO).quantize(ZERO),
            )
            adjustment = overrides.get(month)
            if adjustment:
                metrics.closed_won_count += adjustment["count"] or 0
                metrics.closed_won_value += Decimal(adjustment["value"] or ZERO).quantize(ZERO)
            snapshots.append(KpiSnapshot(month=month, metrics=metrics, snapshot_at=now))
        return snapshots


def query_monthly_kpis(tenant_id, from_month: str, to_month: str, *, apply_overrides: bool = False):
    return KpiAggregator(tenant_id).query_monthly_kpis(
        from_month,
        to_month,
        apply_overrides=apply_overrides,
    )


def compute_diff(
    before: list[KpiSnapshot],
    after: list[KpiSnapshot],
    expected: dict[str, dict[str, object]],
    tolerances: ToleranceConfig,
) -> dict:
    """Compare ``after`` against expected per-month metric values.

    ``expected`` maps month -> {metric: expected value after the change}.
    Returns a JSON-safe report.
    """
    before_by_month = {s.month: s.metrics for s in before}
    after_by_month = {s.month: s.metrics for s in after}
    months = []
    total = passed = 0
    for month, targets in expected.items():
        entries = []
        before_metrics = before_by_month.get(month) or MonthlyMetrics.zero()
        after_metrics = after_by_month.get(month) or MonthlyMetrics.zero()
        for metric in METRICS:
            if metric not in targets:
                continue
            target = targets[metric]
            old = before_metrics.get(metric) or 0
            new = after_metrics.get(metric) or 0
            delta = new - old
            ok = tolerances.within(metric, new, target)
            delta_percent = float(delta) / float(old) * 100 if old else (100.0 if delta else 0.0)
            as_number = float if metric in VALUE_METRICS else int
            entries.append(
                {
                    "metric": CAMEL_CASE[metric],
                    "before": as_number(old),
                    "after": as_number(new),
                    "delta": as_number(delta),
                    "deltaPercent": round(delta_percent, 2),
                    "target": as_number(target),
                    "passed": ok,
                }
            )
            total += 1
            passed += int(ok)
        months.append({"month": month, "entries": entries, "allPassed": all(e["passed"] for e in entries)})
    return {
        "months": months,
        "overallPassed": passed == total,
        "totalMetrics": total,
        "passedMetrics": passed,
        "failedMetrics": total - passed,
    }


def verify_against_targets(actual: list[KpiSnapshot], targets, tolerances: ToleranceConfig) -> dict:
    """Verification report of generated data against a plan's month targets."""
    expected = {t.month: t.metrics.provided() for t in targets}
    zeros = [KpiSnapshot(month=s.month, metrics=MonthlyMetrics.zero(), snapshot_at=s.snapshot_at) for s in actual]
    report = compute_diff(zeros, actual, expected, tolerances)
    logger.debug(
        "Verification: %d/%d metrics within tolerance",
        report["passedMetrics"],
        report["totalMetrics"],
    )
    return report
