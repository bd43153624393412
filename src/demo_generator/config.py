"""Typed configuration and plan structures, and the config normalizer.

Request payloads use camelCase keys (``leadsCreated``); the dataclasses use
snake_case attributes. ``from_dict`` accepts both spellings and ``to_dict``
emits camelCase so persisted snapshots match what callers sent.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from django.utils import timezone

from demo_generator.defaults import COUNTRY_DEFAULTS, DEFAULT_CONFIG, DEFAULT_TOLERANCES
from demo_generator.exceptions import ConfigError
from demo_generator.templates import TEMPLATES

CENTS = Decimal("0.01")

COUNT_METRICS = (
    "leads_created",
    "contacts_created",
    "companies_created",
    "deals_created",
    "closed_won_count",
    "activities_created",
)
VALUE_METRICS = ("closed_won_value", "pipeline_added_value")
METRICS = COUNT_METRICS + VALUE_METRICS

CAMEL_CASE = {
    "leads_created": "leadsCreated",
    "contacts_created": "contactsCreated",
    "companies_created": "companiesCreated",
    "deals_created": "dealsCreated",
    "closed_won_count": "closedWonCount",
    "activities_created": "activitiesCreated",
    "closed_won_value": "closedWonValue",
    "pipeline_added_value": "pipelineAddedValue",
}
SNAKE_CASE = {camel: snake for snake, camel in CAMEL_CASE.items()}

GROWTH_CURVES = ("linear", "exponential", "logistic", "step")
GENERATION_MODES = ("growth-curve", "monthly-plan")
PATCH_MODES = ("additive", "reconcile", "metrics-only")
PATCH_PLAN_TYPES = ("targets", "deltas")


def to_amount(value, path: str = "value") -> Decimal:
    """Coerce a JSON number/string to a 2-decimal ``Decimal``."""
    if isinstance(value, bool):
        raise ConfigError(f"{path}: montant invalide.")
    try:
        return Decimal(str(value)).quantize(CENTS)
    except (InvalidOperation, ValueError):
        raise ConfigError(f"{path}: montant invalide ({value!r}).") from None


def _to_count(value, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ConfigError(f"{path}: un entier est attendu ({value!r}).")
    return int(value)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def add_months(value: date, months: int) -> date:
    """First day of the month ``months`` after ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def months_between(start: date, end: date) -> int:
    """Number of calendar months from ``start`` to ``end``, both inclusive."""
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def current_month(today: date | None = None) -> str:
    return month_key(today or timezone.now().date())


# ---------------------------------------------------------------------------
# Metrics and plans
# ---------------------------------------------------------------------------


@dataclass
class MonthlyMetrics:
    """Per-month metrics. ``None`` means "not specified" (partial patches)."""

    leads_created: int | None = None
    contacts_created: int | None = None
    companies_created: int | None = None
    deals_created: int | None = None
    closed_won_count: int | None = None
    activities_created: int | None = None
    closed_won_value: Decimal | None = None
    pipeline_added_value: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict | None, path: str = "metrics") -> "MonthlyMetrics":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: un objet est attendu.")
        kwargs = {}
        for key, value in data.items():
            name = SNAKE_CASE.get(key, key)
            if name not in METRICS:
                raise ConfigError(f"{path}.{key}: metrique inconnue.")
            if value is None:
                continue
            if name in COUNT_METRICS:
                kwargs[name] = _to_count(value, f"{path}.{key}")
            else:
                kwargs[name] = to_amount(value, f"{path}.{key}")
        return cls(**kwargs)

    @classmethod
    def zero(cls) -> "MonthlyMetrics":
        return cls(
            **{name: 0 for name in COUNT_METRICS},
            **{name: Decimal("0.00") for name in VALUE_METRICS},
        )

    def get(self, metric: str):
        return getattr(self, metric)

    def provided(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in METRICS if getattr(self, name) is not None}

    def to_dict(self, include_none: bool = False) -> dict:
        result = {}
        for name in METRICS:
            value = getattr(self, name)
            if value is None and not include_none:
                continue
            if isinstance(value, Decimal):
                value = float(value)
            result[CAMEL_CASE[name]] = value
        return result


@dataclass
class MonthTarget:
    month: str
    metrics: MonthlyMetrics

    @classmethod
    def from_dict(cls, data: dict, path: str) -> "MonthTarget":
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: un objet est attendu.")
        month = data.get("month")
        if not isinstance(month, str):
            raise ConfigError(f"{path}.month: mois manquant (format YYYY-MM).")
        raw = data.get("targets", data.get("metrics"))
        return cls(month=month, metrics=MonthlyMetrics.from_dict(raw, f"{path}.targets"))

    def to_dict(self) -> dict:
        return {"month": self.month, "metrics": self.metrics.to_dict()}


@dataclass
class ToleranceConfig:
    count_tolerance: int = 0
    value_tolerance: Decimal = Decimal("0.005")

    @classmethod
    def from_dict(cls, data: dict | None) -> "ToleranceConfig":
        merged = {**DEFAULT_TOLERANCES, **(data or {})}
        count = _to_count(merged["countTolerance"], "tolerances.countTolerance")
        try:
            value = Decimal(str(merged["valueTolerance"]))
        except (InvalidOperation, ValueError):
            raise ConfigError("tolerances.valueTolerance: valeur invalide.") from None
        if count < 0 or value < 0:
            raise ConfigError("Les tolerances doivent etre positives.")
        return cls(count_tolerance=count, value_tolerance=value)

    def to_dict(self) -> dict:
        return {"countTolerance": self.count_tolerance, "valueTolerance": float(self.value_tolerance)}

    def value_slack(self, reference: Decimal) -> Decimal:
        return abs(reference) * self.value_tolerance

    def within(self, metric: str, actual, expected) -> bool:
        if metric in VALUE_METRICS:
            return abs(Decimal(actual) - Decimal(expected)) <= self.value_slack(Decimal(expected)) + CENTS / 2
        return abs(int(actual) - int(expected)) <= self.count_tolerance


def _parse_months(raw_months, path: str = "months") -> list[MonthTarget]:
    if not isinstance(raw_months, list):
        raise ConfigError(f"{path}: une liste de mois est attendue.")
    return [MonthTarget.from_dict(item, f"{path}[{i}]") for i, item in enumerate(raw_months)]


@dataclass
class MonthlyPlan:
    months: list[MonthTarget]
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    version: str = "1.0"

    @classmethod
    def from_dict(cls, data: dict) -> "MonthlyPlan":
        if not isinstance(data, dict):
            raise ConfigError("monthlyPlan: un objet est attendu.")
        metadata = data.get("metadata") or {}
        return cls(
            months=_parse_months(data.get("months")),
            tolerances=ToleranceConfig.from_dict(data.get("tolerances")),
            version=str(metadata.get("version", "1.0")),
        )

    def to_dict(self) -> dict:
        return {
            "months": [
                {"month": m.month, "targets": m.metrics.to_dict()} for m in self.months
            ],
            "tolerances": self.tolerances.to_dict(),
            "metadata": {"version": self.version},
        }

    @property
    def month_keys(self) -> list[str]:
        return [m.month for m in self.months]


@dataclass
class PatchPlan:
    mode: str
    plan_type: str
    months: list[MonthTarget]
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    seed: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PatchPlan":
        if not isinstance(data, dict):
            raise ConfigError("Le plan de patch doit etre un objet.")
        mode = data.get("mode", "additive")
        plan_type = data.get("planType", data.get("plan_type", "targets"))
        if mode not in PATCH_MODES:
            raise ConfigError(f"Mode de patch inconnu: {mode}.")
        if plan_type not in PATCH_PLAN_TYPES:
            raise ConfigError(f"Type de plan inconnu: {plan_type}.")
        seed = data.get("seed")
        return cls(
            mode=mode,
            plan_type=plan_type,
            months=_parse_months(data.get("months")),
            tolerances=ToleranceConfig.from_dict(data.get("tolerances")),
            seed=str(seed) if seed else None,
        )

    def to_dict(self) -> dict:
        data = {
            "mode": self.mode,
            "planType": self.plan_type,
            "months": [m.to_dict() for m in self.months],
            "tolerances": self.tolerances.to_dict(),
        }
        if self.seed:
            data["seed"] = self.seed
        return data

    @property
    def month_keys(self) -> list[str]:
        return [m.month for m in self.months]


# ---------------------------------------------------------------------------
# Growth-curve configuration
# ---------------------------------------------------------------------------


@dataclass
class VolumeTargets:
    leads: int
    contacts: int
    companies: int
    pipeline_value: Decimal
    closed_won_value: Decimal
    closed_won_count: int


@dataclass
class GrowthSettings:
    curve: str
    monthly_rate: float
    seasonality: bool


@dataclass
class RealismSettings:
    drop_off_rate: float
    whale_ratio: float
    response_sla_hours: float


@dataclass
class DemoConfig:
    tenant_name: str
    country: str
    industry: str
    currency: str
    timezone: str
    team_size: int
    start_date: date
    months: int
    targets: VolumeTargets
    growth: GrowthSettings
    channel_mix: dict[str, float]
    realism: RealismSettings

    @property
    def month_keys(self) -> list[str]:
        return [month_key(add_months(self.start_date, i)) for i in range(self.months)]

    def to_dict(self) -> dict:
        return {
            "tenantName": self.tenant_name,
            "country": self.country,
            "industry": self.industry,
            "currency": self.currency,
            "timezone": self.timezone,
            "teamSize": self.team_size,
            "startDate": self.start_date.isoformat(),
            "months": self.months,
            "targets": {
                "leads": self.targets.leads,
                "contacts": self.targets.contacts,
                "companies": self.targets.companies,
                "pipelineValue": float(self.targets.pipeline_value),
                "closedWonValue": float(self.targets.closed_won_value),
                "closedWonCount": self.targets.closed_won_count,
            },
            "growth": {
                "curve": self.growth.curve,
                "monthlyRate": self.growth.monthly_rate,
                "seasonality": self.growth.seasonality,
            },
            "channelMix": dict(self.channel_mix),
            "realism": {
                "dropOffRate": self.realism.drop_off_rate,
                "whaleRatio": self.realism.whale_ratio,
                "responseSlaHours": self.realism.response_sla_hours,
            },
        }


def _deep_merge(base: dict, override: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in override.items():
        # A channel mix is replaced as a whole so its proportions stay coherent.
        if isinstance(value, dict) and isinstance(result.get(key), dict) and key != "channelMix":
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ConfigError(f"startDate: date invalide ({value!r}).") from None


def _number(value, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{path}: nombre attendu ({value!r}).")
    return float(value)


def normalize_config(partial: dict | None = None, *, today: date | None = None) -> DemoConfig:
    """Merge ``partial`` over ``DEFAULT_CONFIG`` and validate the result.

    The generation window starts at ``startDate`` (default: eleven months
    before the current month) and spans ``months`` months (default: up to and
    including the current month).
    """
    from django.conf import settings

    today = today or timezone.now().date()
    raw = _deep_merge(DEFAULT_CONFIG, partial or {})

    country = str(raw.get("country") or "US").upper()
    country_defaults = COUNTRY_DEFAULTS.get(country, COUNTRY_DEFAULTS["US"])
    industry = raw.get("industry")
    if industry not in TEMPLATES:
        raise ConfigError(f"Secteur inconnu: {industry}.")

    team_size = _to_count(raw.get("teamSize"), "teamSize")
    if team_size < 1:
        raise ConfigError("teamSize doit etre superieur ou egal a 1.")

    raw_targets = raw["targets"]
    targets = VolumeTargets(
        leads=_to_count(raw_targets.get("leads", 0), "targets.leads"),
        contacts=_to_count(raw_targets.get("contacts", 0), "targets.contacts"),
        companies=_to_count(raw_targets.get("companies", 0), "targets.companies"),
        pipeline_value=to_amount(raw_targets.get("pipelineValue", 0), "targets.pipelineValue"),
        closed_won_value=to_amount(raw_targets.get("closedWonValue", 0), "targets.closedWonValue"),
        closed_won_count=_to_count(raw_targets.get("closedWonCount", 0), "targets.closedWonCount"),
    )
    for name in ("leads", "contacts", "companies", "pipeline_value", "closed_won_value", "closed_won_count"):
        if getattr(targets, name) < 0:
            raise ConfigError(f"L'objectif {name} ne peut pas etre negatif.")
    if targets.closed_won_value > targets.pipeline_value:
        raise ConfigError(
            f"La valeur gagnee ({targets.closed_won_value}) depasse la valeur du pipeline "
            f"({targets.pipeline_value}).",
        )
    if targets.closed_won_value > 0 and targets.closed_won_count == 0:
        raise ConfigError("Une valeur gagnee non nulle exige au moins une affaire gagnee.")

    raw_growth = raw["growth"]
    growth = GrowthSettings(
        curve=raw_growth.get("curve"),
        monthly_rate=_number(raw_growth.get("monthlyRate", 0), "growth.monthlyRate"),
        seasonality=bool(raw_growth.get("seasonality", False)),
    )
    if growth.curve not in GROWTH_CURVES:
        raise ConfigError(f"Courbe de croissance inconnue: {growth.curve}.")
    if growth.monthly_rate <= -100:
        raise ConfigError("growth.monthlyRate doit etre superieur a -100.")

    channel_mix = raw.get("channelMix") or {}
    if not isinstance(channel_mix, dict) or not channel_mix:
        raise ConfigError("channelMix doit contenir au moins un canal.")
    for channel, share in channel_mix.items():
        if _number(share, f"channelMix.{channel}") < 0:
            raise ConfigError(f"channelMix.{channel} ne peut pas etre negatif.")
    total_share = sum(float(v) for v in channel_mix.values())
    if abs(total_share - 100) > 0.01:
        raise ConfigError(f"La repartition des canaux doit totaliser 100 (actuel: {total_share:g}).")

    raw_realism = raw["realism"]
    realism = RealismSettings(
        drop_off_rate=_number(raw_realism.get("dropOffRate", 0), "realism.dropOffRate"),
        whale_ratio=_number(raw_realism.get("whaleRatio", 0), "realism.whaleRatio"),
        response_sla_hours=_number(raw_realism.get("responseSlaHours", 4), "realism.responseSlaHours"),
    )
    for name in ("drop_off_rate", "whale_ratio"):
        if not 0 <= getattr(realism, name) <= 100:
            raise ConfigError(f"realism.{name} doit etre compris entre 0 et 100.")
    if realism.response_sla_hours <= 0:
        raise ConfigError("realism.responseSlaHours doit etre positif.")

    max_months = getattr(settings, "DEMO_MAX_PLAN_MONTHS", 24)
    if raw.get("startDate"):
        start = _parse_date(raw["startDate"]).replace(day=1)
    else:
        start = add_months(today.replace(day=1), -(max_months // 2 - 1))
    months = raw.get("months")
    months = _to_count(months, "months") if months is not None else months_between(start, today)
    if months < 1:
        raise ConfigError("La periode de generation est vide.")
    if months > max_months:
        raise ConfigError(f"La periode de generation ne peut pas depasser {max_months} mois.")
    if month_key(add_months(start, months - 1)) > month_key(today):
        raise ConfigError("La periode de generation ne peut pas depasser le mois en cours.")

    return DemoConfig(
        tenant_name=str(raw.get("tenantName") or "Demo Company"),
        country=country,
        industry=industry,
        currency=str(raw.get("currency") or country_defaults["currency"]).upper(),
        timezone=str(raw.get("timezone") or country_defaults["timezone"]),
        team_size=team_size,
        start_date=start,
        months=months,
        targets=targets,
        growth=growth,
        channel_mix={str(k): float(v) for k, v in channel_mix.items()},
        realism=realism,
    )


@dataclass
class GenerationRequest:
    mode: str
    config: DemoConfig
    plan: MonthlyPlan | None = None
    seed: str | None = None


def parse_generation_request(payload: dict, *, today: date | None = None) -> GenerationRequest:
    """Split a create-job payload into mode, normalized config and optional plan."""
    if not isinstance(payload, dict):
        raise ConfigError("La requete doit etre un objet JSON.")
    mode = payload.get("mode", "growth-curve")
    if mode not in GENERATION_MODES:
        raise ConfigError(f"Mode de generation inconnu: {mode}.")
    partial = {k: v for k, v in payload.items() if k not in ("mode", "monthlyPlan", "seed")}
    plan = None
    if mode == "monthly-plan":
        if not payload.get("monthlyPlan"):
            raise ConfigError("Un plan mensuel est requis en mode monthly-plan.")
        plan = MonthlyPlan.from_dict(payload["monthlyPlan"])
        # The plan defines the window; month-level problems are reported by the plan validator.
        partial.pop("startDate", None)
        partial.pop("months", None)
    config = normalize_config(partial, today=today)
    seed = payload.get("seed")
    return GenerationRequest(mode=mode, config=config, plan=plan, seed=str(seed) if seed else None)
