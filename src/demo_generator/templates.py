"""Industry templates: pipeline stages, deal value ranges and activity density."""
from __future__ import annotations

from dataclasses import dataclass, field

from demo_generator.exceptions import ConfigError


@dataclass(frozen=True)
class StageTemplate:
    name: str
    kind: str  # open | won | lost
    probability: int
    color: str


@dataclass(frozen=True)
class IndustryTemplate:
    id: str
    name: str
    stages: tuple[StageTemplate, ...]
    deal_min_value: int
    deal_max_value: int
    deal_avg_value: int
    cycle_days: tuple[int, int]
    win_rate: float
    activities_per_deal: int
    call_to_email_ratio: float
    company_suffixes: tuple[str, ...] = field(default_factory=tuple)
    deal_titles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def open_stages(self) -> list[StageTemplate]:
        return [s for s in self.stages if s.kind == "open"]


def _stages(*rows) -> tuple[StageTemplate, ...]:
    return tuple(StageTemplate(*row) for row in rows)


TEMPLATES: dict[str, IndustryTemplate] = {
    "saas": IndustryTemplate(
        id="saas",
        name="SaaS / Software",
        stages=_stages(
            ("Lead", "open", 10, "#6366f1"),
            ("Discovery", "open", 20, "#8b5cf6"),
            ("Demo", "open", 35, "#a855f7"),
            ("Trial", "open", 50, "#d946ef"),
            ("Proposal", "open", 65, "#ec4899"),
            ("Negotiation", "open", 80, "#f43f5e"),
            ("Closed Won", "won", 100, "#22c55e"),
            ("Closed Lost", "lost", 0, "#ef4444"),
            ("No Decision", "lost", 0, "#9ca3af"),
        ),
        deal_min_value=500,
        deal_max_value=100000,
        deal_avg_value=12000,
        cycle_days=(30, 120),
        win_rate=0.22,
        activities_per_deal=15,
        call_to_email_ratio=0.5,
        company_suffixes=("Software", "Tech", "Systems", "Solutions", "Cloud", "Labs", "IO", "HQ"),
        deal_titles=("Annual licence", "Team plan", "Enterprise rollout", "Platform upgrade", "Pilot"),
    ),
    "trading": IndustryTemplate(
        id="trading",
        name="Trading / Forex / CFD",
        stages=_stages(
            ("New Lead", "open", 10, "#6366f1"),
            ("Contacted", "open", 20, "#8b5cf6"),
            ("Qualified", "open", 35, "#a855f7"),
            ("Demo Scheduled", "open", 50, "#d946ef"),
            ("Demo Completed", "open", 65, "#ec4899"),
            ("Funded", "open", 80, "#f43f5e"),
            ("Active Trader", "won", 100, "#22c55e"),
            ("VIP", "won", 100, "#fbbf24"),
            ("Churned", "lost", 0, "#ef4444"),
            ("Disqualified", "lost", 0, "#9ca3af"),
        ),
        deal_min_value=500,
        deal_max_value=100000,
        deal_avg_value=5000,
        cycle_days=(7, 45),
        win_rate=0.25,
        activities_per_deal=12,
        call_to_email_ratio=0.7,
        company_suffixes=("Capital", "Markets", "Trading", "Investments", "Partners"),
        deal_titles=("Initial deposit", "Account top-up", "Managed account", "VIP upgrade"),
    ),
    "igaming": IndustryTemplate(
        id="igaming",
        name="iGaming / Online Casino",
        stages=_stages(
            ("Registration", "open", 15, "#6366f1"),
            ("KYC Pending", "open", 30, "#8b5cf6"),
            ("KYC Verified", "open", 50, "#a855f7"),
            ("First Deposit", "open", 70, "#d946ef"),
            ("Active Player", "won", 100, "#22c55e"),
            ("VIP", "won", 100, "#fbbf24"),
            ("High Roller", "won", 100, "#f59e0b"),
            ("Dormant", "lost", 0, "#9ca3af"),
            ("Self-Excluded", "lost", 0, "#ef4444"),
        ),
        deal_min_value=50,
        deal_max_value=50000,
        deal_avg_value=500,
        cycle_days=(1, 30),
        win_rate=0.35,
        activities_per_deal=8,
        call_to_email_ratio=0.3,
        company_suffixes=("Gaming", "Media", "Affiliates", "Entertainment"),
        deal_titles=("First deposit", "Reload bonus", "VIP programme", "Tournament entry"),
    ),
    "ecommerce": IndustryTemplate(
        id="ecommerce",
        name="E-commerce / Retail",
        stages=_stages(
            ("Visitor", "open", 5, "#6366f1"),
            ("Cart Added", "open", 20, "#8b5cf6"),
            ("Checkout Started", "open", 40, "#a855f7"),
            ("Payment Pending", "open", 70, "#d946ef"),
            ("Purchased", "won", 100, "#22c55e"),
            ("Repeat Customer", "won", 100, "#fbbf24"),
            ("VIP Customer", "won", 100, "#f59e0b"),
            ("Abandoned", "lost", 0, "#ef4444"),
            ("Refunded", "lost", 0, "#f97316"),
        ),
        deal_min_value=20,
        deal_max_value=2000,
        deal_avg_value=150,
        cycle_days=(1, 14),
        win_rate=0.45,
        activities_per_deal=4,
        call_to_email_ratio=0.1,
        company_suffixes=("Store", "Shop", "Retail", "Goods", "Outlet"),
        deal_titles=("Online order", "Bulk order", "Subscription box", "Gift order"),
    ),
    "realestate": IndustryTemplate(
        id="realestate",
        name="Real Estate",
        stages=_stages(
            ("Inquiry", "open", 10, "#6366f1"),
            ("Viewing Scheduled", "open", 25, "#8b5cf6"),
            ("Viewing Done", "open", 40, "#a855f7"),
            ("Offer Made", "open", 60, "#d946ef"),
            ("Negotiation", "open", 75, "#ec4899"),
            ("Contract Signed", "open", 90, "#f43f5e"),
            ("Closed", "won", 100, "#22c55e"),
            ("Lost", "lost", 0, "#ef4444"),
        ),
        deal_min_value=50000,
        deal_max_value=2000000,
        deal_avg_value=350000,
        cycle_days=(60, 180),
        win_rate=0.15,
        activities_per_deal=15,
        call_to_email_ratio=0.7,
        company_suffixes=("Realty", "Properties", "Homes", "Estates"),
        deal_titles=("Apartment purchase", "House purchase", "Commercial lease", "Land acquisition"),
    ),
    "finserv": IndustryTemplate(
        id="finserv",
        name="Financial Services",
        stages=_stages(
            ("Lead", "open", 10, "#6366f1"),
            ("Consultation", "open", 25, "#8b5cf6"),
            ("Application", "open", 50, "#a855f7"),
            ("Underwriting", "open", 70, "#d946ef"),
            ("Approval", "open", 85, "#ec4899"),
            ("Funded", "won", 100, "#22c55e"),
            ("Declined", "lost", 0, "#ef4444"),
            ("Withdrawn", "lost", 0, "#f97316"),
        ),
        deal_min_value=5000,
        deal_max_value=500000,
        deal_avg_value=50000,
        cycle_days=(30, 90),
        win_rate=0.35,
        activities_per_deal=12,
        call_to_email_ratio=0.6,
        company_suffixes=("Financial", "Capital", "Advisors", "Wealth", "Investment Group"),
        deal_titles=("Business loan", "Mortgage", "Portfolio mandate", "Credit line"),
    ),
}


def get_template(industry: str) -> IndustryTemplate:
    try:
        return TEMPLATES[industry]
    except KeyError:
        raise ConfigError(f"Secteur inconnu: {industry}.") from None
