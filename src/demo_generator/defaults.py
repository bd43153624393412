"""Default generation settings and per-country defaults."""

COUNTRY_DEFAULTS = {
    "US": {"timezone": "America/New_York", "currency": "USD"},
    "GB": {"timezone": "Europe/London", "currency": "GBP"},
    "UK": {"timezone": "Europe/London", "currency": "GBP"},
    "DE": {"timezone": "Europe/Berlin", "currency": "EUR"},
    "FR": {"timezone": "Europe/Paris", "currency": "EUR"},
    "JP": {"timezone": "Asia/Tokyo", "currency": "JPY"},
    "BR": {"timezone": "America/Sao_Paulo", "currency": "BRL"},
    "AE": {"timezone": "Asia/Dubai", "currency": "AED"},
    "AU": {"timezone": "Australia/Sydney", "currency": "AUD"},
    "CA": {"timezone": "America/Toronto", "currency": "CAD"},
    "SG": {"timezone": "Asia/Singapore", "currency": "SGD"},
    "HK": {"timezone": "Asia/Hong_Kong", "currency": "HKD"},
    "CH": {"timezone": "Europe/Zurich", "currency": "CHF"},
    "NL": {"timezone": "Europe/Amsterdam", "currency": "EUR"},
    "ES": {"timezone": "Europe/Madrid", "currency": "EUR"},
    "IT": {"timezone": "Europe/Rome", "currency": "EUR"},
    "IN": {"timezone": "Asia/Kolkata", "currency": "INR"},
    "MX": {"timezone": "America/Mexico_City", "currency": "MXN"},
}

DEFAULT_CONFIG = {
    "tenantName": "Demo Company",
    "country": "US",
    "industry": "saas",
    "teamSize": 8,
    "targets": {
        "leads": 2000,
        "contacts": 500,
        "companies": 200,
        "pipelineValue": 500000,
        "closedWonValue": 150000,
        "closedWonCount": 100,
    },
    "growth": {
        "curve": "exponential",
        "monthlyRate": 15,
        "seasonality": True,
    },
    "channelMix": {
        "seo": 25,
        "meta": 20,
        "google": 25,
        "affiliates": 15,
        "referrals": 10,
        "direct": 5,
    },
    "realism": {
        "dropOffRate": 20,
        "whaleRatio": 5,
        "responseSlaHours": 4,
    },
}

DEFAULT_TOLERANCES = {
    "countTolerance": 0,
    "valueTolerance": "0.005",
}

# Lost share among the non-won deals of a month when the plan leaves it open.
DEFAULT_LOST_SHARE = 0.3
# Share of contacts attached to a company.
COMPANY_LINK_RATE = 0.7
