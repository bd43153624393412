"""Localized names, companies and contact details.

Faker output is pre-generated into per-job pools (one Faker instance seeded
from the job seed), then records pick from the pools with the caller's RNG
stream. Picks therefore depend only on the stream, which keeps resumed chunks
identical to an uninterrupted run.
"""
from __future__ import annotations

import hashlib
import re
import unicodedata
from dataclasses import dataclass
from functools import lru_cache

from faker import Faker

COUNTRY_LOCALES = {
    "US": "en_US",
    "GB": "en_GB",
    "UK": "en_GB",
    "DE": "de_DE",
    "FR": "fr_FR",
    "JP": "ja_JP",
    "BR": "pt_BR",
    "AU": "en_AU",
    "CA": "en_CA",
    "CH": "de_CH",
    "NL": "nl_NL",
    "ES": "es_ES",
    "IT": "it_IT",
    "IN": "en_IN",
    "MX": "es_MX",
}
DEFAULT_LOCALE = "en_US"
POOL_SIZE = 200
EMAIL_DOMAINS = ("gmail.com", "outlook.com", "yahoo.com", "proton.me", "icloud.com")


def _ascii_slug(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "", normalized.lower()) or "contact"


def _seed_to_int(seed: str) -> int:
    return int(hashlib.sha256(seed.encode("utf-8")).hexdigest()[:12], 16)


@dataclass(frozen=True)
class NamePools:
    first_names: tuple[str, ...]
    last_names: tuple[str, ...]
    company_words: tuple[str, ...]
    cities: tuple[str, ...]
    phone_numbers: tuple[str, ...]


@lru_cache(maxsize=32)
def build_pools(locale: str, seed: str) -> NamePools:
    fake = Faker(locale)
    fake.seed_instance(_seed_to_int(seed))

    def pool(factory) -> tuple[str, ...]:
        return tuple(dict.fromkeys(factory() for _ in range(POOL_SIZE)))

    return NamePools(
        first_names=pool(fake.first_name),
        last_names=pool(fake.last_name),
        company_words=pool(fake.last_name),
        cities=pool(fake.city),
        phone_numbers=pool(fake.phone_number),
    )


class LocalizationProvider:
    def __init__(self, country: str, seed: str):
        self.country = country.upper()
        self.locale = COUNTRY_LOCALES.get(self.country, DEFAULT_LOCALE)
        self.pools = build_pools(self.locale, seed)

    def person(self, rng) -> dict:
        first = rng.pick(self.pools.first_names)
        last = rng.pick(self.pools.last_names)
        return {
            "first_name": first,
            "last_name": last,
            "email": f"{_ascii_slug(first)}.{_ascii_slug(last)}{rng.int(1, 999)}@{rng.pick(EMAIL_DOMAINS)}",
            "phone": rng.pick(self.pools.phone_numbers),
        }

    def work_email(self, first_name: str, last_name: str, domain: str) -> str:
        return f"{_ascii_slug(first_name)}.{_ascii_slug(last_name)}@{domain}"

    def company(self, rng, suffixes: tuple[str, ...]) -> dict:
        word = rng.pick(self.pools.company_words)
        suffix = rng.pick(suffixes) if suffixes else "Group"
        name = f"{word} {suffix}"
        return {
            "name": name,
            "domain": f"{_ascii_slug(word)}{_ascii_slug(suffix)}{rng.int(1, 99)}.com",
            "city": rng.pick(self.pools.cities),
            "country": self.country[:2],
        }
