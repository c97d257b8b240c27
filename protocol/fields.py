"""
Quote field sets requested with quote_set_fields.
"""

from __future__ import annotations
from typing import List

# Fields the live path requests by default
PRICE_FIELDS: List[str] = [
    "lp",
    "high_price",
    "low_price",
    "price_52_week_high",
    "price_52_week_low",
]

ALL_FIELDS: List[str] = [
    "base-currency-logoid",
    "ch",
    "chp",
    "currency-logoid",
    "currency_code",
    "current_session",
    "description",
    "exchange",
    "format",
    "fractional",
    "is_tradable",
    "language",
    "local_description",
    "logoid",
    "lp",
    "lp_time",
    "minmov",
    "minmove2",
    "original_name",
    "pricescale",
    "pro_name",
    "short_name",
    "type",
    "update_mode",
    "volume",
    "ask",
    "bid",
    "fundamentals",
    "high_price",
    "low_price",
    "open_price",
    "prev_close_price",
    "rch",
    "rchp",
    "rtc",
    "rtc_time",
    "status",
    "industry",
    "basic_eps_net_income",
    "beta_1_year",
    "market_cap_basic",
    "earnings_per_share_basic_ttm",
    "price_earnings_ttm",
    "sector",
    "dividends_yield",
    "timezone",
    "country_code",
    "provider_id",
]

FIELD_SETS = {
    "price": PRICE_FIELDS,
    "all": ALL_FIELDS,
}

# Anything outside this set is dropped when a quote record is parsed
KNOWN_FIELDS = frozenset(ALL_FIELDS) | frozenset(PRICE_FIELDS)


def get_quote_fields(field_set: str = "price") -> List[str]:
    """Return a copy of the named field set ("price" or "all")."""
    try:
        return list(FIELD_SETS[field_set])
    except KeyError:
        raise ValueError(
            f"Unknown field set {field_set!r}, expected one of {sorted(FIELD_SETS)}"
        ) from None
