"""
Static Exchange Rate Table

DESIGN DECISION: This is the ONLY rate table in the system. Project
allocation, partner earnings, balance and dashboard totals all convert
through it, so two views can never disagree about what a currency is worth.

Rates are "units of the currency per 1 unit of the base currency (INR)".
Rates are fixed on purpose; there is no live feed.
"""

from decimal import Decimal
from enum import Enum


RATE_TABLE_VERSION = "2024-01-inr-v1"


class Currency(str, Enum):
    """
    Supported currency codes.

    DESIGN DECISION: A closed enum instead of free-text codes. Adding a
    currency means adding a member here and one entry in RATES_TO_BASE.
    """
    INR = "inr"
    DOLLARS = "dollars"
    EURO = "euro"
    PKR = "pkr"
    GBP = "gbp"
    CAD = "cad"
    AUD = "aud"


BASE_CURRENCY = Currency.INR

# 1 INR = X units of the currency
RATES_TO_BASE: dict[Currency, Decimal] = {
    Currency.INR: Decimal("1"),
    Currency.DOLLARS: Decimal("0.012"),
    Currency.EURO: Decimal("0.011"),
    Currency.PKR: Decimal("3.33"),
    Currency.GBP: Decimal("0.0095"),
    Currency.CAD: Decimal("0.016"),
    Currency.AUD: Decimal("0.018"),
}

# Alternate spellings seen in imported data, mapped to canonical codes
CURRENCY_ALIASES: dict[str, Currency] = {
    "dollar": Currency.DOLLARS,
    "usd": Currency.DOLLARS,
    "$": Currency.DOLLARS,
    "rupee": Currency.INR,
    "rupees": Currency.INR,
    "eur": Currency.EURO,
    "euros": Currency.EURO,
    "pound": Currency.GBP,
    "pounds": Currency.GBP,
}

CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.INR: "₹",
    Currency.DOLLARS: "$",
    Currency.EURO: "€",
    Currency.PKR: "₨",
    Currency.GBP: "£",
    Currency.CAD: "C$",
    Currency.AUD: "A$",
}
