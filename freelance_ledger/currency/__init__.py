"""Currency conversion package."""

from freelance_ledger.currency.rates import (
    BASE_CURRENCY,
    CURRENCY_ALIASES,
    RATE_TABLE_VERSION,
    RATES_TO_BASE,
    Currency,
)
from freelance_ledger.currency.converter import (
    CurrencyConverter,
    convert,
    format_amount,
    normalize_currency_code,
    parse_currency,
)

__all__ = [
    "BASE_CURRENCY",
    "CURRENCY_ALIASES",
    "Currency",
    "CurrencyConverter",
    "RATE_TABLE_VERSION",
    "RATES_TO_BASE",
    "convert",
    "format_amount",
    "normalize_currency_code",
    "parse_currency",
]
