"""
Currency Conversion

Converts amounts between supported currencies through the base currency.

DESIGN DECISION: Conversion is fail-open. An unrecognized code logs a
warning and returns the amount unconverted, so a bad import degrades
display accuracy instead of crashing a dashboard. Callers that need strict
behavior call parse_currency() first, which raises.
"""

from decimal import Decimal
from typing import Optional, Union

import structlog

from freelance_ledger.currency.rates import (
    BASE_CURRENCY,
    CURRENCY_ALIASES,
    CURRENCY_SYMBOLS,
    RATES_TO_BASE,
    Currency,
)
from freelance_ledger.errors import UnsupportedCurrencyError


logger = structlog.get_logger(__name__)

CurrencyLike = Union[Currency, str]


def normalize_currency_code(code: CurrencyLike) -> Optional[Currency]:
    """
    Map a code or alias to its canonical Currency.

    Returns None when the code is not recognized.
    """
    if isinstance(code, Currency):
        return code
    if not isinstance(code, str):
        return None

    key = code.strip().lower()
    if key in CURRENCY_ALIASES:
        return CURRENCY_ALIASES[key]
    try:
        return Currency(key)
    except ValueError:
        return None


def parse_currency(code: CurrencyLike) -> Currency:
    """Strict variant of normalize_currency_code() for record boundaries."""
    currency = normalize_currency_code(code)
    if currency is None:
        raise UnsupportedCurrencyError(code)
    return currency


class CurrencyConverter:
    """
    Converts between currencies using a fixed rate-to-base table.

    The table defaults to the shared module table; tests may pass their own.
    """

    def __init__(
        self,
        rates: Optional[dict[Currency, Decimal]] = None,
        base: Currency = BASE_CURRENCY,
    ):
        self._rates = rates if rates is not None else RATES_TO_BASE
        self._base = base

    @property
    def base(self) -> Currency:
        return self._base

    def convert(
        self,
        amount: Decimal,
        from_currency: CurrencyLike,
        to_currency: CurrencyLike,
    ) -> Decimal:
        """
        Convert an amount from one currency to another.

        Same-currency conversions return the input untouched.
        """
        source = normalize_currency_code(from_currency)
        target = normalize_currency_code(to_currency)

        if source is not None and source == target:
            return amount

        source_rate = self._rates.get(source) if source is not None else None
        target_rate = self._rates.get(target) if target is not None else None

        if not source_rate or not target_rate:
            logger.warning(
                "currency_rate_missing",
                from_currency=str(from_currency),
                to_currency=str(to_currency),
                amount=str(amount),
            )
            return amount

        in_base = amount if source == self._base else amount / source_rate
        return in_base if target == self._base else in_base * target_rate


_default_converter = CurrencyConverter()


def convert(
    amount: Decimal,
    from_currency: CurrencyLike,
    to_currency: CurrencyLike,
) -> Decimal:
    """Convert using the shared rate table."""
    return _default_converter.convert(amount, from_currency, to_currency)


def format_amount(amount: Decimal, currency: CurrencyLike) -> str:
    """Format an amount with its currency symbol, e.g. '$1,250.00'."""
    resolved = normalize_currency_code(currency)
    symbol = CURRENCY_SYMBOLS.get(resolved, "") if resolved else ""
    return f"{symbol}{amount:,.2f}"
