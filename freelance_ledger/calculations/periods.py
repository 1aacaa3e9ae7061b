"""
Cadence Normalization for Dashboard Periods

Scales an expense's stored amount to the share that falls in one reporting
period, e.g. a yearly subscription counts as 1/12 in a monthly view.

CRITICAL: This is display-only. Per-project allocation always uses the
full stored amount (see calculations.allocation). Never call this from the
recalculation path.
"""

from decimal import Decimal
from enum import Enum

from freelance_ledger.models.ledger import ExpenseCadence


class ReportingPeriod(str, Enum):
    """Dashboard aggregation period."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


# How an expense amount is scaled, per (period, cadence): divided by the
# first table or multiplied by the second. Missing means "count as-is".
_DIVISORS: dict[ReportingPeriod, dict[ExpenseCadence, Decimal]] = {
    ReportingPeriod.WEEKLY: {
        ExpenseCadence.YEARLY: Decimal("52"),
        ExpenseCadence.QUARTERLY: Decimal("13"),
        ExpenseCadence.BI_ANNUAL: Decimal("26"),
        ExpenseCadence.MONTHLY: Decimal("4.33"),
    },
    ReportingPeriod.MONTHLY: {
        ExpenseCadence.YEARLY: Decimal("12"),
        ExpenseCadence.QUARTERLY: Decimal("3"),
        ExpenseCadence.BI_ANNUAL: Decimal("6"),
    },
    ReportingPeriod.QUARTERLY: {
        ExpenseCadence.YEARLY: Decimal("4"),
        ExpenseCadence.BI_ANNUAL: Decimal("2"),
    },
    ReportingPeriod.ANNUAL: {},
}

_MULTIPLIERS: dict[ReportingPeriod, dict[ExpenseCadence, Decimal]] = {
    ReportingPeriod.WEEKLY: {},
    ReportingPeriod.MONTHLY: {},
    ReportingPeriod.QUARTERLY: {
        ExpenseCadence.MONTHLY: Decimal("3"),
    },
    ReportingPeriod.ANNUAL: {
        ExpenseCadence.QUARTERLY: Decimal("4"),
        ExpenseCadence.BI_ANNUAL: Decimal("2"),
        ExpenseCadence.MONTHLY: Decimal("12"),
    },
}


def normalize_expense_amount(
    amount: Decimal,
    cadence: ExpenseCadence,
    period: ReportingPeriod = ReportingPeriod.MONTHLY,
) -> Decimal:
    """Scale an expense amount to one reporting period."""
    # One-time expenses count in full in the period they occur
    if cadence == ExpenseCadence.ONE_TIME:
        return amount

    divisor = _DIVISORS[period].get(cadence)
    if divisor is not None:
        return amount / divisor

    multiplier = _MULTIPLIERS[period].get(cadence)
    if multiplier is not None:
        return amount * multiplier

    return amount
