"""
Project Waterfall Calculation

The waterfall turns a project's gross price into the amount partners share:

    price
      - platform fee        (fee_percent of the gross price)
      = after_platform_fee
      - allocated expenses  (absolute, already in the project currency)
      = after_expenses
      - charity             (5% of max(after_expenses, 0), if enabled)
      = after_charity
    final_amount = max(after_charity, 0)

DESIGN DECISION: This is a pure function. The orchestrator calls it
explicitly; nothing recomputes derived fields behind the caller's back.

Intermediate amounts may go negative (the project is loss-making). Only the
final amount is clamped, so partner payouts are never negative.
"""

from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


CHARITY_RATE = Decimal("0.05")
HUNDRED = Decimal("100")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Coerce a number to Decimal without inheriting float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class WaterfallResult(BaseModel):
    """The ordered chain of deducted amounts for one project."""
    model_config = ConfigDict(frozen=True)

    platform_fee_amount: Decimal
    after_platform_fee: Decimal
    after_expenses: Decimal
    charity_amount: Decimal = Field(ge=0)
    after_charity: Decimal
    final_amount: Decimal = Field(ge=0)


def compute_waterfall(
    price: Number,
    fee_percent: Number,
    allocated_expenses: Number,
    charity_enabled: bool,
) -> WaterfallResult:
    """
    Compute the deduction chain for one project.

    Args:
        price: Gross project price (>= 0)
        fee_percent: Platform fee percentage (0-100)
        allocated_expenses: Expense total in the project currency
        charity_enabled: Whether the 5% charity deduction applies

    Returns:
        WaterfallResult with every intermediate and the final amount
    """
    price = to_decimal(price)
    fee_percent = to_decimal(fee_percent)
    allocated_expenses = to_decimal(allocated_expenses)

    platform_fee_amount = price * fee_percent / HUNDRED
    after_platform_fee = price - platform_fee_amount
    after_expenses = after_platform_fee - allocated_expenses

    # Charity never amplifies a loss
    if charity_enabled:
        charity_amount = max(after_expenses, ZERO) * CHARITY_RATE
    else:
        charity_amount = ZERO

    after_charity = after_expenses - charity_amount

    return WaterfallResult(
        platform_fee_amount=platform_fee_amount,
        after_platform_fee=after_platform_fee,
        after_expenses=after_expenses,
        charity_amount=charity_amount,
        after_charity=after_charity,
        final_amount=max(after_charity, ZERO),
    )
