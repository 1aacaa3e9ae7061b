"""Pure calculation package: waterfall, allocation, partner shares, periods."""

from freelance_ledger.calculations.allocation import (
    ExpenseAllocator,
    ExpenseIndex,
    affected_project_ids,
    is_allocatable,
)
from freelance_ledger.calculations.partners import (
    ShareValidation,
    add_partner,
    distribute,
    ensure_valid_shares,
    split_remaining_share,
    total_share,
    validate_shares,
)
from freelance_ledger.calculations.periods import (
    ReportingPeriod,
    normalize_expense_amount,
)
from freelance_ledger.calculations.waterfall import (
    CHARITY_RATE,
    WaterfallResult,
    compute_waterfall,
)

__all__ = [
    # Allocation
    "ExpenseAllocator",
    "ExpenseIndex",
    "affected_project_ids",
    "is_allocatable",
    # Partners
    "ShareValidation",
    "add_partner",
    "distribute",
    "ensure_valid_shares",
    "split_remaining_share",
    "total_share",
    "validate_shares",
    # Periods
    "ReportingPeriod",
    "normalize_expense_amount",
    # Waterfall
    "CHARITY_RATE",
    "WaterfallResult",
    "compute_waterfall",
]
