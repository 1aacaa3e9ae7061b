"""Read-only portfolio reports over recalculated projects."""

from freelance_ledger.calculations.periods import (
    ReportingPeriod,
    normalize_expense_amount,
)
from freelance_ledger.reporting.portfolio import (
    CurrencyTotals,
    DashboardSummary,
    PartnerEarnings,
    PartnerProjectShare,
    PortfolioBalance,
    dashboard_summary,
    partner_earnings,
    portfolio_balance,
)

__all__ = [
    "CurrencyTotals",
    "DashboardSummary",
    "PartnerEarnings",
    "PartnerProjectShare",
    "PortfolioBalance",
    "ReportingPeriod",
    "dashboard_summary",
    "normalize_expense_amount",
    "partner_earnings",
    "portfolio_balance",
]
