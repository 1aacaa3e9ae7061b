"""
Portfolio Reports

Read-only roll-ups over already-recalculated projects:
1. Partner earnings (per-project shares, totalled in one currency)
2. Portfolio balance (what is left after withdrawals, expenses, charity)
3. Dashboard summary (revenue, period-normalized expenses, net profit)

IMPORTANT: Reports never recalculate. Pass projects obtained through the
orchestrator's read paths so their aggregates are current.

All conversions go through the shared rate table in freelance_ledger.currency.
"""

from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from freelance_ledger.calculations.periods import (
    ReportingPeriod,
    normalize_expense_amount,
)
from freelance_ledger.config import get_settings
from freelance_ledger.currency import Currency, CurrencyConverter
from freelance_ledger.models.ledger import (
    Expense,
    ExpenseStatus,
    Partner,
    Project,
    ProjectStatus,
    Withdrawal,
    WithdrawalStatus,
)


ZERO = Decimal("0")

# Project statuses whose money counts as earned revenue
REVENUE_STATUSES = {
    ProjectStatus.COMPLETED,
    ProjectStatus.ACTIVE,
    ProjectStatus.IN_PROGRESS,
}
RUNNING_STATUSES = {ProjectStatus.ACTIVE, ProjectStatus.IN_PROGRESS}
DASHBOARD_EXPENSE_STATUSES = {ExpenseStatus.ACTIVE, ExpenseStatus.COMPLETED}
SETTLED_WITHDRAWAL_STATUSES = {
    WithdrawalStatus.COMPLETED,
    WithdrawalStatus.PROCESSING,
}


# =============================================================================
# RESULT MODELS
# =============================================================================

class PartnerProjectShare(BaseModel):
    """One partner's cut of one project."""

    project_id: str
    project_title: str
    share_percent: Decimal
    share_amount: Decimal = Field(description="In the project currency")
    currency: Currency
    converted_amount: Decimal = Field(description="In the report currency")


class PartnerEarnings(BaseModel):
    """Everything a partner is owed across projects."""

    partner_id: str
    partner_name: str
    currency: Currency
    shares: list[PartnerProjectShare] = Field(default_factory=list)
    total: Decimal = ZERO


class CurrencyTotals(BaseModel):
    """Balance components in a single currency."""

    projects: Decimal = ZERO
    withdrawals: Decimal = ZERO
    expenses: Decimal = ZERO
    charity: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.projects - self.withdrawals - self.expenses - self.charity


class PortfolioBalance(BaseModel):
    """Balance across all currencies, converted to one display currency."""

    display_currency: Currency
    by_currency: dict[Currency, CurrencyTotals] = Field(default_factory=dict)
    total_projects: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    total_expenses: Decimal = ZERO
    total_charity: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return (
            self.total_projects
            - self.total_withdrawals
            - self.total_expenses
            - self.total_charity
        )


class DashboardSummary(BaseModel):
    """Headline figures for one reporting period."""

    currency: Currency
    period: ReportingPeriod
    total_revenue: Decimal
    total_expenses: Decimal
    total_withdrawals: Decimal
    total_charity: Decimal
    net_profit: Decimal
    active_projects: int


# =============================================================================
# REPORTS
# =============================================================================

def partner_earnings(
    partner: Partner,
    projects: Iterable[Project],
    currency: Optional[Currency] = None,
    converter: Optional[CurrencyConverter] = None,
) -> PartnerEarnings:
    """
    Total a partner's shares across projects.

    Projects are matched by partner id only. Projects without a positive
    final amount contribute nothing. currency defaults to the configured
    LEDGER_REPORTING_CURRENCY.
    """
    currency = currency or get_settings().engine.reporting_currency
    converter = converter or CurrencyConverter()
    shares = []

    for project in projects:
        entry = next(
            (p for p in project.partners if p.partner_id == partner.id),
            None,
        )
        if entry is None or project.aggregate is None:
            continue
        if project.aggregate.final_amount <= ZERO:
            continue

        share_amount = project.aggregate.final_amount * entry.share_percent / Decimal("100")
        shares.append(PartnerProjectShare(
            project_id=project.id,
            project_title=project.title,
            share_percent=entry.share_percent,
            share_amount=share_amount,
            currency=project.currency,
            converted_amount=converter.convert(share_amount, project.currency, currency),
        ))

    return PartnerEarnings(
        partner_id=partner.id,
        partner_name=partner.name,
        currency=currency,
        shares=shares,
        total=sum((s.converted_amount for s in shares), ZERO),
    )


def portfolio_balance(
    projects: Iterable[Project],
    expenses: Iterable[Expense],
    withdrawals: Iterable[Withdrawal],
    display_currency: Optional[Currency] = None,
    converter: Optional[CurrencyConverter] = None,
) -> PortfolioBalance:
    """
    Remaining balance: project money minus withdrawals, expenses and charity.

    Amounts are first totalled per native currency, then converted.
    Withdrawal fees count toward withdrawals, converted into the
    withdrawal's currency. Only Active expenses are deducted.
    display_currency defaults to the configured LEDGER_DISPLAY_CURRENCY.
    """
    display_currency = display_currency or get_settings().engine.display_currency
    converter = converter or CurrencyConverter()
    by_currency: dict[Currency, CurrencyTotals] = {}

    def bucket(currency: Currency) -> CurrencyTotals:
        return by_currency.setdefault(currency, CurrencyTotals())

    for project in projects:
        totals = bucket(project.currency)
        if project.aggregate is not None:
            totals.projects += project.aggregate.final_amount
            if project.charity_enabled:
                totals.charity += project.aggregate.charity_amount
        else:
            # Never recalculated: count the gross price
            totals.projects += project.price

    for withdrawal in withdrawals:
        totals = bucket(withdrawal.currency)
        totals.withdrawals += withdrawal.amount
        if withdrawal.fee:
            totals.withdrawals += converter.convert(
                withdrawal.fee,
                withdrawal.fee_currency or withdrawal.currency,
                withdrawal.currency,
            )

    for expense in expenses:
        if expense.status == ExpenseStatus.ACTIVE:
            bucket(expense.currency).expenses += expense.amount

    balance = PortfolioBalance(display_currency=display_currency, by_currency=by_currency)
    for currency, totals in by_currency.items():
        balance.total_projects += converter.convert(totals.projects, currency, display_currency)
        balance.total_withdrawals += converter.convert(totals.withdrawals, currency, display_currency)
        balance.total_expenses += converter.convert(totals.expenses, currency, display_currency)
        balance.total_charity += converter.convert(totals.charity, currency, display_currency)
    return balance


def dashboard_summary(
    projects: Iterable[Project],
    expenses: Iterable[Expense],
    withdrawals: Iterable[Withdrawal],
    currency: Optional[Currency] = None,
    period: ReportingPeriod = ReportingPeriod.MONTHLY,
    converter: Optional[CurrencyConverter] = None,
) -> DashboardSummary:
    """
    Headline dashboard figures.

    Revenue is taken after expenses but before charity so charity can be
    shown as its own deduction:
        net_profit = revenue - expenses - withdrawals - charity
    Recurring expenses are normalized to the reporting period.
    """
    currency = currency or get_settings().engine.display_currency
    converter = converter or CurrencyConverter()
    projects = list(projects)

    revenue = ZERO
    charity = ZERO
    for project in projects:
        if project.status not in REVENUE_STATUSES:
            continue
        if project.aggregate is None:
            revenue += converter.convert(project.price, project.currency, currency)
            continue
        revenue += converter.convert(
            project.aggregate.after_expenses, project.currency, currency
        )
        if project.charity_enabled:
            charity += converter.convert(
                project.aggregate.charity_amount, project.currency, currency
            )

    total_expenses = ZERO
    for expense in expenses:
        if expense.status in DASHBOARD_EXPENSE_STATUSES:
            amount = converter.convert(expense.amount, expense.currency, currency)
            total_expenses += normalize_expense_amount(amount, expense.cadence, period)

    total_withdrawals = sum(
        (
            converter.convert(w.amount, w.currency, currency)
            for w in withdrawals
            if w.status in SETTLED_WITHDRAWAL_STATUSES
        ),
        ZERO,
    )

    return DashboardSummary(
        currency=currency,
        period=period,
        total_revenue=revenue,
        total_expenses=total_expenses,
        total_withdrawals=total_withdrawals,
        total_charity=charity,
        net_profit=revenue - total_expenses - total_withdrawals - charity,
        active_projects=sum(1 for p in projects if p.status in RUNNING_STATUSES),
    )
