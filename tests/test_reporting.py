"""Tests for partner earnings, balance and dashboard reports."""

from decimal import Decimal

import pytest

from conftest import OWNER_ID, make_expense, make_partner, make_project
from freelance_ledger.config import EngineSettings
from freelance_ledger.currency import Currency
from freelance_ledger.models.ledger import (
    ExpenseCadence,
    ExpenseStatus,
    ProjectPartner,
    ProjectStatus,
    Withdrawal,
    WithdrawalStatus,
)
from freelance_ledger.orchestrator import RecalculationOrchestrator
from freelance_ledger.reporting import (
    ReportingPeriod,
    dashboard_summary,
    partner_earnings,
    portfolio_balance,
)
from freelance_ledger.services.storage import InMemoryLedgerStorage


@pytest.fixture
def recalculated():
    """Attach a freshly computed aggregate to a project."""
    orchestrator = RecalculationOrchestrator(
        InMemoryLedgerStorage(),
        settings=EngineSettings(),
    )

    def attach(project, expenses=()):
        aggregate, _ = orchestrator.build_aggregate(project, expenses)
        return project.model_copy(update={"aggregate": aggregate})

    return attach


@pytest.fixture(autouse=True)
def default_report_currencies(monkeypatch):
    """Reports fall back to configured currencies; pin the defaults."""
    monkeypatch.delenv("LEDGER_REPORTING_CURRENCY", raising=False)
    monkeypatch.delenv("LEDGER_DISPLAY_CURRENCY", raising=False)


def withdrawal(amount, currency="inr", **overrides):
    return Withdrawal(owner_id=OWNER_ID, amount=Decimal(amount), currency=currency, **overrides)


class TestPartnerEarnings:
    """Tests for partner_earnings."""

    def test_totals_in_pkr(self, recalculated):
        """Test that shares are converted to PKR and totalled."""
        partner = make_partner(name="Sara")
        projects = [
            recalculated(make_project(price=Decimal("1000"), currency="inr", fee_percent=0, partners=[
                ProjectPartner(partner_id=partner.id, name="Sara", share_percent=Decimal("50")),
            ])),
            recalculated(make_project(price=Decimal("2000"), currency="inr", fee_percent=0, partners=[
                ProjectPartner(partner_id=partner.id, name="Sara", share_percent=Decimal("10")),
            ])),
            recalculated(make_project(price=Decimal("5000"), currency="inr", fee_percent=0)),
        ]

        earnings = partner_earnings(partner, projects)
        assert earnings.currency == Currency.PKR
        assert [s.share_amount for s in earnings.shares] == [Decimal("500"), Decimal("200")]
        assert earnings.total == Decimal("2331")

    def test_matches_by_id_not_name(self, recalculated):
        """Test that a same-named entry for another partner is ignored."""
        partner = make_partner(name="Sara")
        project = recalculated(make_project(partners=[
            ProjectPartner(partner_id="someone-else", name="Sara", share_percent=Decimal("50")),
        ]))
        assert partner_earnings(partner, [project]).shares == []

    def test_zero_final_contributes_nothing(self, recalculated):
        """Test that a loss-making project is skipped."""
        partner = make_partner()
        project = make_project(price=Decimal("100"), fee_percent=0, partners=[
            ProjectPartner(partner_id=partner.id, name="Ali", share_percent=Decimal("50")),
        ])
        project = recalculated(project, [make_expense(amount=Decimal("500"), project_ids=[project.id])])

        assert project.aggregate.final_amount == Decimal("0")
        earnings = partner_earnings(partner, [project], currency=Currency.DOLLARS)
        assert earnings.shares == []
        assert earnings.total == Decimal("0")


class TestPortfolioBalance:
    """Tests for portfolio_balance."""

    def test_remaining_balance(self, recalculated):
        projects = [
            recalculated(make_project(price=Decimal("1000"), currency="inr", fee_percent=0, charity_enabled=True)),
            recalculated(make_project(price=Decimal("12"), currency="dollars", fee_percent=0)),
        ]
        withdrawals = [
            withdrawal("100", fee=Decimal("0.12"), fee_currency="dollars"),
        ]
        expenses = [
            make_expense(amount=Decimal("40"), currency="inr"),
            make_expense(amount=Decimal("500"), currency="inr", status=ExpenseStatus.CANCELLED),
            make_expense(amount=Decimal("1.2"), currency="dollars"),
        ]

        balance = portfolio_balance(projects, expenses, withdrawals, Currency.INR)

        assert balance.by_currency[Currency.INR].projects == Decimal("950")
        assert balance.by_currency[Currency.INR].charity == Decimal("50")
        assert balance.by_currency[Currency.INR].withdrawals == Decimal("110")
        assert balance.by_currency[Currency.DOLLARS].expenses == Decimal("1.2")
        assert balance.total_projects == Decimal("1950")
        assert balance.total_withdrawals == Decimal("110")
        assert balance.total_expenses == Decimal("140")
        assert balance.total_charity == Decimal("50")
        assert balance.remaining == Decimal("1650")

    def test_unrecalculated_project_counts_price(self):
        project = make_project(price=Decimal("300"), currency="inr")
        balance = portfolio_balance([project], [], [], Currency.INR)
        assert balance.total_projects == Decimal("300")

    def test_fee_without_currency_uses_withdrawal_currency(self):
        balance = portfolio_balance([], [], [withdrawal("10", fee=Decimal("2"))], Currency.INR)
        assert balance.total_withdrawals == Decimal("12")


class TestDashboardSummary:
    """Tests for dashboard_summary."""

    def test_monthly_summary(self, recalculated):
        projects = [
            recalculated(make_project(
                price=Decimal("1000"), currency="inr", fee_percent=Decimal("10"),
                charity_enabled=True, status=ProjectStatus.COMPLETED,
            )),
            recalculated(make_project(
                price=Decimal("500"), currency="inr", fee_percent=0,
                status=ProjectStatus.IN_PROGRESS,
            )),
            recalculated(make_project(
                price=Decimal("999"), currency="inr", fee_percent=0,
                status=ProjectStatus.INACTIVE,
            )),
        ]
        expenses = [
            make_expense(amount=Decimal("1200"), currency="inr", cadence=ExpenseCadence.YEARLY),
            make_expense(amount=Decimal("50"), currency="inr", cadence=ExpenseCadence.MONTHLY,
                         status=ExpenseStatus.COMPLETED),
            make_expense(amount=Decimal("999"), currency="inr", status=ExpenseStatus.CANCELLED),
        ]
        withdrawals = [
            withdrawal("200", status=WithdrawalStatus.COMPLETED),
            withdrawal("100", status=WithdrawalStatus.PROCESSING),
            withdrawal("1000", status=WithdrawalStatus.PENDING),
            withdrawal("1000", status=WithdrawalStatus.FAILED),
        ]

        summary = dashboard_summary(projects, expenses, withdrawals, Currency.INR)

        assert summary.period == ReportingPeriod.MONTHLY
        assert summary.total_revenue == Decimal("1400")
        assert summary.total_charity == Decimal("45")
        assert summary.total_expenses == Decimal("150")
        assert summary.total_withdrawals == Decimal("300")
        assert summary.net_profit == Decimal("905")
        assert summary.active_projects == 1

    def test_annual_period_scales_monthly_expenses(self):
        expenses = [make_expense(amount=Decimal("10"), currency="inr", cadence=ExpenseCadence.MONTHLY)]
        summary = dashboard_summary([], expenses, [], Currency.INR, ReportingPeriod.ANNUAL)
        assert summary.total_expenses == Decimal("120")
        assert summary.net_profit == Decimal("-120")


class TestConfiguredCurrencies:
    """Tests for report currencies taken from LEDGER_ settings."""

    def test_partner_earnings_uses_reporting_currency(self, monkeypatch, recalculated):
        monkeypatch.setenv("LEDGER_REPORTING_CURRENCY", "usd")
        partner = make_partner()
        project = recalculated(make_project(price=Decimal("1000"), currency="inr", fee_percent=0, partners=[
            ProjectPartner(partner_id=partner.id, name="Ali", share_percent=Decimal("50")),
        ]))

        earnings = partner_earnings(partner, [project])
        assert earnings.currency == Currency.DOLLARS
        assert earnings.total == Decimal("6")

    def test_balance_and_dashboard_use_display_currency(self, monkeypatch):
        """Test that LEDGER_DISPLAY_CURRENCY changes the default display currency."""
        monkeypatch.setenv("LEDGER_DISPLAY_CURRENCY", "dollars")
        project = make_project(price=Decimal("1000"), currency="inr")

        balance = portfolio_balance([project], [], [])
        summary = dashboard_summary([project], [], [])
        assert balance.display_currency == Currency.DOLLARS
        assert balance.total_projects == Decimal("12")
        assert summary.currency == Currency.DOLLARS
        assert summary.total_revenue == Decimal("12")

    def test_explicit_currency_wins(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DISPLAY_CURRENCY", "dollars")
        balance = portfolio_balance([make_project(price=Decimal("300"), currency="inr")], [], [], Currency.INR)
        assert balance.display_currency == Currency.INR
        assert balance.total_projects == Decimal("300")
