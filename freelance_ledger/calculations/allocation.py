"""
Expense Allocation

Sums the Active expenses linked to a project, converted into the project's
currency. The full stored amount of each expense is allocated every time;
cadence is a dashboard concern (see calculations.periods) and is NOT
applied here.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from freelance_ledger.currency import Currency, CurrencyConverter
from freelance_ledger.models.ledger import Expense, ExpenseStatus


def is_allocatable(expense: Expense, project_id: str) -> bool:
    """An expense counts toward a project if it is Active and linked to it."""
    return expense.status == ExpenseStatus.ACTIVE and project_id in expense.project_ids


class ExpenseIndex:
    """
    Expenses indexed by linked project id.

    Built once per owner per batch so that a fan-out over N projects does
    not rescan the whole expense collection N times.
    """

    def __init__(self, by_project: dict[str, list[Expense]]):
        self._by_project = by_project

    @classmethod
    def build(cls, expenses: Iterable[Expense]) -> "ExpenseIndex":
        by_project: dict[str, list[Expense]] = defaultdict(list)
        for expense in expenses:
            for project_id in expense.project_ids:
                by_project[project_id].append(expense)
        return cls(dict(by_project))

    def for_project(self, project_id: str) -> list[Expense]:
        """Every expense linked to the project, whatever its status."""
        return list(self._by_project.get(project_id, []))


class ExpenseAllocator:
    """Computes the allocated-expense total for a project."""

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self._converter = converter or CurrencyConverter()

    def matching_expenses(
        self,
        project_id: str,
        all_expenses: Iterable[Expense],
    ) -> list[Expense]:
        """Active expenses linked to the project."""
        return [e for e in all_expenses if is_allocatable(e, project_id)]

    def allocate(
        self,
        project_id: str,
        project_currency: Currency,
        all_expenses: Iterable[Expense],
    ) -> Decimal:
        """
        Total of the project's Active expenses in the project currency.

        all_expenses may be the owner's whole collection or the slice an
        ExpenseIndex returned; non-matching records are filtered out.
        """
        total = Decimal("0")
        for expense in self.matching_expenses(project_id, all_expenses):
            total += self._converter.convert(
                expense.amount,
                expense.currency,
                project_currency,
            )
        return total


def affected_project_ids(
    previous_ids: Optional[Iterable[str]],
    new_ids: Optional[Iterable[str]],
) -> set[str]:
    """
    Union of the project links before and after a mutation.

    Moving an expense off a project must still recalculate that project.
    """
    return set(previous_ids or ()) | set(new_ids or ())
