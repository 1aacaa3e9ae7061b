"""
In-Memory Storage Implementation

Dict-backed storage for tests and single-process use. Records are copied
on the way in and out so callers can never mutate stored state by
accident - a failed write really does leave the old record in place.
"""

from typing import Optional, TypeVar

from pydantic import BaseModel

from freelance_ledger.models.ledger import (
    Expense,
    Partner,
    Project,
    Withdrawal,
)
from freelance_ledger.services.storage.interface import LedgerStorageInterface


RecordT = TypeVar("RecordT", bound=BaseModel)


def _copy(record: RecordT) -> RecordT:
    return record.model_copy(deep=True)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage held in plain dicts keyed by record id."""

    def __init__(
        self,
        projects: Optional[list[Project]] = None,
        expenses: Optional[list[Expense]] = None,
        partners: Optional[list[Partner]] = None,
        withdrawals: Optional[list[Withdrawal]] = None,
    ):
        self._projects: dict[str, Project] = {p.id: _copy(p) for p in projects or []}
        self._expenses: dict[str, Expense] = {e.id: _copy(e) for e in expenses or []}
        self._partners: dict[str, Partner] = {p.id: _copy(p) for p in partners or []}
        self._withdrawals: dict[str, Withdrawal] = {
            w.id: _copy(w) for w in withdrawals or []
        }

    # Projects

    async def get_project(self, project_id: str) -> Optional[Project]:
        project = self._projects.get(project_id)
        return _copy(project) if project else None

    async def list_projects(self, owner_id: str) -> list[Project]:
        return [_copy(p) for p in self._projects.values() if p.owner_id == owner_id]

    async def save_project(self, project: Project) -> bool:
        self._projects[project.id] = _copy(project)
        return True

    async def delete_project(self, project_id: str) -> bool:
        return self._projects.pop(project_id, None) is not None

    # Expenses

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return _copy(expense) if expense else None

    async def list_expenses(self, owner_id: str) -> list[Expense]:
        return [_copy(e) for e in self._expenses.values() if e.owner_id == owner_id]

    async def save_expense(self, expense: Expense) -> bool:
        self._expenses[expense.id] = _copy(expense)
        return True

    async def delete_expense(self, expense_id: str) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    # Partners

    async def get_partner(self, partner_id: str) -> Optional[Partner]:
        partner = self._partners.get(partner_id)
        return _copy(partner) if partner else None

    async def list_partners(self, owner_id: str) -> list[Partner]:
        return [_copy(p) for p in self._partners.values() if p.owner_id == owner_id]

    async def save_partner(self, partner: Partner) -> bool:
        self._partners[partner.id] = _copy(partner)
        return True

    # Withdrawals

    async def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        withdrawal = self._withdrawals.get(withdrawal_id)
        return _copy(withdrawal) if withdrawal else None

    async def list_withdrawals(self, owner_id: str) -> list[Withdrawal]:
        return [
            _copy(w) for w in self._withdrawals.values() if w.owner_id == owner_id
        ]

    async def save_withdrawal(self, withdrawal: Withdrawal) -> bool:
        self._withdrawals[withdrawal.id] = _copy(withdrawal)
        return True

    async def delete_withdrawal(self, withdrawal_id: str) -> bool:
        return self._withdrawals.pop(withdrawal_id, None) is not None
