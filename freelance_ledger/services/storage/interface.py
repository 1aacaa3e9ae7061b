"""
Abstract Storage Interface

DESIGN DECISION: The engine never talks to a database directly. It reads
and writes records through this interface, which allows us to:
1. Run the whole engine against in-memory storage in tests
2. Keep Google Sheets (or anything else) swappable
3. Keep the recalculation logic decoupled from persistence mechanics

The interface is intentionally small - we're not building an ORM.
Just the operations the engine and its reports need.
"""

from abc import ABC, abstractmethod
from typing import Optional

from freelance_ledger.models.ledger import (
    Expense,
    Partner,
    Project,
    Withdrawal,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger record storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[Project]:
        """
        Retrieve a project by its ID.

        Returns:
            The project if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_projects(self, owner_id: str) -> list[Project]:
        """List every project belonging to an owner."""
        pass

    @abstractmethod
    async def save_project(self, project: Project) -> bool:
        """
        Insert or replace a project, including its aggregate.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the write fails. The previously stored
                          project must be left intact.
        """
        pass

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """
        Delete a project by ID.

        Returns:
            True if a project was deleted
        """
        pass

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        pass

    @abstractmethod
    async def list_expenses(self, owner_id: str) -> list[Expense]:
        """
        List every expense belonging to an owner, whatever its status.

        The engine filters by status and project link itself.
        """
        pass

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """Insert or replace an expense."""
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense by ID."""
        pass

    # ------------------------------------------------------------------
    # Partners
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_partner(self, partner_id: str) -> Optional[Partner]:
        """Retrieve a partner by its ID."""
        pass

    @abstractmethod
    async def list_partners(self, owner_id: str) -> list[Partner]:
        """List every partner belonging to an owner."""
        pass

    @abstractmethod
    async def save_partner(self, partner: Partner) -> bool:
        """Insert or replace a partner."""
        pass

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        """Retrieve a withdrawal by its ID."""
        pass

    @abstractmethod
    async def list_withdrawals(self, owner_id: str) -> list[Withdrawal]:
        """List every withdrawal belonging to an owner."""
        pass

    @abstractmethod
    async def save_withdrawal(self, withdrawal: Withdrawal) -> bool:
        """Insert or replace a withdrawal."""
        pass

    @abstractmethod
    async def delete_withdrawal(self, withdrawal_id: str) -> bool:
        """Delete a withdrawal by ID."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class BackendConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
