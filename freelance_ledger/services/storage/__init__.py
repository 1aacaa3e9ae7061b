"""
Storage Services Package

Provides the abstract storage interface and its implementations.
In-memory storage backs tests; Google Sheets is the shared backend.
"""

from freelance_ledger.services.storage.interface import (
    BackendConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from freelance_ledger.services.storage.memory import InMemoryLedgerStorage
from freelance_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interface
    "LedgerStorageInterface",
    # Exceptions
    "BackendConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryLedgerStorage",
]
