"""
Data Models Package

This package contains all Pydantic models used by the Freelance Ledger engine.
All data flowing through the engine must conform to these schemas.
"""

from freelance_ledger.models.ledger import (
    BatchRecalculationResult,
    Expense,
    ExpenseCadence,
    ExpenseStatus,
    Partner,
    PartnerPayout,
    PartnerStatus,
    Project,
    ProjectAggregate,
    ProjectPartner,
    ProjectState,
    ProjectStatus,
    RecalculationOutcome,
    Withdrawal,
    WithdrawalStatus,
)
from freelance_ledger.models.events import (
    EngineEvent,
    EngineEventBuilder,
    EngineEventType,
    EventSeverity,
)

__all__ = [
    # Ledger models
    "BatchRecalculationResult",
    "Expense",
    "ExpenseCadence",
    "ExpenseStatus",
    "Partner",
    "PartnerPayout",
    "PartnerStatus",
    "Project",
    "ProjectAggregate",
    "ProjectPartner",
    "ProjectState",
    "ProjectStatus",
    "RecalculationOutcome",
    "Withdrawal",
    "WithdrawalStatus",
    # Event models
    "EngineEvent",
    "EngineEventBuilder",
    "EngineEventType",
    "EventSeverity",
]
