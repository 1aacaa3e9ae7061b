"""
Core Data Models for the Freelance Ledger

These models define the strict schemas for every record the
recalculation engine reads or writes. They are designed to:
1. Enforce type safety at runtime (money is always Decimal)
2. Normalize currency aliases at the boundary
3. Be serializable for storage and logging
4. Keep derived amounts separate from user-entered inputs

DESIGN DECISION: Derived waterfall amounts live in ProjectAggregate and are
only ever produced by the engine. A Project without an aggregate has simply
not been recalculated yet.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from freelance_ledger.currency import Currency, parse_currency


def _new_id() -> str:
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCadence(str, Enum):
    """How often an expense is paid. Only dashboards care about this."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_ANNUAL = "bi-annual"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class ExpenseStatus(str, Enum):
    """
    Expense lifecycle status.

    Only ACTIVE expenses are allocated to projects.
    """
    ACTIVE = "Active"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class ProjectStatus(str, Enum):
    """Project delivery status."""
    COMPLETED = "Completed"
    IN_PROGRESS = "in progress"
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class PartnerStatus(str, Enum):
    """Partner availability."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class WithdrawalStatus(str, Enum):
    """Withdrawal processing status."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


# =============================================================================
# PROJECT MODELS
# =============================================================================

class ProjectPartner(BaseModel):
    """
    A partner assignment on a project.

    partner_id is the stable reference to a Partner record. The name is a
    display copy taken when the partner was attached and is never used
    for matching.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    entry_id: str = Field(
        default_factory=_new_id,
        description="Identifier of this assignment within the project"
    )
    partner_id: Optional[str] = Field(
        default=None,
        description="Reference to the Partner record"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Partner display name"
    )
    share_percent: Decimal = Field(
        ...,
        ge=0,
        le=100,
        description="Share of the project's final amount (0-100)"
    )


class ProjectAggregate(BaseModel):
    """
    Derived amounts for a project, in the project's currency.

    CRITICAL: Written only by the recalculation engine. Every field is a
    function of the project inputs plus allocated_expenses.
    """
    model_config = ConfigDict(frozen=True)

    platform_fee_amount: Decimal
    after_platform_fee: Decimal
    allocated_expenses: Decimal
    after_expenses: Decimal
    charity_amount: Decimal
    after_charity: Decimal
    final_amount: Decimal = Field(ge=0)
    partner_share_amount: Decimal = Field(ge=0)


class Project(BaseModel):
    """
    A freelance project and its waterfall state.

    The partner share total is validated by the partner flow before
    persistence, not here, so that stored legacy data still loads.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(..., min_length=1)

    # Descriptive
    title: str = Field(default="", max_length=200)
    platform_name: str = Field(default="", max_length=100)
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE)
    start_date: Optional[date] = None

    # Waterfall inputs
    price: Decimal = Field(..., ge=0, description="Gross project price")
    currency: Currency = Field(..., description="Currency the price is in")
    fee_percent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Platform fee percentage"
    )
    charity_enabled: bool = Field(
        default=False,
        description="Deduct 5% charity after expenses"
    )
    partners: list[ProjectPartner] = Field(default_factory=list)

    # Derived (engine only)
    aggregate: Optional[ProjectAggregate] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        """Accept aliases such as 'dollar' or 'USD'."""
        return parse_currency(v)

    @property
    def total_share_percent(self) -> Decimal:
        """Sum of all partner share percentages."""
        return sum((p.share_percent for p in self.partners), Decimal("0"))


# =============================================================================
# EXPENSE / PARTNER / WITHDRAWAL MODELS
# =============================================================================

class Expense(BaseModel):
    """
    A cost that may be linked to zero or more projects.

    The full stored amount is allocated to each linked project; cadence is
    only used for dashboard period normalization.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=200)
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    cadence: ExpenseCadence = Field(default=ExpenseCadence.ONE_TIME)
    status: ExpenseStatus = Field(default=ExpenseStatus.ACTIVE)
    project_ids: list[str] = Field(default_factory=list)
    category: str = Field(default="Other", max_length=100)
    payment_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        """Accept aliases such as 'dollar' or 'USD'."""
        return parse_currency(v)

    @field_validator("project_ids")
    @classmethod
    def dedupe_project_ids(cls, v: list[str]) -> list[str]:
        """Drop blanks and duplicates while keeping order."""
        seen: dict[str, None] = {}
        for project_id in v:
            project_id = project_id.strip()
            if project_id:
                seen.setdefault(project_id, None)
        return list(seen)


class Partner(BaseModel):
    """A payee who can be attached to projects."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=200)
    company: Optional[str] = Field(default=None, max_length=200)
    status: PartnerStatus = Field(default=PartnerStatus.ACTIVE)


class Withdrawal(BaseModel):
    """
    A cash-out event linked to one or more projects.

    Withdrawals feed portfolio totals only, never a project's waterfall.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    method: str = Field(default="", max_length=100)
    account: str = Field(default="", max_length=200)
    project_ids: list[str] = Field(default_factory=list)
    fee: Optional[Decimal] = Field(default=None, ge=0)
    fee_currency: Optional[Currency] = None
    status: WithdrawalStatus = Field(default=WithdrawalStatus.PENDING)
    request_date: Optional[date] = None

    @field_validator("currency", "fee_currency", mode="before")
    @classmethod
    def normalize_currency(cls, v):
        if v is None:
            return v
        return parse_currency(v)


# =============================================================================
# ENGINE RESULT MODELS
# =============================================================================

class PartnerPayout(BaseModel):
    """Advisory payout for one partner on one project."""

    partner_id: Optional[str]
    name: str
    share_percent: Decimal
    amount: Decimal = Field(ge=0)


class ProjectState(str, Enum):
    """Consistency state of a project's aggregate."""
    STALE = "stale"
    RECALCULATING = "recalculating"
    CONSISTENT = "consistent"


class RecalculationOutcome(BaseModel):
    """Result of recalculating one project inside a batch."""

    project_id: str
    success: bool
    found: bool = True
    changed: bool = False
    project: Optional[Project] = None
    payouts: list[PartnerPayout] = Field(default_factory=list)
    error_message: Optional[str] = None


class BatchRecalculationResult(BaseModel):
    """Result of a fan-out recalculation."""

    outcomes: list[RecalculationOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.project_id for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[str]:
        return [o.project_id for o in self.outcomes if not o.success]

    @property
    def has_failures(self) -> bool:
        return any(not o.success for o in self.outcomes)
