"""
Shared pytest fixtures for Freelance Ledger tests.

Async engine code is driven with asyncio.run inside each test so every
test gets a fresh event loop and a fresh orchestrator.
"""

from decimal import Decimal

import pytest

from freelance_ledger.config import EngineSettings
from freelance_ledger.events import EventLogger
from freelance_ledger.models.ledger import (
    Expense,
    Partner,
    Project,
)
from freelance_ledger.orchestrator import (
    LedgerMutationFlow,
    PartnerAssignmentFlow,
    RecalculationOrchestrator,
)
from freelance_ledger.services.storage import InMemoryLedgerStorage


OWNER_ID = "owner-1"


def make_project(**overrides) -> Project:
    """Build a project with sensible defaults."""
    fields = dict(
        owner_id=OWNER_ID,
        title="Landing page",
        platform_name="Upwork",
        price=Decimal("1000"),
        currency="dollars",
        fee_percent=Decimal("20"),
    )
    fields.update(overrides)
    return Project(**fields)


def make_expense(**overrides) -> Expense:
    """Build an active one-time expense with sensible defaults."""
    fields = dict(
        owner_id=OWNER_ID,
        name="Hosting",
        amount=Decimal("100"),
        currency="dollars",
    )
    fields.update(overrides)
    return Expense(**fields)


def make_partner(**overrides) -> Partner:
    fields = dict(owner_id=OWNER_ID, name="Ali")
    fields.update(overrides)
    return Partner(**fields)


@pytest.fixture
def engine_settings():
    """Engine settings independent of the environment."""
    return EngineSettings(
        reporting_currency="pkr",
        display_currency="inr",
        recalculate_on_read=True,
        serialize_per_project=True,
        skip_unchanged_writes=True,
    )


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def event_logger():
    return EventLogger(keep_last=100)


@pytest.fixture
def orchestrator(storage, event_logger, engine_settings):
    return RecalculationOrchestrator(
        storage=storage,
        event_logger=event_logger,
        settings=engine_settings,
    )


@pytest.fixture
def mutation_flow(storage, orchestrator):
    return LedgerMutationFlow(storage, orchestrator)


@pytest.fixture
def partner_flow(storage, orchestrator, event_logger):
    return PartnerAssignmentFlow(storage, orchestrator, event_logger)
