"""
Recalculation Orchestrator for the Freelance Ledger

This module ties the pure calculations to storage and defines the flows
that keep every project's derived amounts consistent:
1. Recalculation (project → allocated expenses → waterfall → payouts → save)
2. Cascades (expense/withdrawal/partner/project mutation → affected projects)
3. Partner assignment (validate shares → save → recalculate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Derived amounts are only ever written here
- A mutation recalculates the union of the links before AND after it
- A failed write never replaces a project's previous aggregate
- One project's failure never aborts a batch

CRITICAL: Writes to a project row go through a per-project asyncio.Lock
so a recalculation never persists stale inputs over a concurrent edit.
"""

import asyncio
import contextlib
import weakref
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog

from freelance_ledger.calculations import (
    ExpenseAllocator,
    ExpenseIndex,
    add_partner,
    affected_project_ids,
    compute_waterfall,
    distribute,
    ensure_valid_shares,
    split_remaining_share,
)
from freelance_ledger.config import EngineSettings, get_settings
from freelance_ledger.currency import CurrencyConverter
from freelance_ledger.errors import PartnerShareError, RecalculationError
from freelance_ledger.events import EventLogger, create_correlation_id
from freelance_ledger.models.events import EngineEventBuilder
from freelance_ledger.models.ledger import (
    BatchRecalculationResult,
    Expense,
    PartnerPayout,
    Project,
    ProjectAggregate,
    ProjectPartner,
    ProjectState,
    RecalculationOutcome,
    Withdrawal,
)
from freelance_ledger.services.storage import (
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)


logger = structlog.get_logger(__name__)


class _OwnerExpenseCache:
    """
    Loads each owner's expenses at most once per batch.

    Concurrent recalculations for the same owner await the same load.
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage
        self._loads: dict[str, asyncio.Future] = {}

    async def for_project(self, owner_id: str, project_id: str) -> list[Expense]:
        load = self._loads.get(owner_id)
        if load is None:
            load = asyncio.ensure_future(self._load(owner_id))
            self._loads[owner_id] = load
        index = await load
        return index.for_project(project_id)

    async def _load(self, owner_id: str) -> ExpenseIndex:
        return ExpenseIndex.build(await self._storage.list_expenses(owner_id))


class RecalculationOrchestrator:
    """
    Keeps project aggregates consistent with their inputs.

    State per project (in memory only):
        STALE → RECALCULATING → CONSISTENT

    A project nobody has recalculated in this process is STALE.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        converter: Optional[CurrencyConverter] = None,
        event_logger: Optional[EventLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._storage = storage
        self._allocator = ExpenseAllocator(converter)
        self._event_logger = event_logger or EventLogger()
        self._settings = settings or get_settings().engine
        # A lock lives only while some task holds or awaits it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._states: dict[str, ProjectState] = {}

    # ------------------------------------------------------------------
    # State and locking
    # ------------------------------------------------------------------

    def state_of(self, project_id: str) -> ProjectState:
        """Current consistency state of a project."""
        return self._states.get(project_id, ProjectState.STALE)

    def mark_stale(self, project_ids: Iterable[str]) -> None:
        for project_id in project_ids:
            self._states[project_id] = ProjectState.STALE

    def project_lock(self, project_id: str):
        """Async context manager serializing writes to one project."""
        if not self._settings.serialize_per_project:
            return contextlib.nullcontext()
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Pure step
    # ------------------------------------------------------------------

    def build_aggregate(
        self,
        project: Project,
        expenses: Iterable[Expense],
    ) -> tuple[ProjectAggregate, list[PartnerPayout]]:
        """
        Derive a project's aggregate and partner payouts.

        No I/O. expenses may be the owner's whole collection; only Active
        expenses linked to the project are allocated.
        """
        allocated = self._allocator.allocate(project.id, project.currency, expenses)
        waterfall = compute_waterfall(
            price=project.price,
            fee_percent=project.fee_percent,
            allocated_expenses=allocated,
            charity_enabled=project.charity_enabled,
        )
        payouts = distribute(waterfall.final_amount, project.partners)

        aggregate = ProjectAggregate(
            platform_fee_amount=waterfall.platform_fee_amount,
            after_platform_fee=waterfall.after_platform_fee,
            allocated_expenses=allocated,
            after_expenses=waterfall.after_expenses,
            charity_amount=waterfall.charity_amount,
            after_charity=waterfall.after_charity,
            final_amount=waterfall.final_amount,
            partner_share_amount=sum((p.amount for p in payouts), Decimal("0")),
        )
        return aggregate, payouts

    # ------------------------------------------------------------------
    # Recalculation
    # ------------------------------------------------------------------

    async def _recalculate_one(
        self,
        project_id: str,
        expense_cache: _OwnerExpenseCache,
        correlation_id: Optional[UUID],
    ) -> RecalculationOutcome:
        """
        Recalculate and persist one project.

        Raises:
            RecalculationError: reading or persisting failed; the stored
                                aggregate is whatever it was before
        """
        async with self.project_lock(project_id):
            try:
                project = await self._storage.get_project(project_id)
            except Exception as e:
                self._event_logger.log(EngineEventBuilder.storage_error(
                    operation="get_project",
                    error_message=str(e),
                    project_id=project_id,
                    correlation_id=correlation_id,
                ))
                raise RecalculationError(project_id, str(e)) from e

            if project is None:
                self._states.pop(project_id, None)
                self._event_logger.log(
                    EngineEventBuilder.project_not_found(project_id, correlation_id)
                )
                return RecalculationOutcome(
                    project_id=project_id,
                    success=True,
                    found=False,
                )

            self._states[project_id] = ProjectState.RECALCULATING
            try:
                expenses = await expense_cache.for_project(project.owner_id, project_id)
                aggregate, payouts = self.build_aggregate(project, expenses)

                changed = project.aggregate != aggregate
                if changed or not self._settings.skip_unchanged_writes:
                    project = project.model_copy(update={
                        "aggregate": aggregate,
                        "updated_at": datetime.utcnow(),
                    })
                    await self._storage.save_project(project)
            except Exception as e:
                self._states[project_id] = ProjectState.STALE
                self._event_logger.log(EngineEventBuilder.recalculation_failed(
                    project_id=project_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
                raise RecalculationError(project_id, str(e)) from e

            self._states[project_id] = ProjectState.CONSISTENT

        if changed:
            self._event_logger.log(EngineEventBuilder.project_recalculated(
                project_id=project_id,
                owner_id=project.owner_id,
                allocated_expenses=str(aggregate.allocated_expenses),
                final_amount=str(aggregate.final_amount),
                currency=project.currency.value,
                correlation_id=correlation_id,
            ))
        else:
            self._event_logger.log(
                EngineEventBuilder.project_unchanged(project_id, correlation_id)
            )

        return RecalculationOutcome(
            project_id=project_id,
            success=True,
            changed=changed,
            project=project,
            payouts=payouts,
        )

    async def recalculate(
        self,
        project_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """
        Recalculate one project and persist its aggregate.

        Returns:
            The updated project, or None if it does not exist

        Raises:
            RecalculationError: the aggregate could not be persisted
        """
        outcome = await self._recalculate_one(
            project_id,
            _OwnerExpenseCache(self._storage),
            create_correlation_id(correlation_id),
        )
        return outcome.project

    async def recalculate_many(
        self,
        project_ids: Iterable[str],
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """
        Recalculate several projects concurrently.

        Each owner's expenses are fetched once for the whole batch. A
        failing project produces a failed outcome; the rest still run.
        """
        correlation_id = create_correlation_id(correlation_id)
        expense_cache = _OwnerExpenseCache(self._storage)
        ids = sorted(set(project_ids))

        async def run(project_id: str) -> RecalculationOutcome:
            try:
                return await self._recalculate_one(
                    project_id, expense_cache, correlation_id
                )
            except RecalculationError as e:
                return RecalculationOutcome(
                    project_id=project_id,
                    success=False,
                    error_message=str(e),
                )

        outcomes = await asyncio.gather(*(run(pid) for pid in ids))
        result = BatchRecalculationResult(outcomes=list(outcomes))

        self._event_logger.log(EngineEventBuilder.batch_completed(
            succeeded=result.succeeded,
            failed=result.failed,
            correlation_id=correlation_id,
        ))
        return result

    async def recalculate_affected(
        self,
        previous_ids: Optional[Iterable[str]],
        new_ids: Optional[Iterable[str]],
        trigger: str = "mutation",
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Recalculate every project linked before or after a mutation."""
        correlation_id = create_correlation_id(correlation_id)
        affected = affected_project_ids(previous_ids, new_ids)
        if not affected:
            return BatchRecalculationResult()

        self.mark_stale(affected)
        self._event_logger.log(EngineEventBuilder.cascade_triggered(
            trigger=trigger,
            project_ids=list(affected),
            correlation_id=correlation_id,
        ))
        return await self.recalculate_many(affected, correlation_id)

    async def recalculate_all(
        self,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Recalculate every project an owner has."""
        projects = await self._storage.list_projects(owner_id)
        return await self.recalculate_many(
            [p.id for p in projects],
            correlation_id,
        )

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    async def get_project(self, project_id: str) -> Optional[Project]:
        """Fetch a project, recalculating it first when configured to."""
        if self._settings.recalculate_on_read:
            return await self.recalculate(project_id)
        return await self._storage.get_project(project_id)

    async def list_projects(self, owner_id: str) -> list[Project]:
        """
        List an owner's projects, recalculating them first when configured to.

        A project whose recalculation fails is returned with its previous
        aggregate.
        """
        projects = await self._storage.list_projects(owner_id)
        if not self._settings.recalculate_on_read:
            return projects

        result = await self.recalculate_many([p.id for p in projects])
        refreshed = {
            o.project_id: o.project
            for o in result.outcomes
            if o.success and o.project is not None
        }
        vanished = {o.project_id for o in result.outcomes if not o.found}
        return [refreshed.get(p.id, p) for p in projects if p.id not in vanished]

    # ------------------------------------------------------------------
    # Input edits
    # ------------------------------------------------------------------

    async def edit_project(
        self,
        project_id: str,
        edit: Callable[[Project], Project],
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """
        Read-modify-write a project's inputs, then recalculate it.

        Raises:
            NotFoundError: the project does not exist
            RecalculationError: the follow-up recalculation failed
        """
        async with self.project_lock(project_id):
            project = await self._storage.get_project(project_id)
            if project is None:
                raise NotFoundError(f"Project not found: {project_id}")
            edited = edit(project).model_copy(update={"updated_at": datetime.utcnow()})
            await self._storage.save_project(edited)
            self._states[project_id] = ProjectState.STALE

        return await self.recalculate(project_id, correlation_id)

    # ------------------------------------------------------------------
    # Mutation hooks
    # ------------------------------------------------------------------

    async def on_expense_saved(
        self,
        previous: Optional[Expense],
        current: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Call after an expense was created or edited."""
        return await self.recalculate_affected(
            previous.project_ids if previous else None,
            current.project_ids,
            trigger="expense_saved",
            correlation_id=correlation_id,
        )

    async def on_expense_deleted(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Call after an expense was deleted."""
        return await self.recalculate_affected(
            expense.project_ids,
            None,
            trigger="expense_deleted",
            correlation_id=correlation_id,
        )

    async def on_withdrawal_saved(
        self,
        previous: Optional[Withdrawal],
        current: Withdrawal,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Call after a withdrawal was created or edited."""
        return await self.recalculate_affected(
            previous.project_ids if previous else None,
            current.project_ids,
            trigger="withdrawal_saved",
            correlation_id=correlation_id,
        )

    async def on_withdrawal_deleted(
        self,
        withdrawal: Withdrawal,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """Call after a withdrawal was deleted."""
        return await self.recalculate_affected(
            withdrawal.project_ids,
            None,
            trigger="withdrawal_deleted",
            correlation_id=correlation_id,
        )

    async def on_partner_changed(
        self,
        partner_id: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        """
        Call after a partner was edited.

        Refreshes the partner's display name on every project that
        references it, then recalculates those projects.
        """
        correlation_id = create_correlation_id(correlation_id)
        partner = await self._storage.get_partner(partner_id)
        projects = await self._storage.list_projects(owner_id)
        linked = [
            p.id for p in projects
            if any(entry.partner_id == partner_id for entry in p.partners)
        ]

        if partner is not None:
            def rename(project: Project) -> Project:
                return project.model_copy(update={"partners": [
                    entry.model_copy(update={"name": partner.name})
                    if entry.partner_id == partner_id else entry
                    for entry in project.partners
                ]})

            for project_id in linked:
                async with self.project_lock(project_id):
                    project = await self._storage.get_project(project_id)
                    renamed = rename(project) if project is not None else None
                    if renamed is not None and renamed != project:
                        await self._storage.save_project(renamed)

        return await self.recalculate_affected(
            linked,
            None,
            trigger="partner_changed",
            correlation_id=correlation_id,
        )

    async def on_project_saved(
        self,
        project: Project,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """Call after a project's inputs were created or edited."""
        self.mark_stale([project.id])
        return await self.recalculate(project.id, correlation_id)


class LedgerMutationFlow:
    """
    Saves or deletes records and triggers the matching recalculation.

    Flow:
    1. Read the previous version (for its project links)
    2. Write the change
    3. Recalculate the union of previous and new links
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        orchestrator: RecalculationOrchestrator,
    ):
        self._storage = storage
        self._orchestrator = orchestrator

    async def save_expense(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        previous = await self._storage.get_expense(expense.id)
        await self._storage.save_expense(expense)
        return await self._orchestrator.on_expense_saved(previous, expense, correlation_id)

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        await self._storage.delete_expense(expense_id)
        return await self._orchestrator.on_expense_deleted(expense, correlation_id)

    async def save_withdrawal(
        self,
        withdrawal: Withdrawal,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        previous = await self._storage.get_withdrawal(withdrawal.id)
        await self._storage.save_withdrawal(withdrawal)
        return await self._orchestrator.on_withdrawal_saved(
            previous, withdrawal, correlation_id
        )

    async def delete_withdrawal(
        self,
        withdrawal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BatchRecalculationResult:
        withdrawal = await self._storage.get_withdrawal(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError(f"Withdrawal not found: {withdrawal_id}")
        await self._storage.delete_withdrawal(withdrawal_id)
        return await self._orchestrator.on_withdrawal_deleted(withdrawal, correlation_id)

    async def save_project(
        self,
        project: Project,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """
        Save a project's inputs and recalculate it.

        Partner shares are validated first; an invalid list is never stored.
        Any aggregate on the incoming record is ignored: the stored one is
        kept until the recalculation replaces it.
        """
        ensure_valid_shares(project.partners)
        async with self._orchestrator.project_lock(project.id):
            stored = await self._storage.get_project(project.id)
            project = project.model_copy(update={
                "aggregate": stored.aggregate if stored else None,
            })
            await self._storage.save_project(project)
        return await self._orchestrator.on_project_saved(project, correlation_id)


class PartnerAssignmentFlow:
    """
    Attaches partners to projects.

    CRITICAL: Share totals above 100% are rejected before anything is
    persisted. The project is recalculated after every successful change
    so partner_share_amount is never stale.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        orchestrator: RecalculationOrchestrator,
        event_logger: Optional[EventLogger] = None,
    ):
        self._storage = storage
        self._orchestrator = orchestrator
        self._event_logger = event_logger or EventLogger()

    async def _apply(
        self,
        project_id: str,
        change: Callable[[Project], list[ProjectPartner]],
        correlation_id: Optional[UUID],
    ) -> Optional[Project]:
        correlation_id = create_correlation_id(correlation_id)

        def edit(project: Project) -> Project:
            partners = change(project)
            try:
                validation = ensure_valid_shares(partners)
            except PartnerShareError as e:
                self._event_logger.log(EngineEventBuilder.partner_shares_rejected(
                    project_id=project_id,
                    total_share=str(e.total),
                    correlation_id=correlation_id,
                ))
                raise
            self._event_logger.log(EngineEventBuilder.partners_assigned(
                project_id=project_id,
                partner_count=len(partners),
                total_share=str(validation.total),
                correlation_id=correlation_id,
            ))
            return project.model_copy(update={"partners": partners})

        return await self._orchestrator.edit_project(project_id, edit, correlation_id)

    async def assign_partners(
        self,
        project_id: str,
        partners: list[ProjectPartner],
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """
        Replace a project's partner list.

        Raises:
            PartnerShareError: shares sum to more than 100
            NotFoundError: the project does not exist
        """
        return await self._apply(project_id, lambda _: list(partners), correlation_id)

    async def add_partner(
        self,
        project_id: str,
        partner_id: str,
        share_percent: Decimal,
        replace_entry_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """Attach one partner, or change the share of an existing entry."""
        partner = await self._storage.get_partner(partner_id)
        if partner is None:
            raise NotFoundError(f"Partner not found: {partner_id}")

        return await self._apply(
            project_id,
            lambda project: add_partner(
                project.partners, partner, share_percent, replace_entry_id
            ),
            correlation_id,
        )

    async def add_all_partners(
        self,
        project_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """
        Attach every active partner not yet on the project, splitting the
        remaining share evenly.

        Raises:
            NoRemainingShareError: nothing left to split or nobody to add
        """
        project = await self._storage.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        candidates = await self._storage.list_partners(project.owner_id)

        return await self._apply(
            project_id,
            lambda current: split_remaining_share(current.partners, candidates),
            correlation_id,
        )

    async def remove_partner(
        self,
        project_id: str,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Project]:
        """Detach one partner entry from a project."""
        return await self._apply(
            project_id,
            lambda project: [p for p in project.partners if p.entry_id != entry_id],
            correlation_id,
        )


def create_engine_components(
    storage: Optional[LedgerStorageInterface] = None,
    settings: Optional[EngineSettings] = None,
) -> tuple[RecalculationOrchestrator, LedgerMutationFlow, PartnerAssignmentFlow]:
    """
    Factory function to create all engine components.

    Args:
        storage: Storage to use. When omitted, the backend named by
                 STORAGE_BACKEND is built; if Google Sheets is not
                 configured, in-memory storage is used instead.
        settings: Engine settings override.

    Returns:
        (orchestrator, mutation_flow, partner_flow)
    """
    if storage is None:
        backend = get_settings().app.storage_backend
        if backend == "google_sheets":
            try:
                storage = GoogleSheetsLedgerStorage()
            except Exception as e:
                # Storage not configured - continue without it
                logger.warning("storage_not_configured", backend=backend, error=str(e))
                storage = InMemoryLedgerStorage()
        else:
            storage = InMemoryLedgerStorage()

    event_logger = EventLogger()
    orchestrator = RecalculationOrchestrator(
        storage=storage,
        event_logger=event_logger,
        settings=settings,
    )
    mutation_flow = LedgerMutationFlow(storage, orchestrator)
    partner_flow = PartnerAssignmentFlow(storage, orchestrator, event_logger)

    return orchestrator, mutation_flow, partner_flow
