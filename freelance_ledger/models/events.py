"""
Engine Event Models

Every significant step of the recalculation cascade emits a typed event.
Events give us:
1. Structured, greppable logs of what was recalculated and why
2. Debugging information when a project ends up with surprising numbers
3. A single place that defines what each log line carries

DESIGN DECISION: Events are logged, not stored. Keeping a history of past
recalculations is out of scope for the engine.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class EngineEventType(str, Enum):
    """Types of events the engine emits."""
    # Cascade
    CASCADE_TRIGGERED = "cascade_triggered"
    BATCH_COMPLETED = "batch_completed"

    # Per-project recalculation
    PROJECT_RECALCULATED = "project_recalculated"
    PROJECT_UNCHANGED = "project_unchanged"
    PROJECT_NOT_FOUND = "project_not_found"
    RECALCULATION_FAILED = "recalculation_failed"

    # Partner assignments
    PARTNERS_ASSIGNED = "partners_assigned"
    PARTNER_SHARES_REJECTED = "partner_shares_rejected"

    # System events
    STORAGE_ERROR = "storage_error"


class EventSeverity(str, Enum):
    """Severity level for engine events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EngineEvent(BaseModel):
    """A single engine event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )
    event_type: EngineEventType
    severity: EventSeverity = Field(default=EventSeverity.INFO)

    # What the event is about
    project_id: Optional[str] = None
    owner_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together all events caused by one mutation"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "project_id": self.project_id,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class EngineEventBuilder:
    """
    Helper class to build engine events with common patterns.

    Usage:
        event = EngineEventBuilder.cascade_triggered("expense_saved", ids, cid)
        event = EngineEventBuilder.project_not_found(project_id, cid)
    """

    @staticmethod
    def cascade_triggered(
        trigger: str,
        project_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.CASCADE_TRIGGERED,
            correlation_id=correlation_id,
            description=f"{trigger} affects {len(project_ids)} project(s)",
            details={
                "trigger": trigger,
                "project_ids": sorted(project_ids),
            },
        )

    @staticmethod
    def batch_completed(
        succeeded: list[str],
        failed: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.BATCH_COMPLETED,
            severity=EventSeverity.WARNING if failed else EventSeverity.INFO,
            correlation_id=correlation_id,
            description=(
                f"Batch recalculation finished: {len(succeeded)} ok, "
                f"{len(failed)} failed"
            ),
            details={
                "succeeded": succeeded,
                "failed": failed,
            },
        )

    @staticmethod
    def project_recalculated(
        project_id: str,
        owner_id: str,
        allocated_expenses: str,
        final_amount: str,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.PROJECT_RECALCULATED,
            project_id=project_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Project recalculated: final {final_amount} {currency}",
            details={
                "allocated_expenses": allocated_expenses,
                "final_amount": final_amount,
                "currency": currency,
            },
        )

    @staticmethod
    def project_unchanged(
        project_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.PROJECT_UNCHANGED,
            severity=EventSeverity.DEBUG,
            project_id=project_id,
            correlation_id=correlation_id,
            description="Project aggregate already consistent, write skipped",
        )

    @staticmethod
    def project_not_found(
        project_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.PROJECT_NOT_FOUND,
            severity=EventSeverity.ERROR,
            project_id=project_id,
            correlation_id=correlation_id,
            description=f"Project not found during recalculation: {project_id}",
        )

    @staticmethod
    def recalculation_failed(
        project_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.RECALCULATION_FAILED,
            severity=EventSeverity.ERROR,
            project_id=project_id,
            correlation_id=correlation_id,
            description="Recalculation failed, previous aggregate kept",
            error_message=error_message,
        )

    @staticmethod
    def partners_assigned(
        project_id: str,
        partner_count: int,
        total_share: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.PARTNERS_ASSIGNED,
            project_id=project_id,
            correlation_id=correlation_id,
            description=f"{partner_count} partner(s) assigned, total share {total_share}%",
            details={
                "partner_count": partner_count,
                "total_share": total_share,
            },
        )

    @staticmethod
    def partner_shares_rejected(
        project_id: str,
        total_share: str,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.PARTNER_SHARES_REJECTED,
            severity=EventSeverity.WARNING,
            project_id=project_id,
            correlation_id=correlation_id,
            description=f"Partner shares rejected: total {total_share}% exceeds 100%",
            details={
                "total_share": total_share,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        project_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.STORAGE_ERROR,
            severity=EventSeverity.ERROR,
            project_id=project_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
