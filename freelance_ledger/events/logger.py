"""
Engine Event Logger

DESIGN DECISION: Every recalculation, cascade and rejection is logged as a
structured event. This provides:
1. Traceability of which mutation caused which recalculation
2. Debugging capability when a number looks wrong
3. Correlation IDs to group everything one mutation triggered

The event logger:
- Never raises (a logging failure must not break a recalculation)
- Chooses the log level from the event severity
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from freelance_ledger.models.events import EngineEvent, EventSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class EventLogger:
    """
    Central engine event logging service.

    Optionally keeps the most recent events in memory so callers can
    inspect what a mutation triggered.
    """

    def __init__(self, keep_last: int = 0):
        """
        Initialize event logger.

        Args:
            keep_last: Number of recent events to retain in memory.
                      0 disables retention.
        """
        self._logger = structlog.get_logger("freelance_ledger.events")
        self._keep_last = keep_last
        self._recent: list[EngineEvent] = []

    @property
    def recent_events(self) -> list[EngineEvent]:
        """Retained events, oldest first."""
        return list(self._recent)

    def log(self, event: EngineEvent) -> None:
        """Log an engine event at the level matching its severity."""
        log_dict = event.to_log_dict()

        try:
            if event.severity == EventSeverity.ERROR:
                self._logger.error("engine_event", **log_dict)
            elif event.severity == EventSeverity.WARNING:
                self._logger.warning("engine_event", **log_dict)
            elif event.severity == EventSeverity.DEBUG:
                self._logger.debug("engine_event", **log_dict)
            else:
                self._logger.info("engine_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "event_logging_failed",
                error=str(e),
                event_id=str(event.event_id),
            )

        if self._keep_last > 0:
            self._recent.append(event)
            del self._recent[:-self._keep_last]

    def events_for(self, project_id: str) -> list[EngineEvent]:
        """Retained events about one project."""
        return [e for e in self._recent if e.project_id == project_id]


def create_correlation_id(existing: Optional[UUID] = None) -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a mutation (e.g., an expense edit) and pass it
    through every recalculation it triggers.
    """
    return existing or uuid4()
