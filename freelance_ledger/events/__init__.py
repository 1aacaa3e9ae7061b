"""Engine event logging package."""

from freelance_ledger.events.logger import EventLogger, create_correlation_id

__all__ = ["EventLogger", "create_correlation_id"]
