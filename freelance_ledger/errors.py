"""Engine exceptions. Storage errors live in freelance_ledger.services.storage."""

from typing import Optional


class LedgerError(Exception):
    """Base exception for the recalculation engine."""
    pass


class UnsupportedCurrencyError(LedgerError, ValueError):
    """A currency code is not in the rate table."""

    def __init__(self, code: object):
        self.code = code
        super().__init__(f"Unsupported currency: {code!r}")


class PartnerShareError(LedgerError, ValueError):
    """Partner share percentages on a project would exceed 100%."""

    def __init__(self, total, message: Optional[str] = None):
        self.total = total
        super().__init__(
            message
            or f"Total share percentage cannot exceed 100%. Requested total: {total}%"
        )


class NoRemainingShareError(PartnerShareError):
    """There is no headroom left to add partners."""
    pass


class RecalculationError(LedgerError):
    """A project aggregate could not be recalculated or persisted."""

    def __init__(self, project_id: str, message: str):
        self.project_id = project_id
        super().__init__(f"Recalculation failed for project {project_id}: {message}")
