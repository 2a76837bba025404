"""
Validation errors raised by the ledger core.
All derive from ValueError so callers that already catch ValueError keep working.
"""


class LedgerError(ValueError):
    """Base class for ledger validation failures."""

    code = "ledger_error"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidDuration(LedgerError):
    """Negative or unreadable hours."""

    code = "invalid_duration"


class InvalidHierarchy(LedgerError):
    """Stage or task does not belong to the chosen project or stage."""

    code = "invalid_hierarchy"


class MissingTotal(LedgerError):
    """The day has no clocked total, so it cannot be saved."""

    code = "missing_total"


class NotFound(LedgerError):
    """An allocation id that is not in the ledger."""

    code = "not_found"


class DuplicateAllocation(LedgerError):
    """An allocation id that is already in the ledger."""

    code = "duplicate_allocation"
