"""Exceptions raised by the audit pipeline.

Only ConstructionError ever reaches code that emits audit events; it
signals a malformed entry, which is a bug at the call site. The other
errors are raised and handled inside the pipeline.
"""


class AuditError(Exception):
    """Base exception for audit pipeline errors."""

    pass


class ConstructionError(AuditError):
    """Raised when an entry cannot round-trip through JSON."""

    pass


class PersistenceFailure(AuditError):
    """Raised when a batch write fails and the transaction is rolled back."""

    def __init__(self, batch_size: int, cause: BaseException) -> None:
        super().__init__(f"Failed to persist batch of {batch_size} entries: {cause}")
        self.batch_size = batch_size
        self.cause = cause


class StoreUnavailable(AuditError):
    """Raised when no audit store has been configured."""

    pass


class ReportedError(AuditError):
    """An error that happened in another process and arrived with an event."""

    def __init__(self, message: str, code: str | None = None, stack: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.stack = stack
