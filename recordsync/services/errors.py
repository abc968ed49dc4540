"""Error taxonomy for sync processing.

Conflicts are not errors; they are reported through ``SyncResult.status``.
Anything that is not a ``SyncError`` is treated as an unexpected failure by
the orchestrator and converted into an error result for that operation.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for per-operation failures with a user-facing message."""

    def __init__(self, message: str, server_id: Optional[str] = None):
        super().__init__(message)
        self.server_id = server_id


class PayloadValidationError(SyncError):
    """Raised when an operation payload fails schema validation."""

    def __init__(self, errors: list[str], server_id: Optional[str] = None):
        self.errors = errors
        super().__init__(f"Validation failed: {', '.join(errors)}", server_id)


class RecordNotFoundError(SyncError):
    """Raised when the target record of an update does not exist."""
    pass


class ConstraintViolationError(SyncError):
    """Raised when the store rejects a write on a uniqueness constraint."""
    pass


class BatchSizeError(Exception):
    """Raised before processing when a batch is empty or too large."""
    pass
