"""Exception hierarchy for the purchase timeline core."""
from typing import Any, Dict, List, Optional


class TimelineError(Exception):
    """Base exception for all timeline core errors."""


class NotFoundOrUnauthorizedError(TimelineError):
    """
    Raised when an id does not resolve to a record owned by the caller.

    Missing and foreign records are reported identically so the existence of
    other users' data never leaks.
    """

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found or access denied")


class ValidationFailureError(TimelineError):
    """Raised when input is malformed. Always raised before any write."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)


class ConflictError(TimelineError):
    """Raised when the request conflicts with existing state."""


class TransactionTimeoutError(TimelineError):
    """
    Raised when the store aborts a transaction on a timeout or lock wait.

    The transaction was rolled back in full; callers may retry.
    """

    retryable = True
