"""
Error taxonomy for the booking workflow.

Search and submission failures are *returned* (wrapped in SearchFailure /
SubmissionFailure) by the services; only programming/UI-state defects such as
InvalidSelectionError are raised at the caller.
"""
from __future__ import annotations

from typing import Dict, Optional


class BookingWorkflowError(Exception):
    """Base class for every workflow error."""


class ValidationError(BookingWorkflowError):
    """
    The aggregate (or a subset of it) fails its schema.

    `errors` maps a dotted field path ("primary_traveler.email") to a message,
    ordered like the form so the first entry is the first invalid field.
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None) -> None:
        self.errors = dict(errors)
        super().__init__(message or self._summary())

    def _summary(self) -> str:
        if not self.errors:
            return "validation failed"
        path, msg = next(iter(self.errors.items()))
        more = len(self.errors) - 1
        suffix = f" (+{more} more)" if more else ""
        return f"{path}: {msg}{suffix}"

    @property
    def first_error_path(self) -> Optional[str]:
        return next(iter(self.errors), None)


class UnknownFieldError(ValidationError):
    """A patch addressed a path that the form schema does not declare."""

    def __init__(self, path: str) -> None:
        super().__init__({path: "unknown field"})
        self.path = path


class PatchTypeError(ValidationError):
    """A patch supplied a value of the wrong shape for its path."""

    def __init__(self, path: str, expected: str) -> None:
        super().__init__({path: f"expected {expected}"})
        self.path = path
        self.expected = expected


class SearchError(BookingWorkflowError):
    """
    Flight/hotel/geocode search failure. Recoverable by retry; never
    invalidates existing selections.
    """

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP = "http"
    VALIDATION = "validation"
    EMPTY = "empty"
    MALFORMED = "malformed"

    def __init__(
        self,
        kind: str,
        message: str,
        slot: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.slot = slot
        self.status_code = status_code

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "message": str(self),
            "slot": self.slot,
            "status_code": self.status_code,
        }


class InvalidSelectionError(BookingWorkflowError):
    """A selection would violate a Selection invariant."""


class MixedCurrencyError(InvalidSelectionError):
    """Prices entering the total do not share one currency."""


class SubmissionError(BookingWorkflowError):
    """The booking-creation boundary failed; the aggregate is kept for retry."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class StepTransitionError(BookingWorkflowError):
    """Jump to a step that has not been reached yet."""


class SessionClosedError(BookingWorkflowError):
    """Operation on a workflow session that was submitted or cancelled."""
