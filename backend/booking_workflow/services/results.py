# backend/booking_workflow/services/results.py
"""
Typed outcomes returned across the service boundary.

Search and submission failures travel as values (never raised into the
step layer). A superseded search is neither success nor failure: it is the
SUPERSEDED marker and callers simply drop it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

from ..core.errors import SearchError, SubmissionError, ValidationError
from ..models.options import Money, SearchMetadata

T = TypeVar("T")


@dataclass(frozen=True)
class SearchSuccess(Generic[T]):
    options: Tuple[T, ...]
    metadata: SearchMetadata = field(default_factory=SearchMetadata)
    ok = True


@dataclass(frozen=True)
class SearchFailure:
    error: SearchError
    ok = False


SearchOutcome = Union[SearchSuccess, SearchFailure]


class Superseded:
    _instance: Optional["Superseded"] = None

    def __new__(cls) -> "Superseded":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SUPERSEDED"

    def __bool__(self) -> bool:
        return False


SUPERSEDED = Superseded()


@dataclass(frozen=True)
class SubmissionSuccess:
    booking_id: str
    total: Money
    ok = True


@dataclass(frozen=True)
class SubmissionFailure:
    error: Union[SubmissionError, ValidationError]
    ok = False


SubmissionOutcome = Union[SubmissionSuccess, SubmissionFailure]


@dataclass(frozen=True)
class TransitionResult:
    step: str
    progress_percent: float
    moved: bool
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def blocked(self) -> bool:
        return bool(self.errors)


def outcome_to_dict(outcome: Union[SearchOutcome, Superseded, None]) -> Optional[Dict[str, Any]]:
    """JSON-ready view of a search outcome, as served by the HTTP layer."""
    if outcome is None:
        return None
    if isinstance(outcome, Superseded):
        return {"status": "superseded"}
    if isinstance(outcome, SearchFailure):
        return {"status": "error", "error": outcome.error.to_dict()}
    return {
        "status": "ok",
        "options": [o.model_dump(mode="json") for o in outcome.options],
        "metadata": outcome.metadata.model_dump(mode="json"),
    }
