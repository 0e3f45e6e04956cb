# backend/booking_workflow/routers/workflow.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import SubmissionError, ValidationError
from ..models.selection import SelectionKind
from ..services.registry import SessionRegistry, registry
from ..services.results import SubmissionFailure, TransitionResult, outcome_to_dict
from ..services.session import WorkflowSession
from ..services.sequencer import WorkflowStep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


# ====== I/O models ======

class GoToIn(BaseModel):
    step: WorkflowStep


class SelectIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: SelectionKind
    option_id: str = Field(..., min_length=1, alias="optionId")


# ====== helpers ======

def get_registry() -> SessionRegistry:
    return registry


def get_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)) -> WorkflowSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown workflow session '{session_id}'")
    return session


def _transition(session: WorkflowSession, result: TransitionResult) -> Dict[str, Any]:
    if result.blocked:
        raise ValidationError(result.errors)
    return {
        "step": result.step,
        "progress_percent": result.progress_percent,
        "moved": result.moved,
        "session": session.snapshot(),
    }


# ====== routes ======

@router.post("", status_code=201)
async def create_workflow(
    initial: Optional[Dict[str, Any]] = Body(None),
    sessions: SessionRegistry = Depends(get_registry),
):
    """Opens a session on the client-info step, optionally pre-filling the form."""
    session = sessions.create()
    if initial:
        try:
            session.patch(initial)
        except ValidationError:
            sessions.discard(session.id)
            raise
    return session.snapshot()


@router.get("/{session_id}")
async def get_workflow(session: WorkflowSession = Depends(get_session)):
    return session.snapshot()


@router.patch("/{session_id}/form")
async def patch_form(
    partial: Dict[str, Any] = Body(...),
    session: WorkflowSession = Depends(get_session),
):
    session.patch(partial)
    return session.snapshot()


@router.post("/{session_id}/advance")
async def advance(session: WorkflowSession = Depends(get_session)):
    return _transition(session, session.advance())


@router.post("/{session_id}/retreat")
async def retreat(session: WorkflowSession = Depends(get_session)):
    return _transition(session, session.retreat())


@router.post("/{session_id}/go-to")
async def go_to(payload: GoToIn, session: WorkflowSession = Depends(get_session)):
    return _transition(session, session.go_to(payload.step))


@router.post("/{session_id}/search/flights")
async def search_flights(
    params: Optional[Dict[str, Any]] = Body(None),
    session: WorkflowSession = Depends(get_session),
):
    """Body is optional: without it the criteria come from the form."""
    return outcome_to_dict(await session.search_flights(params))


@router.post("/{session_id}/search/hotels")
async def search_hotels(
    params: Optional[Dict[str, Any]] = Body(None),
    session: WorkflowSession = Depends(get_session),
):
    return outcome_to_dict(await session.search_hotels(params))


@router.post("/{session_id}/selections")
async def select(payload: SelectIn, session: WorkflowSession = Depends(get_session)):
    session.select(payload.kind, payload.option_id)
    return session.snapshot()


@router.delete("/{session_id}/selections/{kind}")
async def clear_selection(kind: SelectionKind, session: WorkflowSession = Depends(get_session)):
    session.clear(kind)
    return session.snapshot()


@router.post("/{session_id}/traveler-flights")
async def save_traveler_flights(session: WorkflowSession = Depends(get_session)):
    """Files the current flight pick for the current traveler; after the last one, moves to hotels."""
    return _transition(session, session.save_traveler_flights())


@router.get("/{session_id}/geocode")
async def geocode(
    q: str = Query(..., description="City or hotel name"),
    session: WorkflowSession = Depends(get_session),
):
    return outcome_to_dict(await session.lookup(q))


@router.post("/{session_id}/submit")
async def submit(session: WorkflowSession = Depends(get_session)):
    outcome = await session.submit()
    if isinstance(outcome, SubmissionFailure):
        if isinstance(outcome.error, ValidationError):
            raise outcome.error
        err: SubmissionError = outcome.error
        return {
            "status": "error",
            "error": {"message": str(err), "status_code": err.status_code, "retryable": err.retryable},
            "session": session.snapshot(),
        }
    return {
        "status": "ok",
        "booking_id": outcome.booking_id,
        "total": {"amount": str(outcome.total.amount), "currency": outcome.total.currency},
    }


@router.delete("/{session_id}", status_code=204)
async def cancel_workflow(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    if not sessions.discard(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown workflow session '{session_id}'")
