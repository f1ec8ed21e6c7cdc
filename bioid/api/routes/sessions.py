from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException

from bioid.api import deps
from bioid.models.schemas import RestoreRequest, SessionSavedResponse, SnapshotResponse
from bioid.resolution.orchestrator import PhaseError
from bioid.services import session_store

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("/{analysis_id}", response_model=SessionSavedResponse)
async def save_session(analysis_id: UUID):
    """Persist the analysis state so it can be restored later."""
    orchestrator = deps.get_analysis(analysis_id)
    state = orchestrator.to_session_state()
    session_store.save(str(analysis_id), state)
    orchestrator.add_log("Session state persisted to storage.")
    return SessionSavedResponse(session_id=analysis_id, results=len(state.results))


@router.post("/{analysis_id}/restore", response_model=SnapshotResponse)
async def restore_session(analysis_id: UUID, request: RestoreRequest | None = None):
    """Load a saved session into a (possibly new) in-process analysis."""
    try:
        state = session_store.load(str(analysis_id))
    except session_store.SessionStoreError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if state is None:
        raise HTTPException(status_code=404, detail="No existing session found")

    try:
        orchestrator = deps.get_analysis(analysis_id)
    except HTTPException:
        _, orchestrator = deps.create_analysis(analysis_id)

    try:
        orchestrator.restore(state, api_key=request.api_key if request else "")
    except PhaseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    data = orchestrator.snapshot().to_dict()
    return SnapshotResponse(analysis_id=analysis_id, **data)


@router.delete("/{analysis_id}")
async def delete_session(analysis_id: UUID):
    if not session_store.delete(str(analysis_id)):
        raise HTTPException(status_code=404, detail="No existing session found")
    return {"deleted": str(analysis_id)}
