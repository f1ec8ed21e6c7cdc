from __future__ import annotations

import json as _json
from uuid import UUID

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from sse_starlette.sse import EventSourceResponse

from bioid.api import deps
from bioid.api.deps import get_analysis
from bioid.models.entities import Phase
from bioid.models.events import EventType
from bioid.models.schemas import (
    AnalysisRequest,
    AnalysisStartResponse,
    CommandResponse,
    SnapshotResponse,
)
from bioid.resolution.orchestrator import InputError, PhaseError
from bioid.services import exporter, streaming
from bioid.services import logger as log_service
from bioid.services.debug_report import build_debug_report

router = APIRouter(prefix="/api/analyses", tags=["analyses"])


def _snapshot_response(analysis_id: UUID) -> SnapshotResponse:
    data = get_analysis(analysis_id).snapshot().to_dict()
    return SnapshotResponse(analysis_id=analysis_id, **data)


@router.post("", response_model=AnalysisStartResponse)
async def start_analysis(request: AnalysisRequest):
    """Create an analysis and start its initial phase in the background."""
    orchestrator = deps.orchestrator_factory()
    try:
        orchestrator.start(
            request.entity_names(),
            request.to_context(),
            file_name=request.file_name,
        )
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    analysis_id = deps.register_analysis(orchestrator)
    log_service.log_event(
        event_type="analysis_started",
        message="Analysis started",
        analysis_id=str(analysis_id),
        provider=request.provider.value,
        total=orchestrator.total_for_progress,
    )
    return AnalysisStartResponse(
        analysis_id=analysis_id,
        phase=orchestrator.phase,
        total=orchestrator.total_for_progress,
    )


@router.get("/{analysis_id}", response_model=SnapshotResponse)
async def get_snapshot(analysis_id: UUID):
    return _snapshot_response(analysis_id)


@router.get("/{analysis_id}/stream")
async def stream_analysis(analysis_id: UUID):
    """SSE endpoint streaming progress until the running phase ends."""
    orchestrator = get_analysis(analysis_id)

    async def event_generator():
        queue = orchestrator.subscribe()
        try:
            first = streaming.snapshot(orchestrator.snapshot().to_dict())
            yield {"event": first.event.value, "data": _json.dumps(first.data)}
            if not orchestrator.is_processing:
                return

            while True:
                event = await queue.get()
                yield {"event": event.event.value, "data": _json.dumps(event.data)}
                if event.event == EventType.PHASE_CHANGED and not Phase(event.data["phase"]).is_running:
                    break
        finally:
            orchestrator.unsubscribe(queue)

    return EventSourceResponse(event_generator())


@router.post("/{analysis_id}/stop", response_model=CommandResponse)
async def stop_analysis(analysis_id: UUID):
    orchestrator = get_analysis(analysis_id)
    accepted = orchestrator.stop()
    return CommandResponse(analysis_id=analysis_id, phase=orchestrator.phase, accepted=accepted)


@router.post("/{analysis_id}/deep-search", response_model=CommandResponse)
async def start_deep_search(analysis_id: UUID):
    orchestrator = get_analysis(analysis_id)
    try:
        orchestrator.start_deep_search()
    except PhaseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CommandResponse(analysis_id=analysis_id, phase=orchestrator.phase)


@router.post("/{analysis_id}/reset", response_model=CommandResponse)
async def reset_analysis(analysis_id: UUID):
    orchestrator = get_analysis(analysis_id)
    try:
        orchestrator.reset()
    except PhaseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return CommandResponse(analysis_id=analysis_id, phase=orchestrator.phase)


@router.get("/{analysis_id}/export")
async def export_csv(analysis_id: UUID):
    orchestrator = get_analysis(analysis_id)
    try:
        body = exporter.to_csv(orchestrator.results)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filename = exporter.export_filename()
    orchestrator.add_log(f"Manual export generated: {filename}")
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{analysis_id}/debug-report")
async def debug_report(analysis_id: UUID):
    orchestrator = get_analysis(analysis_id)
    orchestrator.add_log("Generating debug report...")
    return build_debug_report(orchestrator)


@router.delete("/{analysis_id}")
async def delete_analysis(analysis_id: UUID):
    deps.remove_analysis(analysis_id)
    log_service.log_event(
        event_type="analysis_deleted",
        message="Analysis removed",
        analysis_id=str(analysis_id),
    )
    return {"deleted": str(analysis_id)}
