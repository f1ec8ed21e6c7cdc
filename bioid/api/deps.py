from __future__ import annotations

from typing import Callable
from uuid import UUID, uuid4

from fastapi import HTTPException

from bioid.llm_client import PROVIDERS, get_model, has_credential, requires_credential
from bioid.resolution.orchestrator import ResolutionOrchestrator

# In-process registry; analyses live as long as the server process.
_analyses: dict[UUID, ResolutionOrchestrator] = {}

orchestrator_factory: Callable[[], ResolutionOrchestrator] = ResolutionOrchestrator


def register_analysis(
    orchestrator: ResolutionOrchestrator, analysis_id: UUID | None = None
) -> UUID:
    analysis_id = analysis_id or uuid4()
    _analyses[analysis_id] = orchestrator
    return analysis_id


def create_analysis(analysis_id: UUID | None = None) -> tuple[UUID, ResolutionOrchestrator]:
    orchestrator = orchestrator_factory()
    return register_analysis(orchestrator, analysis_id), orchestrator


def get_analysis(analysis_id: UUID) -> ResolutionOrchestrator:
    orchestrator = _analyses.get(analysis_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return orchestrator


def remove_analysis(analysis_id: UUID) -> ResolutionOrchestrator:
    """Drop a finished analysis from the registry."""
    orchestrator = get_analysis(analysis_id)
    if orchestrator.is_processing:
        raise HTTPException(status_code=409, detail="Analysis is still running; stop it first.")
    return _analyses.pop(analysis_id)


def clear_analyses() -> None:
    _analyses.clear()


def get_available_providers() -> list[dict[str, object]]:
    """Return the providers the gateway can call and whether a key is configured."""
    return [
        {
            "id": provider.value,
            "model": get_model(provider),
            "requires_credential": requires_credential(provider),
            "configured": has_credential(provider),
        }
        for provider in PROVIDERS
    ]


def stop_all() -> int:
    """Signal every running analysis to stop at its next window boundary."""
    return sum(1 for orchestrator in _analyses.values() if orchestrator.stop())
