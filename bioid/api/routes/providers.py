from __future__ import annotations

from fastapi import APIRouter, HTTPException

from bioid.api.deps import get_available_providers
from bioid.models.entities import EntityResolution
from bioid.models.schemas import ProviderInfo, ProvidersResponse, ResolveRequest
from bioid.services import gateway

router = APIRouter(prefix="/api", tags=["providers"])


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers():
    """List resolution providers and their configured models."""
    providers = get_available_providers()
    return ProvidersResponse(providers=[ProviderInfo(**p) for p in providers])


@router.post("/resolve", response_model=EntityResolution)
async def resolve_single(request: ResolveRequest):
    """Resolve one entity directly through the gateway, without a batch."""
    entity = request.entity.strip()
    if not entity:
        raise HTTPException(status_code=400, detail="Entity name is empty.")
    try:
        return await gateway.resolve_entity(
            request.provider,
            request.api_key,
            entity,
            request.entity_type.value,
            request.background_info,
            request.ontology,
            request.is_deep_search,
            request.enable_ontology,
        )
    except gateway.ResolutionError as exc:
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc)) from exc
