from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from bioid.models.entities import (
    ApiProvider,
    EntityType,
    OntologyType,
    Phase,
    ResolutionContext,
    parse_entity_text,
)


# --- Requests ---


class ContextFields(BaseModel):
    provider: ApiProvider = ApiProvider.GEMINI
    api_key: str = ""
    entity_type: EntityType = EntityType.AUTO
    background_info: str = ""
    ontology: OntologyType = OntologyType.NONE
    enable_ontology: bool = False

    def to_context(self) -> ResolutionContext:
        return ResolutionContext(
            provider=self.provider,
            api_key=self.api_key,
            entity_type=self.entity_type,
            background_info=self.background_info,
            ontology=self.ontology,
            enable_ontology=self.enable_ontology,
        )


class AnalysisRequest(ContextFields):
    entities: list[str] = Field(default_factory=list)
    text: str = ""  # newline separated alternative to ``entities``
    file_name: str = ""

    def entity_names(self) -> list[str]:
        names = [name.strip() for name in self.entities if name.strip()]
        return names + parse_entity_text(self.text)


class ResolveRequest(ContextFields):
    entity: str
    is_deep_search: bool = False


class RestoreRequest(BaseModel):
    api_key: str = ""


# --- Responses ---


class AnalysisStartResponse(BaseModel):
    analysis_id: UUID
    phase: Phase
    total: int


class CommandResponse(BaseModel):
    analysis_id: UUID
    phase: Phase
    accepted: bool = True


class SnapshotResponse(BaseModel):
    analysis_id: UUID
    phase: Phase
    progress: int
    total_for_progress: int
    metrics: dict[str, Any]
    results: list[dict[str, Any]]


class SessionSavedResponse(BaseModel):
    session_id: UUID
    results: int


class ProviderInfo(BaseModel):
    id: str
    model: str
    requires_credential: bool
    configured: bool


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
