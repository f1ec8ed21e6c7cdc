from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from bioid.models.entities import (
    ApiProvider,
    EntityType,
    OntologyType,
    Phase,
    ResultRecord,
)


class SessionState(BaseModel):
    """Snapshot written to and read from session storage verbatim."""

    model_config = ConfigDict(populate_by_name=True)

    entity_list: list[str] = Field(default_factory=list)
    entity_type: EntityType = EntityType.AUTO
    background_info: str = ""
    ontology: OntologyType = OntologyType.NONE
    enable_ontology: bool = False
    api_provider: ApiProvider = ApiProvider.GEMINI
    results: list[ResultRecord] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
    analysis_phase: Phase = Phase.IDLE
    file_name: str = ""
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
