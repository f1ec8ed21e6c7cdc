from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityType(StrEnum):
    AUTO = "Auto"
    CHEMICAL = "Chemical"
    PROTEIN = "Protein"
    GENE = "Gene"


class OntologyType(StrEnum):
    NONE = "None"
    GENE_ONTOLOGY = "Gene Ontology"
    CHEBI = "ChEBI"
    MESH = "MeSH"


class ApiProvider(StrEnum):
    GEMINI = "Gemini"
    OPENAI = "OpenAI"
    GROQ = "Groq"
    ANTHROPIC = "Anthropic"
    COHERE = "Cohere"
    MISTRAL = "Mistral AI"
    PERPLEXITY = "Perplexity"
    TOGETHER = "Together AI"
    OPENROUTER = "OpenRouter"


class Phase(StrEnum):
    IDLE = "idle"
    RUNNING_INITIAL = "running_initial"
    DEEP_SEARCH_PENDING = "deep_search_pending"
    RUNNING_DEEP_SEARCH = "running_deep_search"
    COMPLETE = "complete"

    @property
    def is_running(self) -> bool:
        return self in (Phase.RUNNING_INITIAL, Phase.RUNNING_DEEP_SEARCH)


IDENTIFIER_KEYS = (
    "PubChem CID",
    "ChEMBL ID",
    "KEGG",
    "UniProt",
    "RefSeq",
    "Ensembl",
    "InterPro",
    "InChIKey",
    "SMILES",
)

LINK_KEYS = (
    "PubChem Link",
    "ChEMBL Link",
    "KEGG Link",
    "UniProt Link",
    "RefSeq Link",
    "Ensembl Link",
    "InterPro Link",
)


def parse_entity_text(text: str) -> list[str]:
    """Split pasted or uploaded text into entity names, one per non-blank line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class EntityResolution(BaseModel):
    """Structured payload returned by the resolution model for one entity."""

    model_config = ConfigDict(extra="ignore")

    corrected_name: str = ""
    entity_type: str = "unknown"
    synonyms: list[str] = Field(default_factory=list)
    resolved_name: str = ""
    validation_issues: list[str] = Field(default_factory=list)
    pathways: list[str] = Field(default_factory=list)
    biological_function: list[str] = Field(default_factory=list)
    cellular_component: list[str] = Field(default_factory=list)
    ontology_id: str | None = None
    ontology_term: str | None = None
    identifiers: dict[str, str | None] = Field(default_factory=dict)
    links: dict[str, str | None] = Field(default_factory=dict)

    @field_validator(
        "synonyms",
        "validation_issues",
        "pathways",
        "biological_function",
        "cellular_component",
        mode="before",
    )
    @classmethod
    def _coerce_list(cls, value: Any) -> list[str]:
        # Models sometimes answer with a bare string or null instead of a list.
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if item is not None and str(item).strip()]
        return value

    @field_validator("identifiers", "links", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Any) -> dict[str, str | None]:
        if not isinstance(value, dict):
            return {}
        cleaned: dict[str, str | None] = {}
        for key, item in value.items():
            text = str(item).strip() if item is not None else ""
            cleaned[str(key)] = text or None
        return cleaned

    @field_validator("corrected_name", "resolved_name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("entity_type", mode="before")
    @classmethod
    def _coerce_entity_type(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text or "unknown"


@dataclass(slots=True, frozen=True)
class ResolutionContext:
    """Hints passed through unchanged to the resolution gateway."""

    provider: ApiProvider = ApiProvider.GEMINI
    api_key: str = ""
    entity_type: EntityType = EntityType.AUTO
    background_info: str = ""
    ontology: OntologyType = OntologyType.NONE
    enable_ontology: bool = False

    def public_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("api_key")
        return {key: str(value) if isinstance(value, StrEnum) else value for key, value in data.items()}


@dataclass(slots=True, frozen=True)
class ResolutionOutcome:
    input_entity: str
    success: bool
    payload: EntityResolution | None = None
    error_message: str = ""
    elapsed_seconds: float = 0.0


class ResultRecord(BaseModel):
    """One exported row. Aliases are the CSV column headers."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    input_entity: str = Field(alias="Input Entity")
    refined_entity_name: str = Field("", alias="Refined Entity Name")
    entity_type: str = Field("", alias="Entity Type")
    resolved_name: str = Field("", alias="Resolved Name")
    synonyms: str = Field("", alias="Synonyms")
    validation_issues: str = Field("", alias="Validation Issues")
    pathways: str | None = Field(None, alias="Pathways")
    function: str | None = Field(None, alias="Function")
    cellular_component: str | None = Field(None, alias="Cellular Component")
    ontology_id: str | None = Field(None, alias="Ontology ID")
    ontology_term: str | None = Field(None, alias="Ontology Term")
    pubchem_cid: str | None = Field(None, alias="PubChem CID")
    chembl_id: str | None = Field(None, alias="ChEMBL ID")
    kegg: str | None = Field(None, alias="KEGG")
    uniprot: str | None = Field(None, alias="UniProt")
    refseq: str | None = Field(None, alias="RefSeq")
    ensembl: str | None = Field(None, alias="Ensembl")
    interpro: str | None = Field(None, alias="InterPro")
    inchikey: str | None = Field(None, alias="InChIKey")
    smiles: str | None = Field(None, alias="SMILES")
    pubchem_link: str | None = Field(None, alias="PubChem Link")
    chembl_link: str | None = Field(None, alias="ChEMBL Link")
    kegg_link: str | None = Field(None, alias="KEGG Link")
    uniprot_link: str | None = Field(None, alias="UniProt Link")
    refseq_link: str | None = Field(None, alias="RefSeq Link")
    ensembl_link: str | None = Field(None, alias="Ensembl Link")
    interpro_link: str | None = Field(None, alias="InterPro Link")
    processing_time: float | None = Field(None, alias="Processing Time (s)")

    @property
    def needs_deep_search(self) -> bool:
        return bool(self.validation_issues)

    @property
    def has_ontology(self) -> bool:
        return bool(self.ontology_id or self.ontology_term)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
