"""Resolution gateway: one provider call per entity, parsed into EntityResolution."""
from __future__ import annotations

import json
import re
import time
from typing import Any

from pydantic import ValidationError

from bioid import llm_client
from bioid.config import settings
from bioid.models.entities import (
    IDENTIFIER_KEYS,
    LINK_KEYS,
    ApiProvider,
    EntityResolution,
    OntologyType,
)
from bioid.services import logger as log_service
from bioid.services.prompt_store import render_prompt

INVALID_FORMAT_MESSAGE = "The model returned an invalid response format. Please try again."

_FENCED_JSON = re.compile(r"```json\n([\s\S]*?)\n```")
_FENCED_ANY = re.compile(r"```([\s\S]*?)```")
_QUOTA_MARKERS = ("quota", "rate limit", "limit exceeded", "insufficient_quota")


class ResolutionError(Exception):
    """A provider call failed. The message is safe to show to users."""

    def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


def clean_json_response(text: str) -> str:
    """Strip markdown code fences that models wrap around JSON."""
    match = _FENCED_JSON.search(text) or _FENCED_ANY.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_quota_error(exc: BaseException) -> bool:
    if _status_code(exc) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


def build_response_schema(ontology: OntologyType) -> dict[str, Any]:
    """JSON schema describing the EntityResolution payload."""
    string_list = {"type": "array", "items": {"type": "string"}}
    nullable = {"type": ["string", "null"]}
    properties: dict[str, Any] = {
        "corrected_name": {"type": "string", "description": "The spell-corrected name of the entity."},
        "entity_type": {
            "type": "string",
            "description": "The determined type: 'chemical', 'protein', 'gene', or 'unknown'.",
        },
        "synonyms": {**string_list, "description": "A list of common synonyms."},
        "resolved_name": {"type": "string", "description": "The most common or official name for the entity."},
        "validation_issues": {
            **string_list,
            "description": "List of issues if entity cannot be found or identified.",
        },
        "pathways": {**string_list, "description": "Biological pathways this entity is involved in."},
        "biological_function": {**string_list, "description": "Biological functions of this entity."},
        "cellular_component": {**string_list, "description": "Cellular components where this entity is found."},
        "identifiers": {
            "type": "object",
            "properties": {key: nullable for key in (*IDENTIFIER_KEYS, "Ontology ID", "Ontology Term")},
        },
        "links": {"type": "object", "properties": {key: nullable for key in LINK_KEYS}},
    }
    required = [
        "corrected_name",
        "entity_type",
        "synonyms",
        "resolved_name",
        "validation_issues",
        "pathways",
        "biological_function",
        "cellular_component",
        "identifiers",
        "links",
    ]
    if ontology != OntologyType.NONE:
        properties["ontology_id"] = {
            **nullable,
            "description": f"The primary ID from the {ontology} database (e.g., GO:0008150, CHEBI:16236).",
        }
        properties["ontology_term"] = {
            **nullable,
            "description": f"The corresponding term name from {ontology}.",
        }
        required += ["ontology_id", "ontology_term"]
    return {"type": "object", "properties": properties, "required": required}


def build_prompt(
    entity_name: str,
    type_hint: str,
    background_info: str,
    ontology: OntologyType,
    *,
    is_deep_search: bool,
    enable_ontology: bool,
) -> str:
    if ontology != OntologyType.NONE and enable_ontology:
        ontology_instruction = render_prompt("resolution.ontology_enabled", ontology=ontology.value)
    else:
        ontology_instruction = render_prompt("resolution.ontology_disabled")

    key = "resolution.deep_search" if is_deep_search else "resolution.initial"
    prompt = render_prompt(
        key,
        entity=entity_name,
        type_hint=type_hint,
        background=background_info or "None",
        ontology_instruction=ontology_instruction,
    )
    schema = json.dumps(build_response_schema(ontology), indent=2)
    return prompt + render_prompt("resolution.schema_suffix", schema=schema)


def parse_resolution(text: str) -> EntityResolution:
    try:
        data = json.loads(clean_json_response(text))
    except json.JSONDecodeError as exc:
        raise ResolutionError(INVALID_FORMAT_MESSAGE) from exc
    if not isinstance(data, dict):
        raise ResolutionError(INVALID_FORMAT_MESSAGE)
    try:
        return EntityResolution.model_validate(data)
    except ValidationError as exc:
        raise ResolutionError(INVALID_FORMAT_MESSAGE) from exc


async def _call_openai_compatible(
    spec: llm_client.ProviderSpec, api_key: str, model: str, prompt: str
) -> tuple[str, int, int]:
    active_client = llm_client.client(spec.name, api_key)
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": render_prompt("resolution.system_prompt")},
            {"role": "user", "content": prompt},
        ],
        "max_tokens": settings.llm_max_tokens,
    }
    if spec.json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = await active_client.chat.completions.create(**kwargs)
    text = response.choices[0].message.content or "{}"
    usage = getattr(response, "usage", None)
    return (
        text,
        getattr(usage, "prompt_tokens", 0) or 0,
        getattr(usage, "completion_tokens", 0) or 0,
    )


async def _call_anthropic(api_key: str, model: str, prompt: str) -> tuple[str, int, int]:
    active_client = llm_client.client(ApiProvider.ANTHROPIC, api_key)
    response = await active_client.messages.create(
        model=model,
        max_tokens=settings.llm_max_tokens,
        messages=[{"role": "user", "content": prompt + render_prompt("resolution.json_only_suffix")}],
    )
    text = "".join(
        getattr(block, "text", "") for block in response.content if getattr(block, "type", None) == "text"
    )
    usage = getattr(response, "usage", None)
    return (
        text,
        getattr(usage, "input_tokens", 0) or 0,
        getattr(usage, "output_tokens", 0) or 0,
    )


async def resolve_entity(
    provider: ApiProvider,
    api_key: str,
    entity_name: str,
    type_hint: str,
    background_info: str,
    ontology: OntologyType,
    is_deep_search: bool,
    enable_ontology: bool,
) -> EntityResolution:
    """Ask the provider to resolve one entity.

    Raises ResolutionError on missing credentials, provider failures
    (quota errors get a dedicated message) and unparseable responses.
    """
    spec = llm_client.PROVIDERS[provider]
    key = llm_client.resolve_api_key(provider, api_key)
    if not key:
        raise ResolutionError(f"{provider.value} API key missing.", provider=provider.value, status_code=400)

    model = llm_client.get_model(provider, enable_ontology=enable_ontology)
    prompt = build_prompt(
        entity_name,
        type_hint,
        background_info,
        ontology,
        is_deep_search=is_deep_search,
        enable_ontology=enable_ontology,
    )

    t0 = time.monotonic()
    try:
        if provider == ApiProvider.ANTHROPIC:
            text, input_tokens, output_tokens = await _call_anthropic(key, model, prompt)
        else:
            text, input_tokens, output_tokens = await _call_openai_compatible(spec, key, model, prompt)
    except Exception as exc:
        log_service.log_llm_call(
            provider=provider.value,
            model=model,
            entity=entity_name,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(exc),
        )
        if is_quota_error(exc):
            raise ResolutionError(
                f"AI Quota Exceeded: your {provider.value} API quota has been exhausted or you are "
                "being rate limited. Please check your billing or try again later.",
                provider=provider.value,
                status_code=429,
            ) from exc
        raise ResolutionError(
            f"{provider.value} API error: {exc}",
            provider=provider.value,
            status_code=_status_code(exc) or 502,
        ) from exc

    log_service.log_llm_call(
        provider=provider.value,
        model=model,
        entity=entity_name,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return parse_resolution(text)
