"""Prompt catalog for the resolution gateway, stored as JSON templates."""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

REQUIRED_PROMPTS = (
    "system_prompt",
    "initial",
    "deep_search",
    "ontology_enabled",
    "ontology_disabled",
    "schema_suffix",
    "json_only_suffix",
)

# (path, mtime_ns) -> section; edits to the file are picked up without a restart.
_loaded: tuple[tuple[Path, int], dict[str, str]] | None = None


def load_resolution_prompts(path: Path | None = None) -> dict[str, str]:
    """Load the ``resolution`` section, failing fast if a template is missing."""
    global _loaded
    source = path or PROMPTS_PATH
    stamp = (source, source.stat().st_mtime_ns)
    if _loaded is not None and _loaded[0] == stamp:
        return _loaded[1]

    catalog = json.loads(source.read_text(encoding="utf-8"))
    section = catalog.get("resolution") if isinstance(catalog, dict) else None
    if not isinstance(section, dict):
        raise ValueError(f"{source.name} has no 'resolution' section.")

    missing = [name for name in REQUIRED_PROMPTS if not isinstance(section.get(name), str)]
    if missing:
        raise ValueError(f"{source.name} is missing resolution prompts: {', '.join(missing)}")

    _loaded = (stamp, section)
    return section


def get_prompt(key: str) -> str:
    """Raw template for a dotted key such as ``resolution.initial``."""
    group, _, name = key.partition(".")
    if group != "resolution" or name not in REQUIRED_PROMPTS:
        raise KeyError(f"Prompt key not found: {key}")
    return load_resolution_prompts()[name]


def render_prompt(key: str, **values: Any) -> str:
    template = Template(get_prompt(key))
    try:
        return template.substitute(**values)
    except KeyError as exc:
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc
