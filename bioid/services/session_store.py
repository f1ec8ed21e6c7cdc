"""File-backed session snapshots, one JSON document per session id."""
from __future__ import annotations

import re
from pathlib import Path

from pydantic import ValidationError

from bioid.config import settings
from bioid.models.session import SessionState
from bioid.services import logger as log_service

SESSION_VERSION = 1
_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class SessionStoreError(Exception):
    """A stored session exists but cannot be read back."""


def session_path(session_id: str) -> Path:
    safe_id = _SAFE_ID.sub("_", session_id.strip()) or "default"
    return Path(settings.session_dir) / f"{safe_id}.v{SESSION_VERSION}.json"


def save(session_id: str, state: SessionState) -> Path:
    path = session_path(session_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    log_service.log_event(
        event_type="session_saved",
        message="Session state persisted",
        session_id=session_id,
        results=len(state.results),
    )
    return path


def load(session_id: str) -> SessionState | None:
    path = session_path(session_id)
    if not path.exists():
        return None
    try:
        return SessionState.model_validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, ValueError) as exc:
        raise SessionStoreError(f"Restoration failed. Data might be corrupted: {exc}") from exc


def delete(session_id: str) -> bool:
    path = session_path(session_id)
    if not path.exists():
        return False
    path.unlink()
    return True
