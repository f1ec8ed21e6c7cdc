from __future__ import annotations

import platform
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from bioid.config import settings
from bioid.llm_client import PROVIDERS

if TYPE_CHECKING:
    from bioid.resolution.orchestrator import ResolutionOrchestrator

_STARTED_AT = time.monotonic()


def mask_key(key: str | None) -> str:
    if not key:
        return "not_set"
    trimmed = key.strip()
    if len(trimmed) < 8:
        return "too_short"
    return f"{trimmed[:4]}...{trimmed[-4:]}"


def server_debug() -> dict[str, Any]:
    """Environment summary that never exposes full credentials."""
    keys = {spec.name.value: getattr(settings, spec.key_setting, "") for spec in PROVIDERS.values()}
    return {
        "status": "ok",
        "env": {
            f"HAS_{name.upper().replace(' ', '_')}_KEY": bool(value) for name, value in keys.items()
        },
        "key_previews": {name.upper().replace(" ", "_"): mask_key(value) for name, value in keys.items()},
        "python": platform.python_version(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


def build_debug_report(orchestrator: ResolutionOrchestrator) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "app_version": settings.app_version,
        "client_logs": list(orchestrator.logs),
        "server_debug": server_debug(),
        "current_config": {
            **orchestrator.context.public_dict(),
            "concurrency_limit": orchestrator.concurrency_limit,
            "window_delay_seconds": orchestrator.window_delay_seconds,
            "timeout_seconds": orchestrator.timeout_seconds,
        },
        "state": {
            "phase": orchestrator.phase.value,
            "progress": orchestrator.progress,
            "total_for_progress": orchestrator.total_for_progress,
            "metrics": orchestrator.metrics.to_dict(),
        },
    }
