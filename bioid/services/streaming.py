from __future__ import annotations

from typing import Any, Iterable

from bioid.models.entities import Phase, ResultRecord
from bioid.models.events import EventType, SSEEvent


def phase_changed(phase: Phase, previous: Phase) -> SSEEvent:
    return SSEEvent(
        event=EventType.PHASE_CHANGED,
        data={"phase": phase.value, "previous": previous.value},
    )


def entity_started(entity: str, *, position: int, total: int, deep_search: bool) -> SSEEvent:
    return SSEEvent(
        event=EventType.ENTITY_STARTED,
        data={
            "entity": entity,
            "position": position,
            "total": total,
            "deep_search": deep_search,
        },
    )


def entity_resolved(entity: str, resolved_name: str, elapsed_seconds: float) -> SSEEvent:
    return SSEEvent(
        event=EventType.ENTITY_RESOLVED,
        data={
            "entity": entity,
            "resolved_name": resolved_name,
            "elapsed_seconds": elapsed_seconds,
        },
    )


def entity_failed(entity: str, error: str, elapsed_seconds: float) -> SSEEvent:
    return SSEEvent(
        event=EventType.ENTITY_FAILED,
        data={"entity": entity, "error": error, "elapsed_seconds": elapsed_seconds},
    )


def window_completed(
    window_index: int,
    *,
    progress: int,
    total: int,
    results: Iterable[ResultRecord],
) -> SSEEvent:
    return SSEEvent(
        event=EventType.WINDOW_COMPLETED,
        data={
            "window": window_index,
            "progress": progress,
            "total": total,
            "results": [record.to_row() for record in results],
        },
    )


def analysis_complete(phase: Phase, metrics: dict[str, Any], *, cancelled: bool) -> SSEEvent:
    return SSEEvent(
        event=EventType.ANALYSIS_COMPLETE,
        data={"phase": phase.value, "metrics": metrics, "cancelled": cancelled},
    )


def log(line: str) -> SSEEvent:
    return SSEEvent(event=EventType.LOG, data={"line": line})


def error(message: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.ERROR, data={"message": message, **kwargs})


def snapshot(data: dict[str, Any]) -> SSEEvent:
    return SSEEvent(event=EventType.SNAPSHOT, data=data)
