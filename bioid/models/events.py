from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    PHASE_CHANGED = "phase_changed"
    ENTITY_STARTED = "entity_started"
    ENTITY_RESOLVED = "entity_resolved"
    ENTITY_FAILED = "entity_failed"
    WINDOW_COMPLETED = "window_completed"
    ANALYSIS_COMPLETE = "analysis_complete"
    SNAPSHOT = "snapshot"
    LOG = "log"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"
