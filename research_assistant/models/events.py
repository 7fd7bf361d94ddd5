from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    STATUS = "status"
    RESEARCH = "research"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.RESEARCH, EventType.ERROR})


@dataclass
class StreamEvent:
    event: EventType
    data: Any = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def to_dict(self) -> dict[str, Any]:
        return {self.event.value: self.data}

    def format(self) -> str:
        return json.dumps(self.to_dict()) + "\n"
