"""Event primitives for research run streams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .enums import EventKind


@dataclass(frozen=True, slots=True)
class RunEvent:
    """One discrete message of a run: a kind plus an optional payload."""

    kind: str
    payload: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.kind == EventKind.DONE.value

    @classmethod
    def from_message(cls, message: Any) -> Optional["RunEvent"]:
        """Build an event from a decoded ``{"event": ..., "data": ...}`` message.

        Returns ``None`` for anything that is not structurally a run event.
        """

        if not isinstance(message, dict):
            return None
        kind = message.get("event")
        if not isinstance(kind, str) or not kind:
            return None
        return cls(kind=kind, payload=message.get("data"))
