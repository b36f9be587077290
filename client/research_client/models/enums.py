"""Enumerations shared across the client."""

from __future__ import annotations

from enum import Enum


class RunStatus(str, Enum):
    """Status of a run as recorded in the local registry."""

    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.DONE, SessionStatus.ERROR)


class StageStatus(str, Enum):
    COMPLETED = "Completed"
    IN_PROGRESS = "InProgress"
    NOT_STARTED = "Not Started"


class EventKind(str, Enum):
    """Event kinds the client knows about. Other kinds pass through untouched."""

    SEARCH = "search"
    SUMMARY = "summary"
    VALIDATED = "validated"
    RECOMMENDATIONS = "recommendations"
    DONE = "done"
