"""Domain dataclasses representing research runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .enums import RunStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


@dataclass(slots=True)
class RunRecord:
    """Summary of one run kept in the local registry."""

    id: str
    query: str
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    event_count: int = 0

    # Stored key names, shared with earlier registry writers.
    STORED_KEYS = {
        "id": "id",
        "query": "query",
        "status": "status",
        "started_at": "startedAt",
        "finished_at": "finishedAt",
        "event_count": "events",
    }

    @classmethod
    def start(cls, run_id: str, query: str) -> "RunRecord":
        return cls(id=run_id, query=query, status=RunStatus.RUNNING, started_at=utc_now())

    @classmethod
    def from_stored(cls, raw: Any) -> Optional["RunRecord"]:
        """Read a persisted entry, returning ``None`` when it is not a usable record."""

        if not isinstance(raw, dict):
            return None
        run_id = raw.get("id")
        started_at = parse_timestamp(raw.get("startedAt"))
        if not isinstance(run_id, str) or not run_id or started_at is None:
            return None
        try:
            status = RunStatus(raw.get("status", RunStatus.RUNNING.value))
        except ValueError:
            return None
        count = raw.get("events", 0)
        return cls(
            id=run_id,
            query=str(raw.get("query") or ""),
            status=status,
            started_at=started_at,
            finished_at=parse_timestamp(raw.get("finishedAt")),
            event_count=count if isinstance(count, int) and count >= 0 else 0,
        )

    def to_stored(self) -> Dict[str, Any]:
        stored: Dict[str, Any] = {
            "id": self.id,
            "query": self.query,
            "status": self.status.value,
            "startedAt": format_timestamp(self.started_at),
            "events": self.event_count,
        }
        if self.finished_at is not None:
            stored["finishedAt"] = format_timestamp(self.finished_at)
        return stored

    @classmethod
    def stored_patch(cls, **fields: Any) -> Dict[str, Any]:
        """Translate a field-name patch into stored key names and values."""

        patch: Dict[str, Any] = {}
        for name, value in fields.items():
            if name not in cls.STORED_KEYS or name == "id":
                raise ValueError(f"Unknown run record field: {name}")
            if isinstance(value, RunStatus):
                value = value.value
            elif isinstance(value, datetime):
                value = format_timestamp(value)
            patch[cls.STORED_KEYS[name]] = value
        return patch


@dataclass(slots=True)
class ServerRun:
    """Run summary as reported by the backend's own history endpoint."""

    id: str
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["ServerRun"]:
        if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
            return None
        return cls(
            id=raw["id"],
            status=str(raw.get("status") or ""),
            created_at=parse_timestamp(raw.get("created_at")),
            completed_at=parse_timestamp(raw.get("completed_at")),
        )
