"""Durable local registry of research run summaries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from research_client.core.errors import PersistenceError
from research_client.models.run import RunRecord
from research_client.services.storage import KeyValueStorage
from research_client.utils.json_parser import decode_json

logger = logging.getLogger(__name__)

DEFAULT_KEY = "ai_research_runs"


@dataclass(slots=True)
class ReadOutcome:
    entries: List[Any] = field(default_factory=list)
    error: Optional[PersistenceError] = None


@dataclass(slots=True)
class WriteOutcome:
    error: Optional[PersistenceError] = None


class RunStore:
    """Best-effort registry of RunRecords persisted as one JSON list.

    Every operation reads and rewrites the whole collection. Failures of the
    backing storage never propagate: reads degrade to an empty history and
    writes are dropped. There is no coordination between concurrent writers,
    the last write wins.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = DEFAULT_KEY,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._on_error = on_error

    def list(self) -> List[RunRecord]:
        """Return all readable records, most recently started first."""

        outcome = self._read()
        records = [record for record in map(RunRecord.from_stored, outcome.entries) if record]
        return sorted(records, key=lambda record: record.started_at, reverse=True)

    def get(self, run_id: str) -> Optional[RunRecord]:
        for record in self.list():
            if record.id == run_id:
                return record
        return None

    def add(self, record: RunRecord) -> None:
        outcome = self._read()
        entries = outcome.entries
        entries.insert(0, record.to_stored())
        self._write(entries)

    def update(self, run_id: str, **fields: Any) -> None:
        """Shallow-merge ``fields`` into the record with ``run_id``, if it exists."""

        patch = RunRecord.stored_patch(**fields)
        outcome = self._read()
        entries = outcome.entries
        for index, entry in enumerate(entries):
            if isinstance(entry, dict) and entry.get("id") == run_id:
                entries[index] = {**entry, **patch}
                self._write(entries)
                return
        logger.debug("Run %s not in registry, update skipped", run_id)

    def _read(self) -> ReadOutcome:
        try:
            raw = self._storage.get(self._key)
        except Exception as exc:  # noqa: BLE001 - any storage failure means empty history
            return ReadOutcome(error=self._absorb("read", exc))
        if not raw:
            return ReadOutcome()
        data = decode_json(raw)
        if not isinstance(data, list):
            return ReadOutcome(error=self._absorb("read", ValueError("registry is not a JSON list")))
        return ReadOutcome(entries=data)

    def _write(self, entries: List[Any]) -> WriteOutcome:
        try:
            self._storage.set(self._key, json.dumps(entries, ensure_ascii=False))
        except Exception as exc:  # noqa: BLE001 - writes are best effort
            return WriteOutcome(error=self._absorb("write", exc))
        return WriteOutcome()

    def _absorb(self, operation: str, exc: Exception) -> PersistenceError:
        error = PersistenceError(f"Run registry {operation} failed: {exc}")
        error.__cause__ = exc
        logger.warning("%s", error)
        if self._on_error is not None:
            self._on_error(error)
        return error
