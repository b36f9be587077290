"""HTTP client for the research backend's /api routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from research_client.core.errors import ExportError, HistoryError, SubmissionError
from research_client.core.settings import Settings, get_settings
from research_client.models.events import RunEvent
from research_client.models.run import ServerRun

logger = logging.getLogger(__name__)


class ResearchApiClient:
    """Thin async client; one request per call, no retries.

    ``request_timeout`` applies to history and export calls. Run submission
    waits for the backend indefinitely.

    Every call takes the bearer token explicitly so callers decide when a
    credential is acquired.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self._settings.api_base,
            headers={"Content-Type": "application/json"},
            timeout=self._settings.request_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ResearchApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @staticmethod
    def _auth(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def start_research(self, query: str, token: str) -> str:
        """Submit a new run and return the identifier assigned by the backend."""

        try:
            response = await self._client.post(
                "/api/research",
                json={"query": query},
                headers=self._auth(token),
                timeout=None,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise SubmissionError(
                f"Research request rejected with status {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise SubmissionError("Research request failed") from exc
        except ValueError as exc:
            raise SubmissionError("Research response was not JSON") from exc

        run_id = data.get("run_id") if isinstance(data, dict) else None
        if not isinstance(run_id, str) or not run_id:
            raise SubmissionError("Research response carried no run_id")
        logger.info("Backend accepted run %s", run_id)
        return run_id

    async def list_runs(self, token: str) -> List[ServerRun]:
        data = await self._get_json("/api/runs", token)
        raw_runs = data.get("runs") if isinstance(data, dict) else None
        runs = []
        for raw in raw_runs if isinstance(raw_runs, list) else []:
            run = ServerRun.from_payload(raw)
            if run is not None:
                runs.append(run)
        return runs

    async def get_run_events(self, run_id: str, token: str) -> List[RunEvent]:
        """Fetch the stored event log of a past run, dropping malformed entries."""

        data = await self._get_json(f"/api/runs/{run_id}/events", token)
        raw_events = data.get("events") if isinstance(data, dict) else None
        events = []
        for raw in raw_events if isinstance(raw_events, list) else []:
            event = RunEvent.from_message(raw)
            if event is not None:
                events.append(event)
        return events

    async def export_pdf(
        self, title: str, sections: Sequence[Dict[str, str]], token: str
    ) -> bytes:
        try:
            response = await self._client.post(
                "/api/export/pdf",
                json={"title": title, "sections": list(sections)},
                headers=self._auth(token),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ExportError(
                f"PDF export rejected with status {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise ExportError("PDF export request failed") from exc
        return response.content

    async def _get_json(self, path: str, token: str) -> Any:
        try:
            response = await self._client.get(path, headers=self._auth(token))
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise HistoryError(f"GET {path} failed with status {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            raise HistoryError(f"GET {path} failed") from exc
        except ValueError as exc:
            raise HistoryError(f"GET {path} returned invalid JSON") from exc
