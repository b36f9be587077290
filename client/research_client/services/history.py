"""Past runs: the local registry next to the backend's own run list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from research_client.api.auth import CredentialProvider, acquire_token
from research_client.api.client import ResearchApiClient
from research_client.core.errors import CredentialError, HistoryError
from research_client.core.settings import Settings, get_settings
from research_client.models.report import ReportDocument
from research_client.models.run import RunRecord, ServerRun
from research_client.services import report_builder
from research_client.services.run_store import RunStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HistoryOverview:
    """Both sources as they are; identifiers are not matched across them."""

    local: List[RunRecord]
    remote: Optional[List[ServerRun]] = None
    remote_error: Optional[str] = None


class RunHistory:
    def __init__(
        self,
        store: RunStore,
        api: ResearchApiClient,
        settings: Optional[Settings] = None,
    ) -> None:
        self._store = store
        self._api = api
        self._settings = settings or get_settings()

    def local(self) -> List[RunRecord]:
        return self._store.list()

    async def remote(self, credentials: CredentialProvider) -> List[ServerRun]:
        token = await acquire_token(credentials, self._settings.auth_audience)
        return await self._api.list_runs(token)

    async def overview(self, credentials: CredentialProvider) -> HistoryOverview:
        overview = HistoryOverview(local=self.local())
        try:
            overview.remote = await self.remote(credentials)
        except (CredentialError, HistoryError) as exc:
            logger.warning("Server run history unavailable: %s", exc)
            overview.remote_error = str(exc)
        return overview

    async def rebuild_report(
        self,
        run_id: str,
        credentials: CredentialProvider,
        topic: Optional[str] = None,
    ) -> ReportDocument:
        """Fetch a past run's events and build its report."""

        token = await acquire_token(credentials, self._settings.auth_audience)
        log = await self._api.get_run_events(run_id, token)
        if topic is None:
            record = self._store.get(run_id)
            topic = record.query if record and record.query else run_id
        return report_builder.build(topic, log)
