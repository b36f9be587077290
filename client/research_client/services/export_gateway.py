"""Turns report documents into files the user can keep."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import anyio

from research_client.api.auth import CredentialProvider, acquire_token
from research_client.api.client import ResearchApiClient
from research_client.core.settings import Settings, get_settings
from research_client.models.report import ExportArtifact, ReportDocument
from research_client.services import report_builder

logger = logging.getLogger(__name__)

MARKDOWN_FILENAME = "research_report.md"
PDF_FILENAME = "research_report.pdf"


def _resolve(destination: Optional[Path], default_name: str) -> Path:
    if destination is None:
        return Path(default_name)
    destination = Path(destination)
    if destination.is_dir():
        return destination / default_name
    return destination


class ExportGateway:
    def __init__(self, api: ResearchApiClient, settings: Optional[Settings] = None) -> None:
        self._api = api
        self._settings = settings or get_settings()

    async def export_portable(
        self, document: ReportDocument, destination: Optional[Path] = None
    ) -> ExportArtifact:
        """Write the Markdown rendering locally. Only local I/O can fail."""

        path = _resolve(destination, MARKDOWN_FILENAME)
        data = report_builder.to_markdown(document).encode("utf-8")
        await anyio.to_thread.run_sync(path.write_bytes, data)
        logger.info("Wrote %s (%d bytes)", path, len(data))
        return ExportArtifact(path=path, media_type="text/markdown", size=len(data))

    async def export_rendered(
        self,
        document: ReportDocument,
        credentials: CredentialProvider,
        destination: Optional[Path] = None,
    ) -> ExportArtifact:
        """Render through the backend PDF service; one request, no retry.

        Raises CredentialError or ExportError; nothing is written on failure.
        """

        path = _resolve(destination, PDF_FILENAME)
        token = await acquire_token(credentials, self._settings.auth_audience)
        request = report_builder.to_request(document)
        data = await self._api.export_pdf(request["title"], request["sections"], token)
        await anyio.to_thread.run_sync(path.write_bytes, data)
        logger.info("Wrote %s (%d bytes)", path, len(data))
        return ExportArtifact(path=path, media_type="application/pdf", size=len(data))
