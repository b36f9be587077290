"""Turns a run's event log into a structured report document."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from research_client.models.enums import EventKind
from research_client.models.events import RunEvent
from research_client.models.report import ReportDocument, ReportSection
from research_client.models.stages import DEFAULT_STAGES
from research_client.utils.json_parser import canonical_json

STAGE_KINDS = frozenset(stage.kind for stage in DEFAULT_STAGES)


def report_title(topic: str) -> str:
    return f"Research Report: {topic}"


def _first(log: Iterable[RunEvent], kind: EventKind) -> Optional[RunEvent]:
    return next((event for event in log if event.kind == kind.value), None)


def _field(event: Optional[RunEvent], name: str) -> Any:
    if event is None or not isinstance(event.payload, dict):
        return None
    return event.payload.get(name)


def _summary_section(log: Sequence[RunEvent]) -> Optional[ReportSection]:
    text = _field(_first(log, EventKind.SUMMARY), "text")
    if not isinstance(text, str) or not text:
        return None
    return ReportSection("Executive Summary", text)


def _sources_section(log: Sequence[RunEvent]) -> Optional[ReportSection]:
    hits = _field(_first(log, EventKind.SEARCH), "hits")
    if not isinstance(hits, list):
        return None
    lines = []
    for hit in hits:
        if not isinstance(hit, dict):
            continue
        title, url = hit.get("title"), hit.get("url")
        if title and url:
            lines.append(f"{title} — {url}")
    if not lines:
        return None
    return ReportSection("Sources", "\n".join(lines))


def _recommendations_section(log: Sequence[RunEvent]) -> Optional[ReportSection]:
    items = _field(_first(log, EventKind.RECOMMENDATIONS), "items")
    if not isinstance(items, list):
        return None
    lines = [item for item in items if isinstance(item, str)]
    if not lines:
        return None
    return ReportSection("Recommendations", "\n".join(lines))


def _render_payload(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return canonical_json(payload)


def build(topic: str, log: Sequence[RunEvent]) -> ReportDocument:
    """Build the report for ``topic`` from ``log``.

    Recognised stages contribute the summary, sources and recommendations
    sections. A log without any recognised stage is rendered event by event.
    """

    if not any(event.kind in STAGE_KINDS for event in log):
        sections = [ReportSection(event.kind, _render_payload(event.payload)) for event in log]
    else:
        candidates = (
            _summary_section(log),
            _sources_section(log),
            _recommendations_section(log),
        )
        sections = [section for section in candidates if section is not None]
    return ReportDocument(title=report_title(topic), sections=tuple(sections))


def to_markdown(document: ReportDocument) -> str:
    parts = [f"# {document.title}"]
    for section in document.sections:
        parts.append(f"## {section.heading}")
        if section.body:
            parts.append(section.body)
    return "\n\n".join(parts) + "\n"


def to_preview(document: ReportDocument) -> str:
    """Plain text for terminals: underlined headings, bodies below."""

    lines: List[str] = [document.title, "=" * len(document.title)]
    for section in document.sections:
        lines.extend(["", section.heading, "-" * len(section.heading)])
        if section.body:
            lines.append(section.body)
    return "\n".join(lines) + "\n"


def to_request(document: ReportDocument) -> Dict[str, Any]:
    """Payload for the PDF rendering endpoint."""

    return {
        "title": document.title,
        "sections": [
            {"heading": section.heading, "body": section.body} for section in document.sections
        ],
    }
