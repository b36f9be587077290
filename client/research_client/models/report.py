"""Report document structures produced from run event logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple


@dataclass(frozen=True, slots=True)
class ReportSection:
    heading: str
    body: str


@dataclass(frozen=True, slots=True)
class ReportDocument:
    """Ordered, section-oriented projection of an event log."""

    title: str
    sections: Tuple[ReportSection, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class ExportArtifact:
    """A report written to disk and ready to hand to the user."""

    path: Path
    media_type: str
    size: int
