"""Milestone stages shown as run progress."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .enums import EventKind, StageStatus


@dataclass(frozen=True, slots=True)
class Stage:
    kind: str
    label: str


DEFAULT_STAGES: Tuple[Stage, ...] = (
    Stage(EventKind.SEARCH.value, "Search"),
    Stage(EventKind.SUMMARY.value, "Summarize"),
    Stage(EventKind.VALIDATED.value, "Validate"),
    Stage(EventKind.RECOMMENDATIONS.value, "Recommend"),
)


@dataclass(frozen=True, slots=True)
class StageProgress:
    stage: Stage
    status: StageStatus
