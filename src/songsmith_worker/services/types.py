"""Shared service data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

from ..app.models import JobState

LYRICS_CHAR_LIMIT = 350

TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED})


@dataclass(frozen=True)
class LyricsResult:
    text: str
    length_bound: int = LYRICS_CHAR_LIMIT


@dataclass
class TransientAsset:
    storage_path: Path
    mime_type: str
    size_bytes: int
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    released: bool = False


@dataclass
class GenerationJob:
    external_id: str
    status: JobState
    attempts_observed: int = 0
    output: Optional[Any] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


@dataclass
class TrackResult:
    track: str
    job: GenerationJob
