"""Four-stage lyric-to-track wizard tracked as a single tagged state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

from ..app.models import GenerationRequest, Genre, Mood
from ..services.assets import EXTENSION_MIME_TYPES
from ..services.types import LyricsResult
from .api import ApiError, ReferenceSelection


class WizardStage(str, Enum):
    DESCRIBE_INTENT = "describe_intent"
    EDIT_LYRICS = "edit_lyrics"
    UPLOAD_REFERENCE = "upload_reference"
    RESULT = "result"


STAGE_ORDER = (
    WizardStage.DESCRIBE_INTENT,
    WizardStage.EDIT_LYRICS,
    WizardStage.UPLOAD_REFERENCE,
    WizardStage.RESULT,
)

STAGE_ACTIONS = {
    WizardStage.DESCRIBE_INTENT: frozenset({"describe", "advance", "reset"}),
    WizardStage.EDIT_LYRICS: frozenset({"edit_lyrics", "advance", "back", "reset"}),
    WizardStage.UPLOAD_REFERENCE: frozenset({"select_reference", "advance", "back", "reset"}),
    WizardStage.RESULT: frozenset({"back", "reset"}),
}


class StageError(Exception):
    """An action was attempted in a stage that does not offer it."""


class WizardBackend(Protocol):
    async def generate_lyrics(self, request: GenerationRequest) -> str: ...

    async def generate_music(self, lyrics: str, reference: ReferenceSelection) -> str: ...


@dataclass
class WizardSession:
    stage: WizardStage = WizardStage.DESCRIBE_INTENT
    description: str = ""
    mood: Mood = Mood.NEUTRAL
    genre: Genre = Genre.ANY
    lyrics: Optional[LyricsResult] = None
    edited_lyrics: str = ""
    reference: Optional[ReferenceSelection] = None
    track: Optional[str] = None
    error_message: Optional[str] = None


class WizardStateMachine:
    """Gates each stage's input and the transitions between stages.

    Forward moves go one stage at a time through :meth:`advance` and only
    when the current stage's guard holds. A failed guard or backend call
    keeps the stage and records ``error_message``. :meth:`back` may return to
    any earlier stage; :meth:`reset` restores a fresh session.
    """

    def __init__(self, backend: WizardBackend, session: Optional[WizardSession] = None) -> None:
        self._backend = backend
        self.session = session or WizardSession()

    @property
    def stage(self) -> WizardStage:
        return self.session.stage

    def available_actions(self) -> frozenset[str]:
        return STAGE_ACTIONS[self.session.stage]

    def describe(
        self,
        description: str,
        mood: Optional[Mood] = None,
        genre: Optional[Genre] = None,
    ) -> None:
        self._require("describe")
        self.session.description = description
        if mood is not None:
            self.session.mood = Mood(mood)
        if genre is not None:
            self.session.genre = Genre(genre)

    def edit_lyrics(self, text: str) -> None:
        self._require("edit_lyrics")
        self.session.edited_lyrics = text

    def select_reference(self, path: Path) -> bool:
        self._require("select_reference")
        mime_type = EXTENSION_MIME_TYPES.get(path.suffix.lower())
        if mime_type is None:
            self.session.reference = None
            self.session.error_message = "Only MP3 and WAV files are allowed"
            return False
        try:
            size_bytes = path.stat().st_size
        except OSError as exc:
            self.session.reference = None
            self.session.error_message = f"Cannot read {path.name}: {exc.strerror}"
            return False
        self.session.reference = ReferenceSelection(
            path=path, mime_type=mime_type, size_bytes=size_bytes
        )
        self.session.error_message = None
        return True

    async def advance(self) -> WizardStage:
        self._require("advance")
        stage = self.session.stage
        if stage == WizardStage.DESCRIBE_INTENT:
            await self._submit_description()
        elif stage == WizardStage.EDIT_LYRICS:
            if not self.session.edited_lyrics.strip():
                self.session.error_message = "Please enter lyrics"
            else:
                self._move_to(WizardStage.UPLOAD_REFERENCE)
        elif stage == WizardStage.UPLOAD_REFERENCE:
            await self._submit_reference()
        return self.session.stage

    def back(self, target: Optional[WizardStage] = None) -> WizardStage:
        self._require("back")
        index = STAGE_ORDER.index(self.session.stage)
        if target is None:
            target = STAGE_ORDER[index - 1]
        elif STAGE_ORDER.index(target) >= index:
            raise StageError(f"cannot go back from {self.session.stage.value} to {target.value}")
        self._move_to(target)
        return target

    def reset(self) -> None:
        self.session = WizardSession()

    async def _submit_description(self) -> None:
        session = self.session
        if not session.description.strip():
            session.error_message = "Please enter a description"
            return
        request = GenerationRequest(
            description=session.description, mood=session.mood, genre=session.genre
        )
        try:
            text = await self._backend.generate_lyrics(request)
        except ApiError as exc:
            logger.warning("Lyrics request failed: {}", exc.message)
            session.error_message = exc.message
            return
        session.lyrics = LyricsResult(text=text)
        session.edited_lyrics = text
        self._move_to(WizardStage.EDIT_LYRICS)

    async def _submit_reference(self) -> None:
        session = self.session
        if session.reference is None:
            session.error_message = "Please select a file first"
            return
        if not session.edited_lyrics.strip():
            session.error_message = "Please enter lyrics"
            return
        try:
            track = await self._backend.generate_music(session.edited_lyrics, session.reference)
        except ApiError as exc:
            logger.warning("Music request failed: {}", exc.message)
            session.error_message = exc.message
            return
        session.track = track
        self._move_to(WizardStage.RESULT)

    def _move_to(self, stage: WizardStage) -> None:
        self.session.stage = stage
        self.session.error_message = None

    def _require(self, action: str) -> None:
        if action not in self.available_actions():
            raise StageError(f"{action} is not available in stage {self.session.stage.value}")
