"""Lyric drafting through the chat-completion provider."""

from __future__ import annotations

from loguru import logger

from ..app.models import GenerationRequest
from .exceptions import InputValidationError
from .providers import ChatCompletionClient
from .types import LYRICS_CHAR_LIMIT, LyricsResult


def build_prompt(request: GenerationRequest) -> str:
    return (
        f'Create song lyrics based on this description: "{request.description.strip()}" '
        f"in a {request.mood.value} mood, {request.genre.value} genre.\n"
        "Format the lyrics with proper sections (verse, chorus, etc.) using newlines "
        "and double newlines for pauses.\n"
        f"Keep the total length under {LYRICS_CHAR_LIMIT} characters."
    )


class LyricsGenerator:
    """Issues one completion call per request and returns its text untouched."""

    def __init__(self, client: ChatCompletionClient, *, model: str) -> None:
        self._client = client
        self._model = model

    async def generate_lyrics(self, request: GenerationRequest) -> LyricsResult:
        if not request.description.strip():
            raise InputValidationError("Description is required")
        prompt = build_prompt(request)
        logger.info(
            "Generating lyrics (mood={}, genre={}) with {}",
            request.mood.value,
            request.genre.value,
            self._model,
        )
        logger.debug("Lyrics prompt: {}", prompt)
        text = await self._client.complete(prompt, model=self._model)
        if len(text) > LYRICS_CHAR_LIMIT:
            logger.debug("Lyrics exceed advisory length ({} chars)", len(text))
        return LyricsResult(text=text)
