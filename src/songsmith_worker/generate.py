"""
CLI entry point that walks the lyric-to-track wizard against a running worker.

Example:
    songsmith-generate --description "a song about rainy Sunday mornings" \
        --mood calm --genre jazz --reference ./reference.wav
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx

from .app.models import Genre, Mood
from .client.api import DEFAULT_SERVER_URL, SongsmithApiClient
from .client.wizard import WizardStage, WizardStateMachine


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a track via the Songsmith worker.")
    parser.add_argument("--description", required=True, help="What the song is about.")
    parser.add_argument(
        "--mood",
        choices=[mood.value for mood in Mood],
        default=Mood.NEUTRAL.value,
    )
    parser.add_argument(
        "--genre",
        choices=[genre.value for genre in Genre],
        default=Genre.ANY.value,
    )
    parser.add_argument(
        "--reference",
        type=Path,
        required=True,
        help="Reference clip (.mp3 or .wav) that guides the rendering.",
    )
    parser.add_argument(
        "--lyrics-file",
        type=Path,
        default=None,
        help="Replace the drafted lyrics with the contents of this file.",
    )
    parser.add_argument(
        "--server-url",
        default=DEFAULT_SERVER_URL,
        help="Base URL of the worker.",
    )
    return parser.parse_args(argv)


async def _run(
    description: str,
    *,
    mood: str,
    genre: str,
    reference: Path,
    lyrics_file: Optional[Path] = None,
    server_url: str = DEFAULT_SERVER_URL,
    http_client: Optional[httpx.AsyncClient] = None,
) -> int:
    api = SongsmithApiClient(server_url, http_client=http_client)
    wizard = WizardStateMachine(api)
    try:
        wizard.describe(description, Mood(mood), Genre(genre))
        if await wizard.advance() != WizardStage.EDIT_LYRICS:
            return _fail(wizard)
        print("lyrics        :")
        print(wizard.session.edited_lyrics)

        if lyrics_file is not None:
            wizard.edit_lyrics(lyrics_file.read_text(encoding="utf-8"))
        if await wizard.advance() != WizardStage.UPLOAD_REFERENCE:
            return _fail(wizard)

        if not wizard.select_reference(reference):
            return _fail(wizard)
        if await wizard.advance() != WizardStage.RESULT:
            return _fail(wizard)
    finally:
        await api.close()

    print(f"track         : {wizard.session.track}")
    return 0


def _fail(wizard: WizardStateMachine) -> int:
    print(
        f"error ({wizard.stage.value}): {wizard.session.error_message}",
        file=sys.stderr,
    )
    return 1


def main(argv: Optional[list[str]] = None) -> None:
    args = _parse_args(argv)
    raise SystemExit(
        asyncio.run(
            _run(
                args.description,
                mood=args.mood,
                genre=args.genre,
                reference=args.reference,
                lyrics_file=args.lyrics_file,
                server_url=args.server_url,
            )
        )
    )


if __name__ == "__main__":
    main()
