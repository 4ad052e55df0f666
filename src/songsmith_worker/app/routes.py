from __future__ import annotations

from typing import Optional, cast

from fastapi import APIRouter, File, Form, Request, UploadFile

from ..services.assets import TransientAssetStore, check_mime_type
from ..services.exceptions import InputValidationError
from ..services.lyrics import LyricsGenerator
from ..services.orchestrator import MusicOrchestrator
from .models import GenerationRequest, LyricsResponse, TrackResponse
from .settings import Settings

router = APIRouter()


def get_lyrics_generator(request: Request) -> LyricsGenerator:
    return cast(LyricsGenerator, request.app.state.lyrics_generator)


def get_orchestrator(request: Request) -> MusicOrchestrator:
    return cast(MusicOrchestrator, request.app.state.music_orchestrator)


def get_asset_store(request: Request) -> TransientAssetStore:
    return cast(TransientAssetStore, request.app.state.asset_store)


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    settings = cast(Settings, request.app.state.settings)
    return {
        "status": "ok",
        "lyrics_model": settings.openai_model,
        "music_model": settings.replicate_model,
        "openai_configured": bool(settings.openai_api_key),
        "replicate_configured": bool(settings.replicate_api_token),
        "upload_dir": str(settings.upload_dir),
        "poll_budget_seconds": settings.poll_interval_seconds * settings.poll_max_attempts,
    }


@router.post("/api/generate-lyrics", response_model=LyricsResponse)
async def generate_lyrics(payload: GenerationRequest, request: Request) -> LyricsResponse:
    generator = get_lyrics_generator(request)
    result = await generator.generate_lyrics(payload)
    return LyricsResponse(lyrics=result.text)


@router.post("/api/generate-music", response_model=TrackResponse)
async def generate_music(
    request: Request,
    reference_song: Optional[UploadFile] = File(default=None, alias="referenceSong"),
    lyrics: str = Form(default=""),
) -> TrackResponse:
    if reference_song is None:
        raise InputValidationError("No file uploaded")
    check_mime_type(reference_song.content_type)
    store = get_asset_store(request)
    orchestrator = get_orchestrator(request)
    data = await reference_song.read()
    async with store.hold(data, reference_song.content_type) as asset:
        result = await orchestrator.generate(lyrics, asset)
    return TrackResponse(track=result.track)
