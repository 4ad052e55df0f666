from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from ..services.assets import TransientAssetStore
from ..services.exceptions import (
    AssetIOError,
    ConfigurationError,
    GenerationFailure,
    InputValidationError,
    JobFailedError,
    JobTimeoutError,
    UpstreamError,
)
from ..services.lyrics import LyricsGenerator
from ..services.orchestrator import MusicOrchestrator
from ..services.poller import JobPoller
from ..services.providers import ChatCompletionClient, PredictionClient
from .models import FailureEnvelope
from .routes import router
from .settings import Settings, get_settings

FAILURE_STATUS_CODES: tuple[tuple[type[GenerationFailure], int], ...] = (
    (InputValidationError, 400),
    (ConfigurationError, 500),
    (UpstreamError, 502),
    (JobFailedError, 502),
    (JobTimeoutError, 504),
    (AssetIOError, 500),
)


def status_code_for(exc: GenerationFailure) -> int:
    for failure_type, status_code in FAILURE_STATUS_CODES:
        if isinstance(exc, failure_type):
            return status_code
    return 500


def _failure_response(status_code: int, error: str, details: object = None) -> JSONResponse:
    envelope = FailureEnvelope(error=error, details=details)
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", exclude_none=True),
    )


async def _handle_generation_failure(request: Request, exc: Exception) -> JSONResponse:
    failure = exc if isinstance(exc, GenerationFailure) else GenerationFailure(str(exc))
    status_code = status_code_for(failure)
    logger.error(
        "{} {} failed ({}): {}",
        request.method,
        request.url.path,
        type(failure).__name__,
        failure.message,
    )
    return _failure_response(status_code, failure.message, failure.details)


async def _handle_request_validation(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    logger.warning("{} {} rejected: {}", request.method, request.url.path, errors)
    return _failure_response(400, "Invalid request", jsonable_encoder(errors))


async def _catch_unexpected(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    # ServerErrorMiddleware re-raises after responding; answer unexpected errors here.
    try:
        return await call_next(request)
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during {} {}", request.method, request.url.path)
    return _failure_response(500, "Unexpected error during generation")


def create_app(
    settings: Optional[Settings] = None,
    *,
    completion_client: Optional[ChatCompletionClient] = None,
    prediction_client: Optional[PredictionClient] = None,
    poller: Optional[JobPoller] = None,
) -> FastAPI:
    """Create and configure FastAPI instance."""
    settings = settings or get_settings()
    completion_client = completion_client or ChatCompletionClient(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout_seconds,
    )
    prediction_client = prediction_client or PredictionClient(
        settings.replicate_api_token,
        base_url=settings.replicate_base_url,
        timeout=settings.request_timeout_seconds,
    )
    asset_store = TransientAssetStore(settings.upload_dir, max_bytes=settings.max_upload_bytes)
    lyrics_generator = LyricsGenerator(completion_client, model=settings.openai_model)
    orchestrator = MusicOrchestrator(settings, prediction_client, asset_store, poller)

    @asynccontextmanager
    async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
        # Credentials are only reported here; requests check them on use.
        logger.info("OPENAI_API_KEY configured: {}", completion_client.configured)
        logger.info("REPLICATE_API_TOKEN configured: {}", prediction_client.configured)
        try:
            yield
        finally:
            asset_store.purge()
            await completion_client.close()
            await prediction_client.close()

    app = FastAPI(title="Songsmith Worker", version="0.1.0", lifespan=_lifespan)
    app.state.settings = settings
    app.state.asset_store = asset_store
    app.state.lyrics_generator = lyrics_generator
    app.state.music_orchestrator = orchestrator

    app.add_exception_handler(GenerationFailure, _handle_generation_failure)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.middleware("http")(_catch_unexpected)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def serve() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


app = create_app()
