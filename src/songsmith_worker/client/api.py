"""HTTP client for the worker's two generation endpoints."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx

from ..app.models import GenerationRequest

DEFAULT_SERVER_URL = "http://localhost:5000"


class ApiError(Exception):
    """A generation call did not produce a successful envelope."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class ReferenceSelection:
    path: Path
    mime_type: str
    size_bytes: int


class SongsmithApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate_lyrics(self, request: GenerationRequest) -> str:
        body = await self._post(
            "/api/generate-lyrics",
            fallback="Failed to generate lyrics",
            json=request.model_dump(mode="json"),
        )
        return str(body["lyrics"])

    async def generate_music(self, lyrics: str, reference: ReferenceSelection) -> str:
        data = await asyncio.to_thread(reference.path.read_bytes)
        body = await self._post(
            "/api/generate-music",
            fallback="Failed to generate music",
            data={"lyrics": lyrics},
            files={"referenceSong": (reference.path.name, data, reference.mime_type)},
        )
        return str(body["track"])

    async def _post(self, url: str, *, fallback: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(f"{fallback}: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if not response.is_success or not body.get("success"):
            raise ApiError(
                str(body.get("error") or fallback),
                status_code=response.status_code,
                details=body.get("details"),
            )
        return body
