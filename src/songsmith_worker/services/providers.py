"""HTTP clients for the chat-completion and prediction providers."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from ..app.models import JobState
from .exceptions import ConfigurationError, UpstreamError
from .types import GenerationJob

PREDICTION_STATES = {
    "starting": JobState.QUEUED,
    "processing": JobState.RUNNING,
    "succeeded": JobState.SUCCEEDED,
    "failed": JobState.FAILED,
    "canceled": JobState.FAILED,
}


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class _ProviderClient:
    """Shared plumbing for bearer-token JSON providers.

    The credential is checked on every call rather than at construction so a
    worker can start without keys and report the gap per request.
    """

    credential_name = "API key"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            logger.error("{} is missing", self.credential_name)
            raise ConfigurationError(f"{self.credential_name} is not set in environment variables")
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        headers = self._headers()
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            details = _response_details(exc.response)
            raise UpstreamError(
                f"{method} {url} returned {exc.response.status_code}",
                details=details,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{method} {url} failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(f"{method} {url} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"{method} {url} returned an unexpected payload", details=payload)
        return payload


class ChatCompletionClient(_ProviderClient):
    """OpenAI-compatible chat completion endpoint."""

    credential_name = "OPENAI_API_KEY"

    async def complete(self, prompt: str, *, model: str) -> str:
        payload = await self._request(
            "POST",
            "/chat/completions",
            json={"model": model, "messages": [{"role": "user", "content": prompt}]},
        )
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("completion response missing message content", details=payload) from exc
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("completion returned empty content", details=payload)
        return content


class PredictionClient(_ProviderClient):
    """Replicate-style asynchronous prediction API."""

    credential_name = "REPLICATE_API_TOKEN"

    async def create_prediction(self, model: str, payload: Dict[str, Any]) -> GenerationJob:
        body = await self._request("POST", f"/models/{model}/predictions", json={"input": payload})
        return self._to_job(body)

    async def get_prediction(self, prediction_id: str) -> GenerationJob:
        body = await self._request("GET", f"/predictions/{prediction_id}")
        return self._to_job(body)

    @staticmethod
    def _to_job(body: Dict[str, Any]) -> GenerationJob:
        prediction_id = body.get("id")
        if not isinstance(prediction_id, str) or not prediction_id:
            raise UpstreamError("prediction response missing id", details=body)
        raw_status = str(body.get("status") or "")
        status = PREDICTION_STATES.get(raw_status)
        if status is None:
            logger.warning("Unknown prediction status {!r} for {}", raw_status, prediction_id)
            status = JobState.RUNNING
        error = body.get("error")
        if raw_status == "canceled" and not error:
            error = "Prediction was canceled"
        return GenerationJob(
            external_id=prediction_id,
            status=status,
            output=body.get("output"),
            error=str(error) if error else None,
        )
