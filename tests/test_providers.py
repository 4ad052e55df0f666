from __future__ import annotations

import json

import httpx
import pytest

from songsmith_worker.app.models import JobState
from songsmith_worker.services.exceptions import ConfigurationError, UpstreamError
from songsmith_worker.services.providers import ChatCompletionClient, PredictionClient


def _client(handler, base_url: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


@pytest.mark.asyncio
async def test_chat_completion_posts_prompt_and_returns_content() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"choices": [{"message": {"role": "assistant", "content": "Verse one"}}]}
        )

    http = _client(handler, "https://llm.test/v1")
    client = ChatCompletionClient("sk-test", base_url="unused", http_client=http)

    text = await client.complete("write a song", model="gpt-3.5-turbo")

    assert text == "Verse one"
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-3.5-turbo",
        "messages": [{"role": "user", "content": "write a song"}],
    }
    await http.aclose()


@pytest.mark.asyncio
async def test_missing_credential_fails_before_any_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    http = _client(handler, "https://llm.test/v1")
    client = ChatCompletionClient(None, base_url="unused", http_client=http)

    assert client.configured is False
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        await client.complete("prompt", model="gpt-3.5-turbo")
    assert calls == []
    await http.aclose()


@pytest.mark.asyncio
async def test_non_success_status_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    http = _client(handler, "https://llm.test/v1")
    client = ChatCompletionClient("sk-test", base_url="unused", http_client=http)

    with pytest.raises(UpstreamError) as excinfo:
        await client.complete("prompt", model="gpt-3.5-turbo")
    assert excinfo.value.details == {"error": {"message": "rate limited"}}
    await http.aclose()


@pytest.mark.asyncio
async def test_empty_completion_is_an_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "  "}}]})

    http = _client(handler, "https://llm.test/v1")
    client = ChatCompletionClient("sk-test", base_url="unused", http_client=http)

    with pytest.raises(UpstreamError, match="empty content"):
        await client.complete("prompt", model="gpt-3.5-turbo")
    await http.aclose()


@pytest.mark.asyncio
async def test_transport_failure_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = _client(handler, "https://llm.test/v1")
    client = ChatCompletionClient("sk-test", base_url="unused", http_client=http)

    with pytest.raises(UpstreamError) as excinfo:
        await client.complete("prompt", model="gpt-3.5-turbo")
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    await http.aclose()


@pytest.mark.asyncio
async def test_prediction_create_and_status_mapping() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(201, json={"id": "abc123", "status": "starting"})
        return httpx.Response(
            200,
            json={"id": "abc123", "status": "succeeded", "output": "https://cdn.test/out.mp3"},
        )

    http = _client(handler, "https://predict.test/v1")
    client = PredictionClient("r8-test", base_url="unused", http_client=http)

    created = await client.create_prediction("minimax/music-01", {"lyrics": "la"})
    fetched = await client.get_prediction("abc123")

    assert created.external_id == "abc123"
    assert created.status == JobState.QUEUED
    assert fetched.status == JobState.SUCCEEDED
    assert fetched.output == "https://cdn.test/out.mp3"
    assert str(requests[0].url) == "https://predict.test/v1/models/minimax/music-01/predictions"
    assert json.loads(requests[0].content) == {"input": {"lyrics": "la"}}
    assert str(requests[1].url) == "https://predict.test/v1/predictions/abc123"
    assert requests[1].headers["Authorization"] == "Bearer r8-test"
    await http.aclose()


@pytest.mark.asyncio
async def test_canceled_prediction_is_reported_as_failed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "abc123", "status": "canceled"})

    http = _client(handler, "https://predict.test/v1")
    client = PredictionClient("r8-test", base_url="unused", http_client=http)

    job = await client.get_prediction("abc123")

    assert job.status == JobState.FAILED
    assert job.error == "Prediction was canceled"
    await http.aclose()


@pytest.mark.asyncio
async def test_unknown_status_is_treated_as_running() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "abc123", "status": "warming"})

    http = _client(handler, "https://predict.test/v1")
    client = PredictionClient("r8-test", base_url="unused", http_client=http)

    job = await client.get_prediction("abc123")

    assert job.status == JobState.RUNNING
    assert job.is_terminal is False
    await http.aclose()
