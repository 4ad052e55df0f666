from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from songsmith_worker.app.main import create_app
from songsmith_worker.app.models import JobState
from songsmith_worker.app.settings import Settings
from songsmith_worker.generate import _parse_args, _run
from songsmith_worker.services.types import GenerationJob


class StubCompletion:
    configured = True

    async def complete(self, prompt: str, *, model: str) -> str:
        return "[Verse]\nRain taps a brushed snare"

    async def close(self) -> None:
        return None


class StubPredictions:
    configured = True

    def __init__(self, statuses: List[JobState]) -> None:
        self._statuses = statuses
        self.submissions: List[Dict[str, Any]] = []
        self.fetches = 0

    async def create_prediction(self, model: str, payload: Dict[str, Any]) -> GenerationJob:
        self.submissions.append(payload)
        return GenerationJob(external_id="cli-1", status=JobState.QUEUED)

    async def get_prediction(self, prediction_id: str) -> GenerationJob:
        status = self._statuses[min(self.fetches, len(self._statuses) - 1)]
        self.fetches += 1
        return GenerationJob(
            external_id=prediction_id,
            status=status,
            output="https://cdn.example/cli-1.mp3",
            error="model overloaded" if status == JobState.FAILED else None,
        )

    async def close(self) -> None:
        return None


def _in_process_client(tmp_path: Path, predictions: StubPredictions) -> httpx.AsyncClient:
    settings = Settings(
        upload_dir=tmp_path / "uploads",
        openai_api_key="sk-test",
        replicate_api_token="r8-test",
        poll_interval_seconds=0.0,
    )
    app = create_app(settings, completion_client=StubCompletion(), prediction_client=predictions)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://worker")


@pytest.mark.asyncio
async def test_generate_cli_walks_all_stages(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    reference = tmp_path / "reference.mp3"
    reference.write_bytes(b"ID3\x04\x00")
    lyrics_file = tmp_path / "lyrics.txt"
    lyrics_file.write_text("[Chorus]\nSunday, slow down", encoding="utf-8")
    predictions = StubPredictions([JobState.RUNNING, JobState.SUCCEEDED])

    async with _in_process_client(tmp_path, predictions) as client:
        code = await _run(
            "a song about rainy Sunday mornings",
            mood="calm",
            genre="jazz",
            reference=reference,
            lyrics_file=lyrics_file,
            http_client=client,
        )

    captured = capsys.readouterr()
    assert code == 0
    assert "Rain taps a brushed snare" in captured.out
    assert "https://cdn.example/cli-1.mp3" in captured.out
    assert predictions.submissions[0]["lyrics"] == "[Chorus]\nSunday, slow down"
    assert predictions.submissions[0]["song_file"].startswith("data:audio/mpeg;base64,")
    assert list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.asyncio
async def test_generate_cli_reports_job_failure(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    reference = tmp_path / "reference.wav"
    reference.write_bytes(b"RIFF\x00\x00\x00\x00WAVE")
    predictions = StubPredictions([JobState.FAILED])

    async with _in_process_client(tmp_path, predictions) as client:
        code = await _run(
            "city lights",
            mood="energetic",
            genre="electronic",
            reference=reference,
            http_client=client,
        )

    captured = capsys.readouterr()
    assert code == 1
    assert "error (upload_reference): model overloaded" in captured.err


def test_parse_args_defaults(tmp_path: Path) -> None:
    args = _parse_args(["--description", "sea shanty", "--reference", str(tmp_path / "a.wav")])
    assert args.mood == "neutral"
    assert args.genre == "any"
    assert args.lyrics_file is None
