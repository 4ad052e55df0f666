"""Track generation: reference encoding, prediction submission and polling."""

from __future__ import annotations

from typing import Any, Dict

from loguru import logger

from ..app.settings import Settings
from .assets import TransientAssetStore
from .exceptions import InputValidationError, UpstreamError
from .poller import JobPoller
from .providers import PredictionClient
from .types import GenerationJob, TrackResult, TransientAsset

# Synthesis policy; callers cannot override these.
SYNTHESIS_PARAMETERS: Dict[str, Any] = {
    "bitrate": 256_000,
    "sample_rate": 44_100,
    "duration": 30,
    "temperature": 0.8,
    "top_k": 250,
    "top_p": 0.95,
    "classifier_free_guidance": 3,
    "num_inference_steps": 50,
    "guidance_scale": 7.5,
}


def build_input(lyrics: str, song_file: str) -> Dict[str, Any]:
    return {"lyrics": lyrics, "song_file": song_file, **SYNTHESIS_PARAMETERS}


def extract_track(job: GenerationJob) -> str:
    output = job.output
    if isinstance(output, list):
        output = next((item for item in output if isinstance(item, str) and item), None)
    if not isinstance(output, str) or not output:
        raise UpstreamError(
            "Prediction succeeded without a playable output",
            details={"job_id": job.external_id, "output": job.output},
        )
    return output


class MusicOrchestrator:
    """Runs one prediction per call and always hands the asset back to the store."""

    def __init__(
        self,
        settings: Settings,
        predictions: PredictionClient,
        assets: TransientAssetStore,
        poller: JobPoller | None = None,
    ) -> None:
        self._model = settings.replicate_model
        self._predictions = predictions
        self._assets = assets
        self._poller = poller or JobPoller(
            interval=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
            transport_retries=settings.poll_transport_retries,
        )

    async def generate(self, lyrics: str, asset: TransientAsset) -> TrackResult:
        try:
            if not lyrics or not lyrics.strip():
                raise InputValidationError("Lyrics are required")
            song_file = await self._assets.read_data_uri(asset)
            payload = build_input(lyrics, song_file)
            logger.info(
                "Submitting prediction to {} ({} lyric chars, {} byte reference)",
                self._model,
                len(lyrics),
                asset.size_bytes,
            )
            submitted = await self._predictions.create_prediction(self._model, payload)
            logger.info("Prediction created: {}", submitted.external_id)
            completed = await self._poller.await_completion(
                submitted.external_id, self._predictions.get_prediction
            )
            track = extract_track(completed)
            logger.info(
                "Prediction {} succeeded after {} polls",
                completed.external_id,
                completed.attempts_observed,
            )
            return TrackResult(track=track, job=completed)
        finally:
            self._assets.release(asset)
