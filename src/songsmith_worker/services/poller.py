"""Bounded polling of provider-side generation jobs."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from ..app.models import JobState
from .exceptions import JobFailedError, JobTimeoutError, PollTransportError, UpstreamError
from .types import GenerationJob

StatusFetcher = Callable[[str], Awaitable[GenerationJob]]
Sleeper = Callable[[float], Awaitable[None]]


class JobPoller:
    """Turns an asynchronous job handle into a success, failure or timeout.

    Each attempt performs exactly one status read. Between non-terminal reads
    the caller's task is suspended for ``interval`` seconds; no wait follows
    the final read. A failed job is never re-polled.

    ``transport_retries`` bounds how many times a single attempt is re-read
    after the fetch function raises :class:`UpstreamError`. Retries wait
    ``interval`` and do not count against ``max_attempts``. With the default
    of zero the first transport failure surfaces as
    :class:`PollTransportError`.
    """

    def __init__(
        self,
        *,
        interval: float,
        max_attempts: int,
        transport_retries: int = 0,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be non-negative")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if transport_retries < 0:
            raise ValueError("transport_retries must be non-negative")
        self._interval = interval
        self._max_attempts = max_attempts
        self._transport_retries = transport_retries
        self._sleep = sleep

    @property
    def budget_seconds(self) -> float:
        return self._interval * self._max_attempts

    async def await_completion(self, job_id: str, fetch_status: StatusFetcher) -> GenerationJob:
        for attempt in range(1, self._max_attempts + 1):
            job = await self._fetch(job_id, fetch_status, attempt)
            job.attempts_observed = attempt
            logger.debug(
                "Prediction {} status {} (attempt {}/{})",
                job_id,
                job.status.value,
                attempt,
                self._max_attempts,
            )
            if job.status == JobState.SUCCEEDED:
                return job
            if job.status == JobState.FAILED:
                logger.error("Prediction {} failed: {}", job_id, job.error)
                raise JobFailedError(job.error or "Prediction failed", details=job.error)
            if attempt < self._max_attempts:
                await self._sleep(self._interval)

        logger.warning(
            "Prediction {} still pending after {} attempts", job_id, self._max_attempts
        )
        raise JobTimeoutError(
            "Prediction timed out",
            details={"job_id": job_id, "attempts": self._max_attempts},
        )

    async def _fetch(
        self, job_id: str, fetch_status: StatusFetcher, attempt: int
    ) -> GenerationJob:
        retries_left = self._transport_retries
        while True:
            try:
                return await fetch_status(job_id)
            except UpstreamError as exc:
                if retries_left <= 0:
                    raise PollTransportError(
                        f"Error checking prediction status: {exc.message}",
                        details=exc.details,
                    ) from exc
                retries_left -= 1
                logger.warning(
                    "Status read for {} failed on attempt {} ({}); retrying",
                    job_id,
                    attempt,
                    exc.message,
                )
                await self._sleep(self._interval)
