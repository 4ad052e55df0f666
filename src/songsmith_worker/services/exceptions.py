"""Shared service-layer exceptions."""

from __future__ import annotations

from typing import Any, Optional


class GenerationFailure(Exception):
    """Expected failure during lyric or track generation."""

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InputValidationError(GenerationFailure):
    """A required field (description, lyrics, file) is missing or unacceptable."""


class ConfigurationError(GenerationFailure):
    """A provider credential is not configured."""


class UpstreamError(GenerationFailure):
    """A provider call failed in transport or returned an unusable response."""


class PollTransportError(UpstreamError):
    """Fetching a job's status failed before a terminal state was observed."""


class JobFailedError(GenerationFailure):
    """The provider reported the generation job as failed."""


class JobTimeoutError(GenerationFailure):
    """The poll budget ran out before the job reached a terminal status."""


class AssetIOError(GenerationFailure):
    """Reading, writing or deleting a transient asset failed."""
