from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Mood(str, Enum):
    NEUTRAL = "neutral"
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    ANGRY = "angry"
    ROMANTIC = "romantic"
    MYSTERIOUS = "mysterious"


class Genre(str, Enum):
    ANY = "any"
    POP = "pop"
    ROCK = "rock"
    JAZZ = "jazz"
    CLASSICAL = "classical"
    ELECTRONIC = "electronic"
    HIP_HOP = "hip hop"
    FOLK = "folk"
    COUNTRY = "country"


class GenerationRequest(BaseModel):
    """Stage-one form payload for the lyrics call."""

    model_config = ConfigDict(frozen=True)

    # Blank descriptions are rejected by the lyrics service so the failure
    # reaches the caller in the standard envelope.
    description: str = Field(default="")
    mood: Mood = Field(default=Mood.NEUTRAL)
    genre: Genre = Field(default=Genre.ANY)


class LyricsResponse(BaseModel):
    success: bool = True
    lyrics: str


class TrackResponse(BaseModel):
    success: bool = True
    track: str


class FailureEnvelope(BaseModel):
    success: bool = False
    error: str
    details: Optional[Any] = None
