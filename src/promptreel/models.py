"""Pydantic models passed between the synthesis, build, and render stages."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class RunState(str, Enum):
    """Lifecycle states of one pipeline run."""

    IDLE = "idle"
    SYNTHESIZING = "synthesizing"
    MATERIALIZING = "materializing"
    BUILDING = "building"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"
    CLEANING_UP = "cleaning_up"


class Codec(str, Enum):
    """Encoders accepted by the render capability."""

    H264 = "h264"


class GenerationRequest(BaseModel):
    """A single prompt submitted to the pipeline."""

    prompt: str = Field(min_length=1)

    @field_validator("prompt", mode="before")
    @classmethod
    def _strip_prompt(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class RepairedSource(BaseModel):
    """Model output after fence stripping and the repair table."""

    code: str
    raw_response: str
    applied_rules: list[str] = Field(default_factory=list)


class ScratchModule(BaseModel):
    """Wrapped component source written to the scratch directory."""

    path: Path
    entry_symbol: str
    created_at_ms: int


class BundleHandle(BaseModel):
    location: Path


class CompositionHandle(BaseModel):
    composition_id: str
    serve_url: str


class RenderedVideo(BaseModel):
    path: Path
    filename: str


class VideoResult(BaseModel):
    """Successful pipeline outcome returned to the caller."""

    video_url: str
    video_path: Path
    entry_symbol: str
    stages: list[RunState] = Field(default_factory=list)
