"""Typed failures raised by the prompt-to-video pipeline stages."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base failure carrying the stage that produced it."""

    stage = "pipeline"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"


class GenerationError(PipelineError):
    """The model call failed, timed out, or returned no usable text."""

    stage = "synthesize"


class MaterializationError(PipelineError):
    """The scratch module could not be written."""

    stage = "materialize"


class BuildError(PipelineError):
    """Bundling failed or the composition could not be resolved."""

    stage = "build"


class RenderError(PipelineError):
    """The renderer failed after a composition was resolved."""

    stage = "render"


class CleanupWarning(UserWarning):
    """A scratch artifact or bundle could not be removed."""
