"""Prompt-to-video orchestration: synthesize, materialize, build, render."""

from __future__ import annotations

import logging
from collections.abc import Callable

from promptreel.config import PipelineConfig
from promptreel.errors import (
    BuildError,
    GenerationError,
    MaterializationError,
    PipelineError,
    RenderError,
)
from promptreel.generator import GeminiGenerator, LocalGenerator, TextGenerator
from promptreel.materializer import ModuleMaterializer
from promptreel.models import GenerationRequest, RenderedVideo, RunState, ScratchModule, VideoResult
from promptreel.renderer import BuildRenderAdapter
from promptreel.synthesizer import CodeSynthesizer
from promptreel.toolchain import RemotionToolchain

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[RunState], None]

STAGE_ERRORS: dict[RunState, type[PipelineError]] = {
    RunState.SYNTHESIZING: GenerationError,
    RunState.MATERIALIZING: MaterializationError,
    RunState.BUILDING: BuildError,
    RunState.RENDERING: RenderError,
}


def build_video_url(base_url: str, public_path: str, filename: str) -> str:
    """Join the public base address, path prefix, and file name."""
    parts = [base_url.rstrip("/"), public_path.strip("/"), filename]
    return "/".join(part for part in parts if part)


class VideoPipeline:
    """Run the four stages strictly in sequence for one prompt at a time.

    Instances hold no per-run state, so one pipeline may serve concurrent
    callers; the only thing they share is the scratch and output directories.
    """

    def __init__(
        self,
        config: PipelineConfig,
        synthesizer: CodeSynthesizer,
        materializer: ModuleMaterializer,
        adapter: BuildRenderAdapter,
        progress_callback: ProgressCallback | None = None,
    ):
        self.config = config
        self.synthesizer = synthesizer
        self.materializer = materializer
        self.adapter = adapter
        self.progress_callback = progress_callback

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        *,
        generator: TextGenerator | None = None,
        toolchain: RemotionToolchain | None = None,
        local_only: bool = False,
        progress_callback: ProgressCallback | None = None,
    ) -> VideoPipeline:
        """Wire the default Gemini generator and Remotion toolchain."""
        if generator is None:
            generator = (
                LocalGenerator()
                if local_only
                else GeminiGenerator(
                    model_name=config.model_name,
                    temperature=config.temperature,
                    timeout_s=config.request_timeout_s,
                )
            )
        if toolchain is None:
            toolchain = RemotionToolchain(project_dir=config.project_dir, npx_binary=config.npx_binary)

        synthesizer = CodeSynthesizer(
            generator,
            style=config.style,
            theme=config.theme,
            fps=config.fps,
            duration_in_frames=config.duration_in_frames,
        )
        return cls(
            config,
            synthesizer=synthesizer,
            materializer=ModuleMaterializer(config),
            adapter=BuildRenderAdapter(config, builder=toolchain, renderer=toolchain),
            progress_callback=progress_callback,
        )

    def run(self, prompt: str) -> VideoResult:
        """Turn ``prompt`` into a rendered video and return its public URL.

        The scratch module, once created, is removed before this method
        returns on every path. A cleanup failure is logged and emitted as a
        ``CleanupWarning`` but never replaces the run's outcome.

        Raises:
            pydantic.ValidationError: If the prompt is blank (no stage runs).
            PipelineError: The first stage failure, as its typed subclass.
        """
        request = GenerationRequest(prompt=prompt)
        states: list[RunState] = [RunState.IDLE]
        module: ScratchModule | None = None

        def advance(state: RunState) -> None:
            states.append(state)
            logger.debug("run state -> %s", state.value)
            if self.progress_callback:
                self.progress_callback(state)

        def advance_quietly(state: RunState) -> None:
            # Callback failures here are logged; the run outcome stands.
            try:
                advance(state)
            except Exception:
                logger.warning("progress callback failed at %s", state.value, exc_info=True)

        try:
            advance(RunState.SYNTHESIZING)
            source = self.synthesizer.synthesize(request.prompt)

            advance(RunState.MATERIALIZING)
            module = self.materializer.materialize(source)

            advance(RunState.BUILDING)
            with self.adapter.build(module) as composition:
                advance(RunState.RENDERING)
                video: RenderedVideo = self.adapter.produce(composition)

            advance(RunState.DONE)
        except Exception as exc:
            error = exc if isinstance(exc, PipelineError) else _wrap_unexpected(states[-1], exc)
            advance_quietly(RunState.FAILED)
            logger.error("run failed at %s: %s", error.stage, error.message)
            if error is exc:
                raise
            raise error from exc
        finally:
            if module is not None:
                self.materializer.discard(module)
            advance_quietly(RunState.CLEANING_UP)

        video_url = build_video_url(self.config.base_url, self.config.public_path, video.filename)
        logger.info("video ready: %s", video_url)
        return VideoResult(
            video_url=video_url,
            video_path=video.path,
            entry_symbol=module.entry_symbol,
            stages=states,
        )


def _wrap_unexpected(state: RunState, exc: Exception) -> PipelineError:
    error_type = STAGE_ERRORS.get(state, PipelineError)
    return error_type(f"Unexpected {type(exc).__name__}: {exc}")
