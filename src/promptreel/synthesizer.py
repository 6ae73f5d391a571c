"""Synthesis stage: prompt in, repaired component source out."""

from __future__ import annotations

import logging

from promptreel.errors import GenerationError
from promptreel.generator import TextGenerator, strip_code_fences
from promptreel.models import GenerationRequest, RepairedSource
from promptreel.prompting import Style, Theme, build_instruction
from promptreel.repair import repair_source

logger = logging.getLogger(__name__)


class CodeSynthesizer:
    """Ask the model for one component and apply the repair table to it."""

    def __init__(
        self,
        generator: TextGenerator,
        *,
        style: Style = Style.PROMO,
        theme: Theme = Theme.AUTO,
        fps: int = 30,
        duration_in_frames: int = 600,
    ):
        self.generator = generator
        self.style = style
        self.theme = theme
        self.fps = fps
        self.duration_in_frames = duration_in_frames

    def synthesize(self, prompt: str) -> RepairedSource:
        """Issue exactly one generation call and return the repaired source.

        Raises:
            GenerationError: If the call fails for any reason or the reply is
                empty once fences are stripped.
        """
        request = GenerationRequest(prompt=prompt)
        instruction = build_instruction(
            request.prompt,
            style=self.style,
            theme=self.theme,
            fps=self.fps,
            duration_in_frames=self.duration_in_frames,
        )

        logger.info("requesting component (style=%s theme=%s)", self.style.value, self.theme.value)
        try:
            raw = self.generator.generate(instruction)
        except Exception as exc:
            raise GenerationError(f"Model call failed: {exc}") from exc

        stripped = strip_code_fences(raw or "")
        if not stripped:
            raise GenerationError("Model returned no code")

        code, applied = repair_source(stripped)
        if applied:
            logger.info("repairs applied: %s", ", ".join(applied))
        logger.debug("repaired source is %d chars", len(code))
        return RepairedSource(code=code, raw_response=raw, applied_rules=applied)
