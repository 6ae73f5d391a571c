"""Bundle scratch modules and render their composition to a video file."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from promptreel.config import PipelineConfig
from promptreel.errors import BuildError, RenderError
from promptreel.materializer import emit_cleanup_warning
from promptreel.models import CompositionHandle, RenderedVideo, ScratchModule
from promptreel.naming import Clock, TokenFactory, artifact_stamp, epoch_ms, random_token
from promptreel.toolchain import Builder, Renderer

logger = logging.getLogger(__name__)

VIDEO_PREFIX = "video-"
BUNDLE_PREFIX = "bundle-"


class BuildRenderAdapter:
    """Drive the build and render capabilities for one scratch module.

    Args:
        config: Pipeline configuration (composition id, codec, directories).
        builder: Bundling capability.
        renderer: Media production capability; usually the same object as
            ``builder``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        builder: Builder,
        renderer: Renderer,
        clock: Clock = epoch_ms,
        token_factory: TokenFactory = random_token,
    ):
        self.config = config
        self.builder = builder
        self.renderer = renderer
        self.clock = clock
        self.token_factory = token_factory

    @property
    def output_dir(self) -> Path:
        return self.config.resolved_output_dir

    def render(self, module: ScratchModule) -> RenderedVideo:
        """Bundle ``module``, resolve the composition, and render it."""
        with self.build(module) as composition:
            return self.produce(composition)

    @contextmanager
    def build(self, module: ScratchModule) -> Iterator[CompositionHandle]:
        """Bundle the module and yield the resolved composition.

        The bundle directory lives only for the duration of the ``with`` block.

        Raises:
            BuildError: If bundling fails or the composition id is absent.
        """
        bundle_dir = module.path.parent / f"{BUNDLE_PREFIX}{module.path.stem}"
        try:
            logger.info("bundling %s", module.path.name)
            try:
                bundle = self.builder.bundle(module.path, bundle_dir)
            except Exception as exc:
                raise BuildError(f"Bundling failed: {exc}") from exc

            logger.info("resolving composition %s", self.config.composition_id)
            try:
                composition = self.builder.resolve_composition(bundle, self.config.composition_id)
            except Exception as exc:
                raise BuildError(f"Composition resolution failed: {exc}") from exc

            yield composition
        finally:
            self._release_bundle(bundle_dir)

    def produce(self, composition: CompositionHandle) -> RenderedVideo:
        """Render a resolved composition into the output directory.

        Raises:
            RenderError: If the output directory cannot be created, the
                renderer fails, or no file appears at the target path.
        """
        _, stamp = artifact_stamp(
            self.clock, self.token_factory, collision_guard=self.config.collision_guard
        )
        output_path = self.output_dir / f"{VIDEO_PREFIX}{stamp}.mp4"

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RenderError(f"Could not create output directory {self.output_dir}: {exc}") from exc

        logger.info("rendering %s -> %s", composition.composition_id, output_path.name)
        try:
            self.renderer.render(composition, self.config.codec, output_path, {})
        except Exception as exc:
            raise RenderError(f"Rendering failed: {exc}") from exc

        if not output_path.is_file():
            raise RenderError(f"Renderer finished without writing {output_path}")

        return RenderedVideo(path=output_path, filename=output_path.name)

    def _release_bundle(self, bundle_dir: Path) -> None:
        if not bundle_dir.exists():
            return
        try:
            shutil.rmtree(bundle_dir)
        except OSError as exc:
            message = f"Could not remove bundle {bundle_dir}: {exc}"
            logger.warning(message)
            emit_cleanup_warning(message)
