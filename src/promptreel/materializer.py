"""Wrap repaired component source into a registrable Remotion entry module."""

from __future__ import annotations

import logging
import re
import warnings
from functools import lru_cache
from pathlib import Path

from promptreel.config import PipelineConfig
from promptreel.errors import CleanupWarning, MaterializationError
from promptreel.models import RepairedSource, ScratchModule
from promptreel.naming import Clock, TokenFactory, artifact_stamp, epoch_ms, random_token
from promptreel.prompting import ANIMATION_PRIMITIVES, ENTRY_SYMBOL

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "temp-"
SCRATCH_SUFFIX = ".jsx"

# ``[^;]`` spans newlines so multi-line binding lists are removed whole.
IMPORT_RE = re.compile(r"^\s*import\s+[^;]*?\bfrom\s+['\"][^'\"]+['\"];?[ \t]*\n?", re.MULTILINE)
SIDE_EFFECT_IMPORT_RE = re.compile(r"^\s*import\s+['\"][^'\"]+['\"];?\n?", re.MULTILINE)
DEFAULT_EXPORT_RE = re.compile(r"export\s+default\s+")
EXPORTED_SYMBOL_RE = re.compile(
    r"export\s+default\s+(?:async\s+)?(?:function\s+(\w+)|(?:const|let|var)\s+(\w+)|(\w+)\s*;?\s*$)",
    re.MULTILINE,
)
FUNCTION_RE = re.compile(r"function\s+(\w+)")
CONST_RE = re.compile(r"const\s+(\w+)\s*=")


def clean_source(code: str) -> str:
    """Drop import declarations and default-export markers."""
    cleaned = SIDE_EFFECT_IMPORT_RE.sub("", code)
    cleaned = IMPORT_RE.sub("", cleaned)
    return DEFAULT_EXPORT_RE.sub("", cleaned)


def discover_entry_symbol(code: str, fallback: str = ENTRY_SYMBOL) -> str:
    """Name the component the composition should render.

    Preference order: the symbol carrying the default-export marker, the
    first ``function X``, the first ``const X =``, then ``fallback``.
    """
    exported = EXPORTED_SYMBOL_RE.search(code)
    if exported:
        return next(group for group in exported.groups() if group)

    cleaned = clean_source(code)
    for pattern in (FUNCTION_RE, CONST_RE):
        match = pattern.search(cleaned)
        if match:
            return match.group(1)
    return fallback


def render_module(code: str, config: PipelineConfig) -> tuple[str, str]:
    """Return ``(module_text, entry_symbol)`` for the wrapper template."""
    entry_symbol = discover_entry_symbol(code)
    bindings = ",\n".join(f"  {name}" for name in ANIMATION_PRIMITIVES)

    # SOURCE goes last so placeholders inside model output stay untouched.
    replacements = {
        "BINDINGS": bindings,
        "COMPOSITION_ID": config.composition_id,
        "ENTRY_SYMBOL": entry_symbol,
        "DURATION_IN_FRAMES": str(config.duration_in_frames),
        "FPS": str(config.fps),
        "WIDTH": str(config.width),
        "HEIGHT": str(config.height),
        "SOURCE": clean_source(code).strip(),
    }
    return _render_template(_load_template("root.jsx"), replacements), entry_symbol


class ModuleMaterializer:
    """Persist wrapped source as a uniquely named scratch module."""

    def __init__(
        self,
        config: PipelineConfig,
        clock: Clock = epoch_ms,
        token_factory: TokenFactory = random_token,
    ):
        self.config = config
        self.clock = clock
        self.token_factory = token_factory

    @property
    def scratch_dir(self) -> Path:
        return self.config.resolved_scratch_dir

    def materialize(self, source: RepairedSource) -> ScratchModule:
        """Write the wrapper module and return its handle.

        No syntax validation happens here; broken source yields a broken
        module that fails at bundling.

        Raises:
            MaterializationError: If the scratch directory or file cannot be written.
        """
        module_text, entry_symbol = render_module(source.code, self.config)
        created_at, stamp = artifact_stamp(
            self.clock, self.token_factory, collision_guard=self.config.collision_guard
        )
        target = self.scratch_dir / f"{SCRATCH_PREFIX}{stamp}{SCRATCH_SUFFIX}"

        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(module_text, encoding="utf-8")
        except OSError as exc:
            self._remove_partial(target)
            raise MaterializationError(f"Could not write scratch module {target}: {exc}") from exc

        logger.info("scratch module written: %s (entry=%s)", target.name, entry_symbol)
        return ScratchModule(path=target, entry_symbol=entry_symbol, created_at_ms=created_at)

    def discard(self, module: ScratchModule) -> str | None:
        """Delete a scratch module, returning a warning message instead of raising."""
        try:
            module.path.unlink(missing_ok=True)
        except OSError as exc:
            message = f"Could not remove scratch module {module.path}: {exc}"
            logger.warning(message)
            emit_cleanup_warning(message)
            return message
        logger.debug("scratch module removed: %s", module.path.name)
        return None

    def _remove_partial(self, target: Path) -> None:
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove partial scratch module %s: %s", target, exc)


def emit_cleanup_warning(message: str) -> None:
    """Emit ``CleanupWarning``; a warnings filter set to ``error`` only gets logged."""
    try:
        warnings.warn(message, CleanupWarning, stacklevel=3)
    except Exception:
        logger.debug("cleanup warning raised by warnings filter: %s", message)


def _render_template(template: str, replacements: dict[str, str]) -> str:
    """Replace ``{{TOKEN}}`` placeholders in a template string."""
    rendered = template
    for token, value in replacements.items():
        rendered = rendered.replace(f"{{{{{token}}}}}", value)
    return rendered


@lru_cache(maxsize=None)
def _load_template(filename: str) -> str:
    """Load and cache module templates from ``templates/``."""
    template_path = Path(__file__).with_name("templates") / filename
    return template_path.read_text(encoding="utf-8")
