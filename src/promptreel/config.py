"""Pipeline configuration: defaults, environment overlay, and derived paths."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from promptreel.models import Codec
from promptreel.prompting import Style, Theme

ENV_PREFIX = "PROMPTREEL_"


class PipelineConfig(BaseModel):
    """Recognized options for one pipeline instance.

    Relative ``output_dir`` and ``scratch_dir`` values are resolved against
    ``project_dir``, which must be a Remotion project (``node_modules`` with
    ``remotion`` installed) so generated modules can import from it.
    """

    model_name: str = "gemini-2.5-flash"
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    request_timeout_s: float | None = Field(default=None, gt=0)

    composition_id: str = "MyVideo"
    duration_in_frames: int = Field(default=600, gt=0)
    fps: int = Field(default=30, gt=0)
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)
    codec: Codec = Codec.H264

    base_url: str = "http://localhost:4000"
    public_path: str = "/outputs"

    project_dir: Path = Path(".")
    output_dir: Path = Path("outputs")
    scratch_dir: Path = Path("temp")
    npx_binary: str = "npx"

    style: Style = Style.PROMO
    theme: Theme = Theme.AUTO
    collision_guard: bool = True

    @property
    def resolved_output_dir(self) -> Path:
        return self.project_dir / self.output_dir

    @property
    def resolved_scratch_dir(self) -> Path:
        return self.project_dir / self.scratch_dir

    @property
    def duration_seconds(self) -> float:
        return self.duration_in_frames / self.fps


def load_config(env: Mapping[str, str] | None = None, **overrides: object) -> PipelineConfig:
    """Build a config from defaults, ``PROMPTREEL_*`` variables, then overrides.

    Each field maps to ``PROMPTREEL_<FIELD_NAME>`` (for example
    ``PROMPTREEL_BASE_URL``). Overrides whose value is ``None`` are ignored so
    CLI options that were not given do not mask the environment.

    Raises:
        pydantic.ValidationError: If a value cannot be coerced to its field.
    """
    source = os.environ if env is None else env
    values: dict[str, object] = {}
    for name in PipelineConfig.model_fields:
        raw = source.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw.strip():
            values[name] = raw.strip()
    values.update({key: value for key, value in overrides.items() if value is not None})
    return PipelineConfig.model_validate(values)
