from __future__ import annotations

import re
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from promptreel.config import PipelineConfig
from promptreel.models import BundleHandle, CompositionHandle
from promptreel.toolchain import CommandError

FIXED_MS = 1_700_000_000_000

SUN_COMPONENT = """```jsx
const SUN_COLOR = '#ffcc00';

export default function GeneratedVideo() {
  const frame = useCurrentFrame();
  const rise = interpolate(frame, [0, 120], [400, 0], {
    extrapolateLeft: 'clamp',
    extrapolateRight: 'clamp',
    easing: Easing.out(Easing.back(1.7)),
  });
  const glow = 20 + Math.sin(frame * 0.1) * 10;
  return (
    <AbsoluteFill style={{ backgroundColor: '#1a1a2e', justifyContent: 'center', alignItems: 'center' }}>
      <div style={{ width: 300, height: 300, borderRadius: '50%', backgroundColor: SUN_COLOR,
        transform: `translateY(${rise}px)`, boxShadow: `0 0 ${glow}px ${SUN_COLOR}` }} />
    </AbsoluteFill>
  );
}
```"""

PROSE_REPLY = (
    "I'm sorry, but I can only describe the scene. Picture a bright sun climbing "
    "slowly over a ridge of snowy mountains while the sky turns orange."
)

COMPONENT_RE = re.compile(r"component=\{(\w+)\}")


class FakeGenerator:
    """Records instructions and replays a canned reply."""

    def __init__(self, reply: str = SUN_COMPONENT, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.instructions: list[str] = []

    def generate(self, instruction: str) -> str:
        self.instructions.append(instruction)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeToolchain:
    """In-process stand-in for the Remotion bundler and renderer.

    Bundling fails, like the real bundler would, when the composition's
    component symbol is not declared anywhere in the entry module.
    """

    def __init__(self) -> None:
        self.compositions: tuple[str, ...] = ("MyVideo",)
        self.bundle_error: str | None = None
        self.render_error: str | None = None
        self.write_output = True
        self.bundled_sources: list[str] = []
        self.bundle_dirs: list[Path] = []
        self.render_calls: list[dict[str, object]] = []

    def bundle(self, entry: Path, out_dir: Path) -> BundleHandle:
        source = entry.read_text(encoding="utf-8")
        self.bundled_sources.append(source)
        if self.bundle_error:
            raise CommandError(["remotion", "bundle", str(entry)], 1, self.bundle_error)

        match = COMPONENT_RE.search(source)
        symbol = match.group(1) if match else ""
        declared = re.search(rf"(?:function|const|let|var)\s+{symbol}\b", source) if symbol else None
        if not declared:
            raise CommandError(["remotion", "bundle", str(entry)], 1, f"ReferenceError: {symbol} is not defined")

        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / "index.html").write_text("<html></html>", encoding="utf-8")
        self.bundle_dirs.append(out_dir)
        return BundleHandle(location=out_dir)

    def resolve_composition(self, bundle: BundleHandle, composition_id: str) -> CompositionHandle:
        if composition_id not in self.compositions:
            raise LookupError(f"Composition {composition_id!r} not found")
        return CompositionHandle(composition_id=composition_id, serve_url=str(bundle.location))

    def render(self, composition, codec, output_path: Path, extra_params) -> None:
        self.render_calls.append(
            {
                "composition": composition,
                "codec": codec,
                "output_path": output_path,
                "extra_params": dict(extra_params),
            }
        )
        if self.render_error:
            raise CommandError(["remotion", "render"], 1, self.render_error)
        if self.write_output:
            output_path.write_bytes(b"\x00\x00\x00\x18ftypmp42")


@pytest.fixture
def config(tmp_path) -> PipelineConfig:
    return PipelineConfig(project_dir=tmp_path)


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_MS


@pytest.fixture
def sun_component() -> str:
    return SUN_COMPONENT


@pytest.fixture
def prose_reply() -> str:
    return PROSE_REPLY
