"""Typer-based CLI for generating videos from prompts."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import typer
from pydantic import ValidationError

from promptreel.config import PipelineConfig, load_config
from promptreel.errors import PipelineError
from promptreel.generator import GeminiGenerator, LocalGenerator, resolve_gemini_api_key, strip_code_fences
from promptreel.materializer import ModuleMaterializer
from promptreel.models import RepairedSource, RunState
from promptreel.pipeline import VideoPipeline
from promptreel.prompting import Style, Theme
from promptreel.repair import repair_source
from promptreel.synthesizer import CodeSynthesizer

app = typer.Typer(add_completion=False, help="promptreel: turn a text prompt into a rendered video")

STEP_BY_STATE = {
    RunState.SYNTHESIZING: (1, "Generating component code"),
    RunState.MATERIALIZING: (2, "Writing scratch module"),
    RunState.BUILDING: (3, "Bundling and resolving composition"),
    RunState.RENDERING: (4, "Rendering video"),
}


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _echo_progress(state: RunState) -> None:
    if state in STEP_BY_STATE:
        step, message = STEP_BY_STATE[state]
        _echo_step(step, len(STEP_BY_STATE), message)


def _load(**overrides: object) -> PipelineConfig:
    try:
        return load_config(**overrides)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


@app.command("generate")
def generate(
    prompt: str = typer.Argument(..., help="What the video should show"),
    style: Style | None = typer.Option(None, help="Animation style"),
    theme: Theme | None = typer.Option(None, help="Color theme"),
    model_name: str | None = typer.Option(None, "--model", help="Gemini model name"),
    project_dir: Path | None = typer.Option(None, help="Remotion project directory"),
    output_dir: Path | None = typer.Option(None, help="Rendered video directory"),
    scratch_dir: Path | None = typer.Option(None, help="Scratch module directory"),
    base_url: str | None = typer.Option(None, help="Public base URL for returned links"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the offline component"),
) -> None:
    """Run the full prompt-to-video pipeline and print the video URL."""
    config = _load(
        style=style,
        theme=theme,
        model_name=model_name,
        project_dir=project_dir,
        output_dir=output_dir,
        scratch_dir=scratch_dir,
        base_url=base_url,
    )
    pipeline = VideoPipeline.from_config(config, local_only=local_only, progress_callback=_echo_progress)

    try:
        result = pipeline.run(prompt)
    except ValidationError as exc:
        raise typer.BadParameter("Prompt must not be empty.") from exc
    except PipelineError as exc:
        typer.echo(f"Failed at {exc.stage}: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Video generated. entry={result.entry_symbol} path={result.video_path}")
    typer.echo(result.video_url)


@app.command("synthesize")
def synthesize(
    prompt: str = typer.Argument(..., help="What the video should show"),
    style: Style | None = typer.Option(None, help="Animation style"),
    theme: Theme | None = typer.Option(None, help="Color theme"),
    model_name: str | None = typer.Option(None, "--model", help="Gemini model name"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the offline component"),
) -> None:
    """Run only the synthesis stage and print the repaired component source."""
    config = _load(style=style, theme=theme, model_name=model_name)
    generator = (
        LocalGenerator()
        if local_only
        else GeminiGenerator(config.model_name, config.temperature, config.request_timeout_s)
    )
    synthesizer = CodeSynthesizer(
        generator,
        style=config.style,
        theme=config.theme,
        fps=config.fps,
        duration_in_frames=config.duration_in_frames,
    )

    try:
        source = synthesizer.synthesize(prompt)
    except ValidationError as exc:
        raise typer.BadParameter("Prompt must not be empty.") from exc
    except PipelineError as exc:
        typer.echo(f"Failed at {exc.stage}: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    if source.applied_rules:
        typer.echo(f"// repairs: {', '.join(source.applied_rules)}", err=True)
    typer.echo(source.code)


@app.command("materialize")
def materialize(
    component_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Component source file"),
    project_dir: Path | None = typer.Option(None, help="Remotion project directory"),
    scratch_dir: Path | None = typer.Option(None, help="Scratch module directory"),
) -> None:
    """Repair and wrap an existing component file; the module is kept on disk."""
    config = _load(project_dir=project_dir, scratch_dir=scratch_dir)
    raw = component_file.read_text(encoding="utf-8")
    code, applied = repair_source(strip_code_fences(raw))

    try:
        module = ModuleMaterializer(config).materialize(
            RepairedSource(code=code, raw_response=raw, applied_rules=applied)
        )
    except PipelineError as exc:
        typer.echo(f"Failed at {exc.stage}: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Module written. entry={module.entry_symbol} path={module.path}")


@app.command("doctor")
def doctor(
    project_dir: Path | None = typer.Option(None, help="Remotion project directory"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    config = _load(project_dir=project_dir)
    api_key = resolve_gemini_api_key()
    npx_path = shutil.which(config.npx_binary)
    remotion_installed = (config.project_dir / "node_modules" / "remotion").is_dir()

    typer.echo(f"GEMINI_API_KEY set: {bool(api_key)}")
    typer.echo(f"{config.npx_binary} found: {bool(npx_path)} ({npx_path or '-'})")
    typer.echo(f"remotion installed: {remotion_installed} ({config.project_dir})")
    typer.echo(f"scratch dir: {config.resolved_scratch_dir}")
    typer.echo(f"output dir: {config.resolved_output_dir}")
    typer.echo(f"composition: {config.composition_id} {config.width}x{config.height}@{config.fps}fps")


if __name__ == "__main__":
    app()
