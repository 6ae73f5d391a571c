"""Remotion bundler/renderer driven through its CLI in child processes."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from promptreel.models import BundleHandle, Codec, CompositionHandle

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """A toolchain command exited non-zero or could not be started."""

    def __init__(self, cmd: list[str], returncode: int | None, stderr: str):
        detail = stderr.strip() or "no output"
        super().__init__(f"Command failed ({' '.join(cmd)}): {detail}")
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr


class Builder(Protocol):
    def bundle(self, entry: Path, out_dir: Path) -> BundleHandle: ...

    def resolve_composition(self, bundle: BundleHandle, composition_id: str) -> CompositionHandle: ...


class Renderer(Protocol):
    def render(
        self,
        composition: CompositionHandle,
        codec: Codec,
        output_path: Path,
        extra_params: Mapping[str, Any],
    ) -> None: ...


def run_cmd(cmd: list[str], cwd: Path | None = None) -> str:
    """Run a command and return stdout, raising ``CommandError`` on failure."""
    logger.debug("running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CommandError(cmd, None, str(exc)) from exc
    if proc.returncode != 0:
        raise CommandError(cmd, proc.returncode, proc.stderr or proc.stdout)
    return proc.stdout


class RemotionToolchain:
    """Implements ``Builder`` and ``Renderer`` with ``npx remotion``.

    Commands run with ``project_dir`` as working directory so the bundler
    resolves ``remotion`` and ``react`` from that project's ``node_modules``.
    """

    def __init__(self, project_dir: Path = Path("."), npx_binary: str = "npx"):
        self.project_dir = Path(project_dir)
        self.npx_binary = npx_binary

    def _remotion(self, *args: str) -> str:
        return run_cmd([self.npx_binary, "remotion", *args], cwd=self.project_dir)

    def bundle(self, entry: Path, out_dir: Path) -> BundleHandle:
        self._remotion("bundle", str(entry.resolve()), "--out-dir", str(out_dir.resolve()))
        if not out_dir.is_dir():
            raise CommandError(["remotion", "bundle", str(entry)], 0, f"no bundle written to {out_dir}")
        return BundleHandle(location=out_dir)

    def list_compositions(self, serve_url: str) -> list[str]:
        """Return composition ids exposed by a bundle (``--quiet`` prints ids only)."""
        return self._remotion("compositions", serve_url, "--quiet").split()

    def resolve_composition(self, bundle: BundleHandle, composition_id: str) -> CompositionHandle:
        serve_url = str(bundle.location.resolve())
        available = self.list_compositions(serve_url)
        if composition_id not in available:
            raise LookupError(
                f"Composition {composition_id!r} not found in bundle (available: {', '.join(available) or 'none'})"
            )
        return CompositionHandle(composition_id=composition_id, serve_url=serve_url)

    def render(
        self,
        composition: CompositionHandle,
        codec: Codec,
        output_path: Path,
        extra_params: Mapping[str, Any],
    ) -> None:
        self._remotion(
            "render",
            composition.serve_url,
            composition.composition_id,
            str(output_path.resolve()),
            "--codec",
            Codec(codec).value,
            "--props",
            json.dumps(dict(extra_params)),
        )
