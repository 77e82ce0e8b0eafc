"""Invoke the external renderer and check that it produced a complete site."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .config import Config
from .errors import Stage, StageError
from .ingest import ContentSource, discover_documents, published_sources
from .runner import CommandRunner, tail
from .snapshot import OutputSnapshot, SnapshotDiff, snapshot_tree

logger = logging.getLogger(__name__)


class RenderError(StageError):
    """Raised when the renderer fails or leaves an incomplete output tree."""

    stage = Stage.RENDER


@dataclass(slots=True)
class RenderResult:
    """Summary of a successful render."""

    output_dir: Path
    pages: list[Path] = field(default_factory=list)
    file_count: int = 0
    snapshot: OutputSnapshot = field(default_factory=OutputSnapshot)


def reset_directory(path: Path) -> None:
    """Remove a directory and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def render_command(config: Config) -> list[str]:
    renderer = config.renderer
    return [renderer.executable, "render", str(config.project_dir), *renderer.extra_args]


def render_site(config: Config, runner: CommandRunner) -> RenderResult:
    """Render the whole content tree into a freshly emptied output directory."""
    sources = published_sources(discover_documents(config))
    if not sources:
        raise RenderError(f"No content documents found under {config.project_dir}.")

    output_dir = config.output_dir
    project_dir = config.project_dir.resolve()
    if output_dir.resolve() == project_dir or output_dir.resolve() in project_dir.parents:
        raise RenderError(f"Output directory {output_dir} would contain the content tree.")
    # Every run starts from an empty tree so stale pages never survive.
    reset_directory(output_dir)

    command = render_command(config)
    logger.info("Rendering %d document(s): %s", len(sources), " ".join(command))
    try:
        result = runner(command, cwd=config.project_dir)
    except FileNotFoundError as exc:
        raise RenderError(f"Renderer '{config.renderer.executable}' is not on PATH.") from exc

    if result.returncode != 0:
        detail = tail(result.stderr or result.stdout)
        message = f"Renderer exited with status {result.returncode}"
        if detail:
            message += f":\n{detail}"
        raise RenderError(message)

    missing = _missing_pages(sources, output_dir)
    if missing:
        listing = ", ".join(source.relative.as_posix() for source in missing)
        raise RenderError(f"Renderer produced no page for {len(missing)} document(s): {listing}")

    snapshot = snapshot_tree(output_dir)
    if not snapshot.files:
        raise RenderError(f"Renderer left {output_dir} empty.")

    pages = [source.output_path(output_dir) for source in sources]
    logger.info("Rendered %d page(s), %d file(s) in %s", len(pages), len(snapshot.files), output_dir)
    return RenderResult(
        output_dir=output_dir,
        pages=pages,
        file_count=len(snapshot.files),
        snapshot=snapshot,
    )


def check_determinism(config: Config, runner: CommandRunner) -> SnapshotDiff:
    """Render twice and compare the two trees modulo timestamps."""
    first = render_site(config, runner).snapshot
    second = render_site(config, runner).snapshot
    return first.diff(second)


def _missing_pages(sources: list[ContentSource], output_dir: Path) -> list[ContentSource]:
    return [source for source in sources if not source.output_path(output_dir).is_file()]
