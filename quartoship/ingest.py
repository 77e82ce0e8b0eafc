"""Discover the content documents the renderer will turn into pages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator

from .config import Config
from .content import ContentDocument, FrontMatterError, load_content_document

IGNORED_STEMS = {"readme", "license", "licence", "changelog"}


@dataclass(frozen=True, slots=True)
class ContentSource:
    """A renderable document identified by its path inside the content tree."""

    path: Path
    relative: PurePosixPath

    def output_path(self, output_dir: Path) -> Path:
        return output_dir / self.relative.with_suffix(".html")

    def load(self) -> ContentDocument:
        return load_content_document(self.path)


def discover_documents(config: Config) -> list[ContentSource]:
    """Walk the content tree in sorted order, skipping paths the renderer ignores."""
    root = config.project_dir
    if not root.exists():
        return []

    suffixes = set(config.renderer.content_suffixes)
    excluded = [path.resolve() for path in config.excluded_dirs]

    sources: list[ContentSource] = []
    for path in _iter_files(root, excluded):
        if path.suffix.lower() not in suffixes:
            continue
        if path.stem.lower() in IGNORED_STEMS:
            continue
        relative = PurePosixPath(path.relative_to(root).as_posix())
        sources.append(ContentSource(path=path, relative=relative))
    return sources


def published_sources(sources: Iterable[ContentSource]) -> list[ContentSource]:
    """Drop drafts; unreadable headers are kept so the render reports them."""
    kept: list[ContentSource] = []
    for source in sources:
        try:
            document = source.load()
        except (FrontMatterError, OSError, UnicodeDecodeError):
            kept.append(source)
            continue
        if not document.meta.draft:
            kept.append(source)
    return kept


def _iter_files(root: Path, excluded: list[Path]) -> Iterator[Path]:
    for entry in sorted(root.iterdir()):
        if entry.name.startswith((".", "_")):
            continue
        if entry.is_dir():
            if entry.resolve() in excluded:
                continue
            yield from _iter_files(entry, excluded)
        elif entry.is_file():
            yield entry
