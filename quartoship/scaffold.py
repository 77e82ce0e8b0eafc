"""Utilities for scaffolding new posts and project configuration."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Sequence

import yaml

from .config import CONFIG_FILENAME, Config

SLUG_PATTERN = re.compile(r"[^a-z0-9\-]+")
WHITESPACE_PATTERN = re.compile(r"\s+")


class ScaffoldError(RuntimeError):
    """Raised when scaffolding cannot continue."""


@dataclass(slots=True)
class ScaffoldResult:
    """Details about filesystem writes performed during scaffolding."""

    created: list[Path] = field(default_factory=list)
    updated: list[Path] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def record(self, path: Path, existed: bool) -> None:
        if existed:
            self.updated.append(path)
        else:
            self.created.append(path)


def slugify(value: str) -> str:
    text = value.strip().lower()
    text = WHITESPACE_PATTERN.sub("-", text)
    text = re.sub(r"_+", "-", text)
    text = SLUG_PATTERN.sub("-", text)
    text = re.sub(r"-{2,}", "-", text)
    return text.strip("-")


def normalize_slug(raw: str) -> str:
    """Convert arbitrary user input into a filesystem-safe slug."""
    slug = slugify(raw)
    if not slug:
        raise ScaffoldError("Unable to derive a valid slug. Provide letters, numbers, or hyphens.")
    return slug


def default_title(slug: str) -> str:
    words = [word for word in slug.replace("_", "-").split("-") if word]
    if not words:
        return "Untitled"
    return " ".join(word.capitalize() for word in words)


def scaffold_post(
    config: Config,
    slug: str,
    *,
    title: str | None = None,
    author: str | None = None,
    categories: Sequence[str] = (),
    posts_subdir: str = "posts",
    force: bool = False,
    today: date | None = None,
) -> ScaffoldResult:
    """Create ``<posts_subdir>/<slug>/index.qmd`` with a metadata header."""
    slug = normalize_slug(slug)
    title = (title or "").strip() or default_title(slug)
    post_dir = config.project_dir / posts_subdir / slug
    post_path = post_dir / "index.qmd"

    header: dict[str, object] = {"title": title}
    if author:
        header["author"] = author.strip()
    header["date"] = (today or date.today()).isoformat()
    header["categories"] = [entry.strip() for entry in categories if entry.strip()]
    header["image"] = "image.jpg"

    front_matter = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
    text = f"---\n{front_matter}---\n\nWrite the post here.\n"

    existed = _write_text(post_path, text, force=force)
    result = ScaffoldResult()
    result.record(post_path, existed)
    result.notes.append(
        f"Place the listing image at {(post_dir / 'image.jpg').as_posix()} or remove the 'image' key."
    )
    return result


def init_project(target: Path, *, domain: str | None = None, force: bool = False) -> ScaffoldResult:
    """Write a default quartoship.yml into ``target``."""
    target.mkdir(parents=True, exist_ok=True)
    payload: dict[str, object] = {
        "project_name": target.resolve().name or "Quarto Site",
        "project_dir": ".",
        "output_dir": "docs",
        "domain": {"name": domain or "", "marker_filename": "CNAME"},
        "trigger": {"branch": "main"},
        "runtime": Config().runtime.model_dump(),
        "publish": {"backend": "git", "branch": "gh-pages"},
    }
    config_path = target / CONFIG_FILENAME
    existed = _write_text(config_path, yaml.safe_dump(payload, sort_keys=False), force=force)

    result = ScaffoldResult()
    result.record(config_path, existed)
    if not domain:
        result.notes.append(f"Set domain.name in {config_path.as_posix()} before publishing.")
    result.notes.append("Run 'quartoship workflow' to generate the GitHub Actions definition.")
    return result


def _write_text(path: Path, content: str, *, force: bool) -> bool:
    path.parent.mkdir(parents=True, exist_ok=True)
    existed = path.exists()
    if existed and not force:
        raise ScaffoldError(f"Path already exists: {path}")
    path.write_text(content, encoding="utf-8")
    return existed
