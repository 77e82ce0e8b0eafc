"""Parse source files into `ContentDocument` instances."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import ContentDocument, ContentMeta


class FrontMatterError(ValueError):
    """Raised when a document has a malformed metadata header."""


def load_content_document(path: str | Path) -> ContentDocument:
    """Load a Quarto, R Markdown, Markdown or notebook document."""
    source_path = Path(path)
    if source_path.suffix.lower() == ".ipynb":
        front_matter, body = _split_notebook(source_path)
    else:
        text = source_path.read_text(encoding="utf-8")
        front_matter, body = split_front_matter(text, source_path)

    try:
        meta = ContentMeta(**front_matter)
    except ValidationError as exc:
        raise FrontMatterError(f"Invalid metadata in {source_path}: {_first_error(exc)}") from exc
    except TypeError as exc:
        raise FrontMatterError(f"Invalid metadata in {source_path}: {exc}") from exc

    return ContentDocument(meta=meta, body=body.strip(), source_path=str(source_path))


def split_front_matter(text: str, source_path: Path | None = None) -> tuple[dict[str, Any], str]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, text

    front_lines: list[str] = []
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() in {"---", "..."}:
            data = _load_yaml("\n".join(front_lines), source_path)
            return data, "\n".join(lines[idx + 1 :])
        front_lines.append(line)
    raise FrontMatterError(f"Closing front matter delimiter '---' missing in {source_path or 'document'}.")


def _split_notebook(source_path: Path) -> tuple[dict[str, Any], str]:
    try:
        notebook = json.loads(source_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise FrontMatterError(f"Notebook {source_path} is not valid JSON: {exc}") from exc

    cells = notebook.get("cells") if isinstance(notebook, dict) else None
    if not isinstance(cells, list):
        return {}, ""

    header: dict[str, Any] = {}
    body_parts: list[str] = []
    for index, cell in enumerate(cells):
        if not isinstance(cell, dict):
            continue
        source = cell.get("source", "")
        text = "".join(source) if isinstance(source, list) else str(source)
        # The header lives in the first raw cell.
        if index == 0 and cell.get("cell_type") == "raw" and text.lstrip().startswith("---"):
            header, _ = split_front_matter(text.strip(), source_path)
            continue
        body_parts.append(text)
    return header, "\n\n".join(body_parts)


def _load_yaml(raw: str, source_path: Path | None) -> dict[str, Any]:
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Unreadable YAML header in {source_path or 'document'}: {exc}") from exc
    if not isinstance(data, dict):
        raise FrontMatterError(f"Metadata header in {source_path or 'document'} must be a mapping.")
    return data


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
