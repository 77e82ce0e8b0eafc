"""Schema validation helpers and lint diagnostics for content documents."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import Draft202012Validator

from .config import Config
from .content import ContentDocument, FrontMatterError
from .ingest import discover_documents

SCHEMA_PACKAGE = "quartoship.schemas"
CONTENT_SCHEMA_NAME = "content_post.schema.json"


class DocumentValidationError(ValueError):
    """Raised when a content document fails schema validation."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class IssueSeverity(Enum):
    """Severity level for lint issues."""

    ERROR = auto()
    WARNING = auto()


@dataclass(slots=True)
class DocumentIssue:
    """Represents a lint finding for a document."""

    source_path: str
    message: str
    severity: IssueSeverity
    pointer: str | None = None


@dataclass(slots=True)
class LintReport:
    """Aggregate lint results for a workspace."""

    issues: list[DocumentIssue] = field(default_factory=list)
    document_count: int = 0

    def add(self, issue: DocumentIssue) -> None:
        self.issues.append(issue)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity is IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity is IssueSeverity.WARNING)


def validate_document(document: ContentDocument) -> None:
    """Validate a content document against the bundled JSON schema."""
    data = document.model_dump(mode="json", exclude_none=True)
    validator = _get_content_validator()
    errors = sorted(validator.iter_errors(data), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        pointer = "/".join(str(elem) for elem in first.path)
        message = f"{document.source_path}: {first.message}"
        if pointer:
            message += f" (at {pointer})"
        raise DocumentValidationError(message, path=pointer or None)


def lint_document(document: ContentDocument) -> list[DocumentIssue]:
    issues: list[DocumentIssue] = []

    try:
        validate_document(document)
    except DocumentValidationError as exc:
        issues.append(
            DocumentIssue(
                source_path=document.source_path,
                message=str(exc),
                severity=IssueSeverity.ERROR,
                pointer=exc.path,
            )
        )

    image = document.image_path
    if image is not None and not image.exists():
        issues.append(
            DocumentIssue(
                source_path=document.source_path,
                message=f"Listing image not found: {document.meta.image} (expected at {image})",
                severity=IssueSeverity.ERROR,
                pointer="meta/image",
            )
        )

    if document.meta.draft:
        issues.append(
            DocumentIssue(
                source_path=document.source_path,
                message="Document is a draft and will not be published.",
                severity=IssueSeverity.WARNING,
                pointer="meta/draft",
            )
        )

    if not document.meta.categories:
        issues.append(
            DocumentIssue(
                source_path=document.source_path,
                message="Document has no categories; it will not appear in category listings.",
                severity=IssueSeverity.WARNING,
                pointer="meta/categories",
            )
        )

    return issues


def lint_workspace(config: Config) -> LintReport:
    """Collect documents and emit lint diagnostics for the content tree."""
    report = LintReport()
    for source in discover_documents(config):
        report.document_count += 1
        try:
            document = source.load()
        except (FrontMatterError, UnicodeDecodeError) as exc:
            report.add(
                DocumentIssue(
                    source_path=str(source.path),
                    message=str(exc),
                    severity=IssueSeverity.ERROR,
                )
            )
            continue
        for issue in lint_document(document):
            report.add(issue)
    return report


@lru_cache(maxsize=1)
def _get_content_validator() -> Draft202012Validator:
    schema = _load_schema(CONTENT_SCHEMA_NAME)
    return Draft202012Validator(schema)


def _load_schema(name: str) -> dict[str, Any]:
    with resources.files(SCHEMA_PACKAGE).joinpath(name).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"Schema '{name}' must be a JSON object.")
    return payload
