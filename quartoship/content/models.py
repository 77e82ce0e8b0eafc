"""Typed representations of Quarto content documents."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentMeta(BaseModel):
    """Metadata header of a post or page."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(description="Display title.")
    author: list[str] = Field(default_factory=list, description="Author names.")
    date: Optional[str] = Field(default=None, description="Publish date as written in the header.")
    categories: list[str] = Field(default_factory=list, description="Listing categories.")
    image: Optional[str] = Field(default=None, description="Hero image path relative to the document.")
    description: Optional[str] = Field(default=None)
    draft: bool = Field(default=False)

    @field_validator("title")
    def _require_title(cls, value: str) -> str:
        cleaned = str(value).strip()
        if not cleaned:
            raise ValueError("title cannot be empty")
        return cleaned

    @field_validator("author", mode="before")
    def _normalize_author(cls, value: Any) -> list[str]:
        if value is None:
            return []
        entries = value if isinstance(value, list) else [value]
        names: list[str] = []
        for entry in entries:
            # Quarto allows author objects such as {name: ..., affiliation: ...}.
            if isinstance(entry, dict):
                entry = entry.get("name")
            if entry is None:
                continue
            text = str(entry).strip()
            if text:
                names.append(text)
        return names

    @field_validator("date", mode="before")
    def _normalize_date(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        text = str(value).strip()
        return text or None

    @field_validator("categories", mode="before")
    def _normalize_categories(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(entry).strip() for entry in value if str(entry).strip()]

    @field_validator("image", mode="before")
    def _blank_image(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class ContentDocument(BaseModel):
    """A content document: metadata header plus opaque body."""

    meta: ContentMeta = Field(description="Metadata header.")
    body: str = Field(description="Raw document body.")
    source_path: str = Field(description="Path to the source file.")

    @property
    def slug(self) -> str:
        path = Path(self.source_path)
        if path.stem == "index" and path.parent.name:
            return path.parent.name
        return path.stem

    @property
    def image_path(self) -> Optional[Path]:
        image = self.meta.image
        if not image or "://" in image:
            return None
        return Path(self.source_path).parent / image
