"""Utilities for reading content document metadata."""

from .models import ContentDocument, ContentMeta
from .parsers import FrontMatterError, load_content_document, split_front_matter

__all__ = [
    "ContentDocument",
    "ContentMeta",
    "FrontMatterError",
    "load_content_document",
    "split_front_matter",
]
