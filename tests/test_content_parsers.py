from __future__ import annotations

import json
from pathlib import Path

import pytest

from quartoship.content import FrontMatterError, load_content_document


def test_load_content_document_parses_quarto_header(tmp_path: Path) -> None:
    source = tmp_path / "posts" / "hello" / "index.qmd"
    source.parent.mkdir(parents=True)
    source.write_text(
        (
            "---\n"
            'title: "Hello dplyr"\n'
            "author:\n"
            "  - name: Yohann\n"
            "    affiliation: Home\n"
            "date: 2023-06-12\n"
            "categories: R\n"
            "image: cover.png\n"
            "format:\n"
            "  html:\n"
            "    code-fold: true\n"
            "---\n"
            "\n"
            "Some **markdown**.\n"
        ),
        encoding="utf-8",
    )

    document = load_content_document(source)

    assert document.meta.title == "Hello dplyr"
    assert document.meta.author == ["Yohann"]
    assert document.meta.date == "2023-06-12"
    assert document.meta.categories == ["R"]
    assert document.meta.image == "cover.png"
    assert document.body == "Some **markdown**."
    assert document.slug == "hello"
    assert document.image_path == source.parent / "cover.png"
    # Unknown Quarto keys are preserved.
    assert getattr(document.meta, "format") == {"html": {"code-fold": True}}


def test_load_content_document_requires_title(tmp_path: Path) -> None:
    source = tmp_path / "about.qmd"
    source.write_text("---\nauthor: Someone\n---\nText\n", encoding="utf-8")

    with pytest.raises(FrontMatterError):
        load_content_document(source)


def test_unterminated_front_matter_is_an_error(tmp_path: Path) -> None:
    source = tmp_path / "broken.md"
    source.write_text("---\ntitle: Broken\n", encoding="utf-8")

    with pytest.raises(FrontMatterError):
        load_content_document(source)


def test_notebook_header_comes_from_first_raw_cell(tmp_path: Path) -> None:
    notebook = {
        "cells": [
            {"cell_type": "raw", "source": ["---\n", "title: Notebook Post\n", "draft: true\n", "---\n"]},
            {"cell_type": "markdown", "source": ["# Heading\n"]},
        ],
        "metadata": {},
        "nbformat": 4,
        "nbformat_minor": 5,
    }
    source = tmp_path / "nb.ipynb"
    source.write_text(json.dumps(notebook), encoding="utf-8")

    document = load_content_document(source)

    assert document.meta.title == "Notebook Post"
    assert document.meta.draft is True
    assert "# Heading" in document.body
