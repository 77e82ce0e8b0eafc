from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from quartoship.config import Config, load_config
from quartoship.content import load_content_document
from quartoship.scaffold import ScaffoldError, default_title, init_project, normalize_slug, scaffold_post


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Hello World", "hello-world"), ("  R_and_Python ", "r-and-python"), ("Qu@rto!!", "qu-rto")],
)
def test_normalize_slug(raw: str, expected: str) -> None:
    assert normalize_slug(raw) == expected


def test_normalize_slug_rejects_empty() -> None:
    with pytest.raises(ScaffoldError):
        normalize_slug("!!!")


def test_default_title() -> None:
    assert default_title("tidy-data_tips") == "Tidy Data Tips"


def test_scaffolded_post_parses(config: Config) -> None:
    result = scaffold_post(config, "new-post", categories=["r", " "], today=date(2024, 5, 1))

    path = result.created[0]
    document = load_content_document(path)
    assert document.meta.title == "New Post"
    assert document.meta.date == "2024-05-01"
    assert document.meta.categories == ["r"]
    assert document.slug == "new-post"


def test_scaffold_force_overwrites(config: Config) -> None:
    scaffold_post(config, "again")
    with pytest.raises(ScaffoldError):
        scaffold_post(config, "again")

    result = scaffold_post(config, "again", title="Again", force=True)
    assert result.updated and not result.created


def test_init_project_round_trips_through_loader(tmp_path: Path) -> None:
    result = init_project(tmp_path, domain="blog.example.org")

    config = load_config(tmp_path)
    assert result.created == [tmp_path / "quartoship.yml"]
    assert config.domain.name == "blog.example.org"
    assert config.runtime.version == "4.2.0"
    assert config.output_dir == (tmp_path / "docs").resolve()


def test_init_project_without_domain_leaves_a_note(tmp_path: Path) -> None:
    result = init_project(tmp_path)

    assert load_config(tmp_path).domain.name is None
    assert any("domain.name" in note for note in result.notes)
