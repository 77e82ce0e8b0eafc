from __future__ import annotations

import itertools
import subprocess
from pathlib import Path
from typing import Mapping

from conftest import FakeRunner, fake_quarto_render

from quartoship.config import Config
from quartoship.render import check_determinism
from quartoship.snapshot import normalize_timestamps, snapshot_tree


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_snapshot_ignores_timestamps(tmp_path: Path) -> None:
    first = tmp_path / "a"
    second = tmp_path / "b"
    _write(first / "index.html", '<p>Updated 2024-03-01T10:00:00Z</p><meta name="generator" content="quarto-1.4.550">')
    _write(second / "index.html", '<p>Updated 2024-03-02T11:30:05+02:00</p><meta name="generator" content="quarto-1.4.551">')

    assert snapshot_tree(first).digest == snapshot_tree(second).digest
    assert snapshot_tree(first).diff(snapshot_tree(second)).is_empty


def test_snapshot_diff_reports_content_changes(tmp_path: Path) -> None:
    first = tmp_path / "a"
    second = tmp_path / "b"
    _write(first / "index.html", "<p>one</p>")
    _write(first / "gone.html", "<p>bye</p>")
    _write(second / "index.html", "<p>two</p>")
    _write(second / "new.html", "<p>hi</p>")

    diff = snapshot_tree(first).diff(snapshot_tree(second))

    assert diff.added == ["new.html"]
    assert diff.removed == ["gone.html"]
    assert diff.changed == ["index.html"]


def test_binary_files_hash_verbatim() -> None:
    payload = b"\xff\xd8\xff2024-03-01T10:00:00Z"

    assert normalize_timestamps(payload) == payload


def test_rendering_twice_is_deterministic(config: Config, runner: FakeRunner) -> None:
    diff = check_determinism(config, runner)

    assert diff.is_empty


def test_nondeterministic_renderer_is_detected(config: Config) -> None:
    counter = itertools.count()

    def _render(command: list[str], cwd: Path | None, env: Mapping[str, str] | None) -> subprocess.CompletedProcess[str]:
        result = fake_quarto_render(command, cwd, env)
        (config.output_dir / "search.json").write_text(f'{{"seed": {next(counter)}}}', encoding="utf-8")
        return result

    runner = FakeRunner()
    runner.on(["quarto", "render"], _render)

    diff = check_determinism(config, runner)

    assert diff.changed == ["search.json"]


def test_raw_snapshot_keeps_timestamps(tmp_path: Path) -> None:
    first = tmp_path / "a"
    second = tmp_path / "b"
    _write(first / "index.html", "<p>Meetup starts 2024-05-01 18:00</p>")
    _write(second / "index.html", "<p>Meetup starts 2024-06-15 19:30</p>")

    assert snapshot_tree(first).digest == snapshot_tree(second).digest
    assert snapshot_tree(first, normalize=False).digest != snapshot_tree(second, normalize=False).digest
