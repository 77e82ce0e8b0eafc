from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

import pytest

from quartoship.config import Config, load_config

HEAD_SHA = "0123456789abcdef0123456789abcdef01234567"
DOMAIN = "blog.example.org"

Handler = Callable[[list[str], Path | None, Mapping[str, str] | None], subprocess.CompletedProcess[str]]


@dataclass
class Call:
    command: list[str]
    cwd: Path | None
    env: Mapping[str, str] | None


class FakeRunner:
    """Record commands and answer them from prefix-matched handlers."""

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self._handlers: list[tuple[list[str], Handler]] = []

    def on(self, prefix: Sequence[str], handler: Handler) -> None:
        self._handlers.append((list(prefix), handler))

    def reply(self, prefix: Sequence[str], stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        def _respond(command: list[str], cwd: Path | None, env: Mapping[str, str] | None) -> subprocess.CompletedProcess[str]:
            return subprocess.CompletedProcess(command, returncode, stdout, stderr)

        self.on(prefix, _respond)

    def __call__(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = list(command)
        self.calls.append(Call(cmd, cwd, env))
        for prefix, handler in reversed(self._handlers):
            if cmd[: len(prefix)] == prefix:
                return handler(cmd, cwd, env)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    @property
    def commands(self) -> list[list[str]]:
        return [call.command for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(cmd[: len(prefix)] == list(prefix) for cmd in self.commands)


def fake_quarto_render(command: list[str], cwd: Path | None, env: Mapping[str, str] | None) -> subprocess.CompletedProcess[str]:
    """Mimic ``quarto render``: one HTML page per document, images copied."""
    project = Path(command[2])
    output = project / "docs"
    for source in sorted(project.rglob("*")):
        relative = source.relative_to(project)
        if any(part.startswith((".", "_")) for part in relative.parts) or relative.parts[0] == "docs":
            continue
        if source.suffix == ".qmd":
            target = output / relative.with_suffix(".html")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(
                f"<html><head><title>{source.parent.name}</title></head><body></body></html>\n",
                encoding="utf-8",
            )
        elif source.suffix in {".jpg", ".png"}:
            target = output / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
    return subprocess.CompletedProcess(command, 0, "Output created: docs/index.html\n", "")


def healthy_runner() -> FakeRunner:
    runner = FakeRunner()
    runner.reply(["git", "rev-parse", "HEAD"], stdout=f"{HEAD_SHA}\n")
    runner.reply(["Rscript", "--version"], stdout="Rscript (R) version 4.2.0 (2022-04-22)\n")
    runner.reply(["quarto", "--version"], stdout="1.4.550\n")
    runner.on(["quarto", "render"], fake_quarto_render)
    return runner


def write_post(root: Path, slug: str, header: str, body: str = "Body text.\n") -> Path:
    path = root / "posts" / slug / "index.qmd"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{header}---\n\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    (root / "quartoship.yml").write_text(
        (
            "project_name: Test Blog\n"
            "domain:\n"
            f"  name: {DOMAIN}\n"
            "publish:\n"
            "  remote: owner/blog\n"
        ),
        encoding="utf-8",
    )
    (root / "_quarto.yml").write_text("project:\n  type: website\n  output-dir: docs\n", encoding="utf-8")
    (root / "README.md").write_text("# Blog\n", encoding="utf-8")
    write_post(
        root,
        "first-post",
        'title: "First Post"\nauthor: Ada\ndate: 2024-03-01\ncategories: [r, tutorial]\nimage: image.jpg\n',
    )
    (root / "posts" / "first-post" / "image.jpg").write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    write_post(
        root,
        "second-post",
        'title: "Second Post"\nauthor: Ada\ndate: 2024-04-01\ncategories: [python]\n',
    )
    return root


@pytest.fixture
def config(project: Path) -> Config:
    return load_config(project)


@pytest.fixture
def runner() -> FakeRunner:
    return healthy_runner()
