"""Push a rendered, stamped output directory to the hosting branch."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

import yaml

from .config import Config, PublishBackend
from .errors import Stage, StageError
from .runner import CommandError, CommandRunner, redact, run_checked
from .stamp import MarkerError, require_domain_marker

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
QUARTO_PAGES_BRANCH = "gh-pages"
QUARTO_PROJECT_FILES = ("_quarto.yml", "_quarto.yaml")
QUARTO_DEFAULT_OUTPUT_DIR = "_site"


class PublishError(StageError):
    """Raised when the hosting target cannot be updated."""

    stage = Stage.PUBLISH


@dataclass(slots=True)
class PublishResult:
    """Where the site went and what was pushed."""

    backend: str
    branch: str
    remote: str
    files: int
    commit: str | None = None


class Publisher(Protocol):
    def publish(self, output_dir: Path, *, sha: str | None = None) -> PublishResult:
        ...


class GitPublisher:
    """Replace the hosting branch with a single commit holding the output tree."""

    def __init__(self, config: Config, runner: CommandRunner, token: str | None, remote: str) -> None:
        self._config = config
        self._runner = runner
        self._token = token
        self._remote = remote

    @property
    def display_remote(self) -> str:
        return redact(self._remote, [self._token or ""])

    def publish(self, output_dir: Path, *, sha: str | None = None) -> PublishResult:
        settings = self._config.publish
        secrets = [self._token or ""]
        with tempfile.TemporaryDirectory(prefix="quartoship-publish-") as tmp:
            worktree = Path(tmp) / "site"
            shutil.copytree(output_dir, worktree)
            if settings.nojekyll:
                (worktree / ".nojekyll").write_bytes(b"")
            files = sum(1 for path in worktree.rglob("*") if path.is_file())

            message = settings.commit_message.format(sha=(sha or "local")[:12])
            steps = [
                ["git", "init", "-q", f"--initial-branch={settings.branch}"],
                ["git", "config", "user.name", settings.author_name],
                ["git", "config", "user.email", settings.author_email],
                ["git", "add", "--all"],
                ["git", "commit", "-q", "-m", message],
            ]
            try:
                for step in steps:
                    run_checked(self._runner, step, cwd=worktree, secrets=secrets)
                commit = run_checked(
                    self._runner, ["git", "rev-parse", "HEAD"], cwd=worktree, secrets=secrets
                ).stdout.strip()
                logger.info("Pushing %d file(s) to %s (%s)", files, settings.branch, self.display_remote)
                run_checked(
                    self._runner,
                    ["git", "push", "--force", "-q", self._remote, f"HEAD:refs/heads/{settings.branch}"],
                    cwd=worktree,
                    secrets=secrets,
                )
            except FileNotFoundError as exc:
                raise PublishError("git is not installed or not available in PATH.") from exc
            except CommandError as exc:
                raise PublishError(f"Publishing to '{settings.branch}' failed: {exc}") from exc

        return PublishResult(
            backend=PublishBackend.GIT.value,
            branch=settings.branch,
            remote=self.display_remote,
            files=files,
            commit=commit or None,
        )


class QuartoPublisher:
    """Delegate to ``quarto publish gh-pages`` without re-rendering."""

    def __init__(self, config: Config, runner: CommandRunner, token: str, environ: Mapping[str, str]) -> None:
        self._config = config
        self._runner = runner
        self._token = token
        self._environ = environ

    def publish(self, output_dir: Path, *, sha: str | None = None) -> PublishResult:
        config = self._config
        command = [
            config.renderer.executable,
            "publish",
            QUARTO_PAGES_BRANCH,
            "--no-render",
            "--no-prompt",
            "--no-browser",
        ]
        env = dict(self._environ)
        env[config.publish.token_env] = self._token
        env.setdefault("GITHUB_TOKEN", self._token)
        files = sum(1 for path in output_dir.rglob("*") if path.is_file())
        try:
            run_checked(self._runner, command, cwd=config.project_dir, env=env, secrets=[self._token])
        except FileNotFoundError as exc:
            raise PublishError(f"Renderer '{config.renderer.executable}' is not on PATH.") from exc
        except CommandError as exc:
            raise PublishError(f"quarto publish failed: {exc}") from exc
        return PublishResult(
            backend=PublishBackend.QUARTO.value,
            branch=QUARTO_PAGES_BRANCH,
            remote="origin",
            files=files,
        )


def resolve_token(config: Config, environ: Mapping[str, str] | None = None) -> str | None:
    env = os.environ if environ is None else environ
    value = (env.get(config.publish.token_env) or "").strip()
    return value or None


def resolve_remote(config: Config, token: str | None, environ: Mapping[str, str] | None = None) -> str:
    """Return the push URL; ``owner/repo`` remotes become authenticated GitHub URLs."""
    env = os.environ if environ is None else environ
    remote = (config.publish.remote or env.get("GITHUB_REPOSITORY") or "").strip()
    if not remote:
        raise PublishError("No hosting remote configured; set publish.remote or GITHUB_REPOSITORY.")
    if _is_url(remote):
        return remote
    if remote.count("/") != 1:
        raise PublishError(f"publish.remote '{remote}' must be 'owner/repo' or a git URL.")
    if not token:
        raise PublishError(
            f"No token found in ${config.publish.token_env}; a token with write access is required."
        )
    return f"https://x-access-token:{token}@{GITHUB_HOST}/{remote}.git"


def build_publisher(
    config: Config,
    runner: CommandRunner,
    environ: Mapping[str, str] | None = None,
) -> Publisher:
    env = dict(os.environ if environ is None else environ)
    token = resolve_token(config, env)
    if config.publish.backend is PublishBackend.QUARTO:
        check_quarto_target(config)
        if not token:
            raise PublishError(
                f"No token found in ${config.publish.token_env}; a token with write access is required."
            )
        return QuartoPublisher(config, runner, token, env)
    return GitPublisher(config, runner, token, resolve_remote(config, token, env))


def quarto_output_dir(project_dir: Path) -> Path:
    """Return the directory ``quarto publish`` will upload, from the project file."""
    for name in QUARTO_PROJECT_FILES:
        candidate = project_dir / name
        if candidate.is_file():
            break
    else:
        raise PublishError(f"No _quarto.yml in {project_dir}; the quarto backend needs a Quarto project.")
    try:
        data = yaml.safe_load(candidate.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise PublishError(f"Unable to read {candidate}: {exc}") from exc
    project = data.get("project") if isinstance(data, dict) else None
    value = project.get("output-dir") if isinstance(project, dict) else None
    return (project_dir / str(value or QUARTO_DEFAULT_OUTPUT_DIR)).resolve()


def check_quarto_target(config: Config) -> None:
    """``quarto publish gh-pages`` pushes Quarto's own output dir to ``gh-pages`` only."""
    if config.publish.branch != QUARTO_PAGES_BRANCH:
        raise PublishError(
            f"The quarto backend always publishes to '{QUARTO_PAGES_BRANCH}'; "
            f"publish.branch is '{config.publish.branch}'. Use the git backend for other branches."
        )
    published = quarto_output_dir(config.project_dir)
    if published != config.output_dir.resolve():
        raise PublishError(
            f"quarto publish would upload {published}, but the stamped output is {config.output_dir}; "
            "make project.output-dir in _quarto.yml match output_dir."
        )


def check_publish_preconditions(config: Config) -> Path:
    """The output must be rendered and stamped before anything is pushed."""
    output_dir = config.output_dir
    if not output_dir.is_dir() or not any(output_dir.iterdir()):
        raise PublishError(f"Nothing to publish: {output_dir} is missing or empty.")
    try:
        return require_domain_marker(output_dir, config.domain.name, config.domain.marker_filename)
    except MarkerError as exc:
        raise PublishError(f"Refusing to publish: {exc}") from exc


def publish_site(
    config: Config,
    runner: CommandRunner,
    *,
    sha: str | None = None,
    environ: Mapping[str, str] | None = None,
    publisher: Publisher | None = None,
) -> PublishResult:
    check_publish_preconditions(config)
    active = publisher or build_publisher(config, runner, environ)
    result = active.publish(config.output_dir, sha=sha)
    logger.info("Published %d file(s) to %s on %s", result.files, result.branch, result.remote)
    return result


def _is_url(remote: str) -> bool:
    return "://" in remote or remote.startswith("git@") or remote.startswith(("/", "./", "../"))
