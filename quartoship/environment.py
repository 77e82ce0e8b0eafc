"""Verify the checkout and materialize the render toolchain before rendering."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from .config import Config
from .errors import Stage, StageError
from .runner import CommandError, CommandRunner, run_checked, tail

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"(\d+\.\d+(?:\.\d+)*)")


class CheckoutError(StageError):
    """Raised when the repository is not checked out at the triggering commit."""

    stage = Stage.CHECKOUT


class RuntimeMismatchError(StageError):
    """Raised when the document runtime is missing or not at the pinned version."""

    stage = Stage.ENVIRONMENT


class DependencyInstallError(StageError):
    """Raised when a declared runtime library fails to install."""

    stage = Stage.ENVIRONMENT

    def __init__(self, package: str, message: str) -> None:
        super().__init__(message)
        self.package = package


@dataclass(slots=True)
class EnvironmentReport:
    """What was verified and installed while preparing the environment."""

    runtime_version: str | None = None
    renderer_version: str | None = None
    packages: list[str] = field(default_factory=list)


def verify_checkout(project_dir: Path, expected_sha: str | None, runner: CommandRunner) -> str:
    """Return the checked-out commit, failing unless it matches ``expected_sha``."""
    if not project_dir.is_dir():
        raise CheckoutError(f"Project directory not found: {project_dir}")
    try:
        result = run_checked(runner, ["git", "rev-parse", "HEAD"], cwd=project_dir)
    except FileNotFoundError as exc:
        raise CheckoutError("git is not installed or not available in PATH.") from exc
    except CommandError as exc:
        raise CheckoutError(f"{project_dir} is not a git checkout: {exc}") from exc

    head = result.stdout.strip()
    if expected_sha and head != expected_sha:
        raise CheckoutError(f"Checkout is at {head[:12]} but the triggering commit is {expected_sha[:12]}.")
    logger.info("Checkout verified at %s", head)
    return head


def verify_runtime(config: Config, runner: CommandRunner) -> str:
    runtime = config.runtime
    try:
        result = runner([runtime.executable, "--version"])
    except FileNotFoundError as exc:
        raise RuntimeMismatchError(
            f"{runtime.name} {runtime.version} is required but '{runtime.executable}' is not on PATH."
        ) from exc
    if result.returncode != 0:
        raise RuntimeMismatchError(
            f"'{runtime.executable} --version' exited with status {result.returncode}."
        )

    # Rscript prints its banner on stderr in older releases.
    found = parse_version(f"{result.stdout}\n{result.stderr}")
    if found is None:
        raise RuntimeMismatchError(f"Unable to determine the {runtime.name} version.")
    if found != runtime.version:
        raise RuntimeMismatchError(f"{runtime.name} {runtime.version} is pinned but {found} is installed.")
    logger.info("%s %s available", runtime.name, found)
    return found


def install_dependencies(config: Config, runner: CommandRunner) -> list[str]:
    """Install each declared package in order, stopping at the first failure."""
    runtime = config.runtime
    installed: list[str] = []
    for package in runtime.packages:
        command = [runtime.executable, "-e", install_expression(package, runtime.repos)]
        try:
            run_checked(runner, command)
        except FileNotFoundError as exc:
            raise DependencyInstallError(
                package, f"Cannot install '{package}': '{runtime.executable}' is not on PATH."
            ) from exc
        except CommandError as exc:
            detail = tail(exc.stderr, 5)
            message = f"Failed to install '{package}'"
            if detail:
                message += f": {detail}"
            raise DependencyInstallError(package, message) from exc
        logger.info("Dependency ready: %s", package)
        installed.append(package)
    return installed


def verify_renderer(config: Config, runner: CommandRunner) -> str:
    renderer = config.renderer
    try:
        result = runner([renderer.executable, "--version"])
    except FileNotFoundError as exc:
        raise RuntimeMismatchError(f"Renderer '{renderer.executable}' is not on PATH.") from exc
    if result.returncode != 0:
        raise RuntimeMismatchError(
            f"'{renderer.executable} --version' exited with status {result.returncode}."
        )
    found = parse_version(result.stdout) or result.stdout.strip()
    if renderer.version and found != renderer.version:
        raise RuntimeMismatchError(
            f"{renderer.executable} {renderer.version} is pinned but {found} is installed."
        )
    logger.info("%s %s available", renderer.executable, found)
    return found


def prepare_environment(config: Config, runner: CommandRunner) -> EnvironmentReport:
    """Verify the runtime, install its libraries, then verify the renderer.

    Any failure propagates immediately so a partial environment never renders.
    """
    report = EnvironmentReport()
    report.runtime_version = verify_runtime(config, runner)
    report.packages = install_dependencies(config, runner)
    report.renderer_version = verify_renderer(config, runner)
    return report


def install_expression(package: str, repos: str) -> str:
    check = f"requireNamespace('{package}', quietly = TRUE)"
    return (
        f"if (!{check}) install.packages('{package}', repos = '{repos}'); "
        f"if (!{check}) quit(status = 1)"
    )


def parse_version(text: str) -> str | None:
    match = VERSION_PATTERN.search(text or "")
    return match.group(1) if match else None
