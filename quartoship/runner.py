"""Subprocess seam shared by every stage that calls an external tool."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable, Mapping, Protocol, Sequence

REDACTED = "***"


class CommandRunner(Protocol):
    def __call__(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        ...


class CommandError(RuntimeError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        *,
        secrets: Iterable[str] = (),
    ) -> None:
        secret_list = [value for value in secrets if value]
        self.command = [redact(part, secret_list) for part in command]
        self.returncode = returncode
        self.stdout = redact(stdout or "", secret_list)
        self.stderr = redact(stderr or "", secret_list)
        super().__init__(
            f"'{' '.join(self.command)}' exited with status {returncode}"
            + (f": {tail(self.stderr)}" if self.stderr.strip() else "")
        )


def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        list(command),
        cwd=str(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
        check=False,
        capture_output=True,
        text=True,
    )


def run_checked(
    runner: CommandRunner,
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    secrets: Iterable[str] = (),
) -> subprocess.CompletedProcess[str]:
    """Run ``command`` and raise :class:`CommandError` unless it exits cleanly."""
    result = runner(command, cwd=cwd, env=env)
    if result.returncode != 0:
        raise CommandError(command, result.returncode, result.stdout, result.stderr, secrets=secrets)
    return result


def redact(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def tail(text: str, lines: int = 20) -> str:
    """Return the last ``lines`` non-empty lines of tool output."""
    kept = [line for line in text.strip().splitlines() if line.strip()]
    return "\n".join(kept[-lines:])
