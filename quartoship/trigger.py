"""Decide whether a source-control event should start a publish run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .config import Config

LOCAL_EVENT = "local"
BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """The event that started the run, as reported by the CI environment."""

    name: str
    ref: str | None = None
    sha: str | None = None
    repository: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TriggerEvent":
        env = os.environ if environ is None else environ
        name = (env.get("GITHUB_EVENT_NAME") or "").strip()
        if not name:
            return cls(name=LOCAL_EVENT, sha=_blank_to_none(env.get("GITHUB_SHA")))
        return cls(
            name=name,
            ref=_blank_to_none(env.get("GITHUB_REF")),
            sha=_blank_to_none(env.get("GITHUB_SHA")),
            repository=_blank_to_none(env.get("GITHUB_REPOSITORY")),
        )

    @property
    def branch(self) -> str | None:
        if self.ref and self.ref.startswith(BRANCH_REF_PREFIX):
            return self.ref[len(BRANCH_REF_PREFIX) :]
        return None

    @property
    def is_local(self) -> bool:
        return self.name == LOCAL_EVENT


@dataclass(frozen=True, slots=True)
class TriggerDecision:
    should_run: bool
    reason: str


def evaluate_trigger(event: TriggerEvent, config: Config, *, allow_local: bool = False) -> TriggerDecision:
    """Only pushes to the configured primary branch run the pipeline."""
    if event.is_local:
        if allow_local:
            return TriggerDecision(True, "local run requested explicitly")
        return TriggerDecision(False, "no CI event detected; pass --local to run outside CI")

    if event.name not in config.trigger.events:
        return TriggerDecision(False, f"event '{event.name}' does not trigger publishing")

    branch = event.branch
    if branch is None:
        return TriggerDecision(False, f"ref '{event.ref or ''}' is not a branch")
    if branch != config.trigger.branch:
        return TriggerDecision(
            False,
            f"push to '{branch}' ignored; only '{config.trigger.branch}' publishes",
        )
    return TriggerDecision(True, f"{event.name} to '{branch}'")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None
