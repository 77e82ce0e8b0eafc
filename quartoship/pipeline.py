"""Strictly ordered checkout -> environment -> render -> stamp -> publish chain."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Callable, Iterator, Mapping, TypeVar

from .config import Config
from .environment import prepare_environment, verify_checkout
from .errors import Stage, StageError
from .lock import RunLock
from .publish import Publisher, publish_site
from .render import render_site
from .reporting import (
    PipelineReport,
    RunOutcome,
    StageStatus,
    finish_report,
    start_report,
    write_report,
)
from .runner import CommandRunner, run_subprocess
from .snapshot import snapshot_tree
from .stamp import stamp_domain
from .state import PublishTracker
from .trigger import TriggerEvent

logger = logging.getLogger(__name__)

STAGE_ORDER = (Stage.CHECKOUT, Stage.ENVIRONMENT, Stage.RENDER, Stage.STAMP, Stage.PUBLISH)

T = TypeVar("T")


class PipelineAbort(RuntimeError):
    """Raised when a stage fails; nothing after that stage has run."""

    def __init__(self, stage: Stage, cause: BaseException, report: PipelineReport) -> None:
        super().__init__(f"{stage.value} failed: {cause}")
        self.stage = stage
        self.cause = cause
        self.report = report


def run_pipeline(
    config: Config,
    event: TriggerEvent,
    runner: CommandRunner = run_subprocess,
    *,
    publisher: Publisher | None = None,
    environ: Mapping[str, str] | None = None,
    force: bool = False,
    skip_environment: bool = False,
) -> PipelineReport:
    """Run every stage in order, aborting at the first failure.

    The run lock is held for the whole chain, so a second run for the same
    hosting branch fails fast with ``RunLockedError`` instead of interleaving.
    """
    report = start_report(config.project_name, event.name, event.sha)
    with _run_lock(config, event):
        try:
            outcome = _execute(config, event, runner, report, publisher, environ, force, skip_environment)
        except _StageFailure as failure:
            _skip_remaining(report, failure.stage)
            finish_report(report, RunOutcome.ABORTED)
            write_report(report, config.cache_dir)
            raise PipelineAbort(failure.stage, failure.cause, report) from failure.cause
    finish_report(report, outcome)
    write_report(report, config.cache_dir)
    return report


class _StageFailure(Exception):
    def __init__(self, stage: Stage, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.stage = stage
        self.cause = cause


def _execute(
    config: Config,
    event: TriggerEvent,
    runner: CommandRunner,
    report: PipelineReport,
    publisher: Publisher | None,
    environ: Mapping[str, str] | None,
    force: bool,
    skip_environment: bool,
) -> RunOutcome:
    commit = _run_stage(
        report,
        Stage.CHECKOUT,
        lambda: verify_checkout(config.project_dir, event.sha, runner),
        lambda head: head[:12],
    )
    report.commit = commit

    if skip_environment:
        report.record(Stage.ENVIRONMENT, StageStatus.SKIPPED, detail="provisioned externally")
    else:
        _run_stage(
            report,
            Stage.ENVIRONMENT,
            lambda: prepare_environment(config, runner),
            lambda env: f"{config.runtime.name} {env.runtime_version}, {len(env.packages)} package(s)",
        )

    _run_stage(
        report,
        Stage.RENDER,
        lambda: render_site(config, runner),
        lambda result: f"{len(result.pages)} page(s), {result.file_count} file(s)",
    )

    _run_stage(
        report,
        Stage.STAMP,
        lambda: stamp_domain(config.output_dir, config.domain.name, config.domain.marker_filename),
        lambda path: path.read_text(encoding="utf-8").strip(),
    )

    digest = snapshot_tree(config.output_dir, normalize=False).digest
    report.output_digest = digest
    tracker = PublishTracker(config.cache_dir)
    if config.concurrency.skip_unchanged and not force and tracker.is_unchanged(digest):
        logger.info("Output matches the last published digest; skipping push.")
        report.record(Stage.PUBLISH, StageStatus.SKIPPED, detail="output unchanged since last publish")
        return RunOutcome.UNCHANGED

    _run_stage(
        report,
        Stage.PUBLISH,
        lambda: publish_site(config, runner, sha=commit, environ=environ, publisher=publisher),
        lambda result: f"{result.files} file(s) to {result.branch}",
    )
    tracker.record(commit, digest)
    return RunOutcome.PUBLISHED


def _run_stage(
    report: PipelineReport,
    stage: Stage,
    action: Callable[[], T],
    describe: Callable[[T], str],
) -> T:
    logger.info("Stage %s started", stage.value)
    start = time.perf_counter()
    try:
        value = action()
    except (StageError, OSError) as exc:
        report.record(
            stage,
            StageStatus.FAILED,
            duration_seconds=time.perf_counter() - start,
            detail=str(exc),
        )
        logger.error("Stage %s failed: %s", stage.value, exc)
        raise _StageFailure(stage, exc) from exc
    report.record(
        stage,
        StageStatus.SUCCEEDED,
        duration_seconds=time.perf_counter() - start,
        detail=describe(value),
    )
    return value


def _skip_remaining(report: PipelineReport, failed: Stage) -> None:
    index = STAGE_ORDER.index(failed)
    for stage in STAGE_ORDER[index + 1 :]:
        if report.status_of(stage) is None:
            report.record(stage, StageStatus.SKIPPED, detail=f"not run after {failed.value} failure")


@contextlib.contextmanager
def _run_lock(config: Config, event: TriggerEvent) -> Iterator[None]:
    if not config.concurrency.lock_enabled:
        yield
        return
    lock = RunLock(
        config.cache_dir,
        config.publish.branch,
        stale_after=config.concurrency.stale_after_seconds,
        commit=event.sha,
    )
    with lock:
        yield
