"""Run reports for the render-and-publish pipeline."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .errors import Stage

REPORT_FILENAME = "pipeline-report.json"


class StageStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunOutcome(str, Enum):
    PUBLISHED = "published"
    UNCHANGED = "unchanged"
    ABORTED = "aborted"


class StageRecord(BaseModel):
    stage: Stage
    status: StageStatus
    duration_seconds: float = 0.0
    detail: str | None = None


class PipelineReport(BaseModel):
    project: str
    commit: str | None = None
    event: str
    started_at: datetime
    finished_at: datetime | None = None
    outcome: RunOutcome | None = None
    stages: list[StageRecord] = Field(default_factory=list)
    output_digest: str | None = None

    def record(
        self,
        stage: Stage,
        status: StageStatus,
        *,
        duration_seconds: float = 0.0,
        detail: str | None = None,
    ) -> StageRecord:
        entry = StageRecord(stage=stage, status=status, duration_seconds=duration_seconds, detail=detail)
        self.stages.append(entry)
        return entry

    def status_of(self, stage: Stage) -> StageStatus | None:
        for entry in self.stages:
            if entry.stage is stage:
                return entry.status
        return None

    @property
    def failed_stage(self) -> Stage | None:
        for entry in self.stages:
            if entry.status is StageStatus.FAILED:
                return entry.stage
        return None

    @property
    def duration_seconds(self) -> float:
        return sum(entry.duration_seconds for entry in self.stages)


def start_report(project: str, event: str, commit: str | None = None) -> PipelineReport:
    return PipelineReport(
        project=project,
        event=event,
        commit=commit,
        started_at=datetime.now(timezone.utc),
    )


def finish_report(report: PipelineReport, outcome: RunOutcome) -> PipelineReport:
    report.outcome = outcome
    report.finished_at = datetime.now(timezone.utc)
    return report


def write_report(report: PipelineReport, cache_dir: Path) -> Path:
    cache_dir.mkdir(parents=True, exist_ok=True)
    target = cache_dir / REPORT_FILENAME
    with target.open("w", encoding="utf-8") as handle:
        json.dump(report.model_dump(mode="json"), handle, ensure_ascii=False, indent=2)
    return target
