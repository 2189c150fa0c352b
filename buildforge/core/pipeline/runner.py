"""
Fail-Fast Build Runner.

Executes an ordered list of BuildStages. The runner holds one piece of
state during a run, the index of the current stage, which only ever moves
forward. A run ends in one of two terminal states:

    Succeeded                 every stage completed
    Failed(stage, cause)      the named stage raised ``cause``

There is no resume or retry. A failed run is restarted from the first stage
by the caller. Artifacts written before the failure stay on disk, except
``stale_outputs`` declared by stages that never ran. A failure in a stage
that writes nothing (``touches_outputs=False``) removes nothing.

Usage
-----
    runner = BuildRunner(stages, max_workers=4)
    outcome = runner.run()
    sys.exit(outcome.exit_code)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from buildforge.core.logging import BuildLogger, get_logger
from buildforge.core.pipeline.stages import BuildStage, StageOutput

logger = get_logger(__name__)

MAX_PIPELINE_STAGES = 32


class StageStatus(str, Enum):
    """Per-stage result."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_RUN = "not_run"


class PipelineStatus(str, Enum):
    """Runner state."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class StageReport:
    """Record of one stage in a run."""

    name: str
    index: int
    kind: str
    status: StageStatus
    duration_seconds: float = 0.0
    artifacts: List[Path] = field(default_factory=list)
    note: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "index": self.index,
            "kind": self.kind,
            "status": self.status.value,
            "duration_seconds": round(self.duration_seconds, 3),
            "artifacts": [str(path) for path in self.artifacts],
            "note": self.note,
            "error": self.error,
        }


@dataclass
class PipelineOutcome:
    """Terminal state of a run.

    Attributes:
        status: SUCCEEDED or FAILED.
        reports: One report per stage, in pipeline order.
        produced: Every artifact written by a successful stage, in order.
        failed_stage: Name of the stage that aborted the run.
        cause: Exception raised by that stage.
        last_stage_index: Index of the last stage entered.
    """

    status: PipelineStatus
    reports: List[StageReport]
    produced: List[Path]
    failed_stage: Optional[str] = None
    cause: Optional[BaseException] = None
    last_stage_index: int = -1
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "failed_stage": self.failed_stage,
            "error": str(self.cause) if self.cause is not None else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "stages": [report.to_dict() for report in self.reports],
            "produced": [str(path) for path in self.produced],
        }


@dataclass(frozen=True)
class PlannedStage:
    """One line of a dry-run plan."""

    index: int
    name: str
    kind: str
    tasks: List[str]
    description: str = ""


class BuildRunner:
    """Runs stages in order and stops at the first aborting failure.

    Args:
        stages: Pipeline stages, in execution order.
        max_workers: Worker count handed to parallel groups.
        build_logger: Stage timing logger (created if omitted).
    """

    def __init__(
        self,
        stages: Sequence[BuildStage],
        max_workers: int = 1,
        build_logger: Optional[BuildLogger] = None,
    ) -> None:
        if len(stages) > MAX_PIPELINE_STAGES:
            raise ValueError(f"Too many stages: {len(stages)} > {MAX_PIPELINE_STAGES}")
        names = [stage.name for stage in stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate stage names: {', '.join(duplicates)}")

        self._stages = list(stages)
        self._max_workers = max(1, max_workers)
        self._build_logger = build_logger or BuildLogger()
        self._current_stage_index = -1
        self._status = PipelineStatus.PENDING

    @property
    def stages(self) -> List[BuildStage]:
        return list(self._stages)

    @property
    def current_stage_index(self) -> int:
        return self._current_stage_index

    @property
    def status(self) -> PipelineStatus:
        return self._status

    def plan(self) -> List[PlannedStage]:
        """Describe what run() would do, without doing it."""
        return [
            PlannedStage(
                index=index,
                name=stage.name,
                kind=stage.kind,
                tasks=stage.task_names,
                description=stage.description,
            )
            for index, stage in enumerate(self._stages)
        ]

    def run(self) -> PipelineOutcome:
        """Execute every stage in order.

        Returns:
            PipelineOutcome in a terminal state. Stage failures are recorded
            in the outcome rather than raised.
        """
        if self._status != PipelineStatus.PENDING:
            raise RuntimeError("BuildRunner instances run once; create a new runner")

        self._status = PipelineStatus.RUNNING
        started = time.perf_counter()
        reports: List[StageReport] = []
        produced: List[Path] = []
        failed_stage: Optional[str] = None
        cause: Optional[BaseException] = None

        for index, stage in enumerate(self._stages):
            self._current_stage_index = index
            report, error = self._execute_stage(index, stage)
            reports.append(report)

            if report.status != StageStatus.FAILED:
                produced.extend(report.artifacts)
                continue

            if failed_stage is None:
                failed_stage = stage.name
                cause = error
            if stage.abort_on_failure:
                remaining = self._stages[index + 1 :]
                reports.extend(
                    self._skip_remaining(index + 1, remaining, purge=stage.touches_outputs)
                )
                break

        self._status = (
            PipelineStatus.FAILED if failed_stage is not None else PipelineStatus.SUCCEEDED
        )
        outcome = PipelineOutcome(
            status=self._status,
            reports=reports,
            produced=produced,
            failed_stage=failed_stage,
            cause=cause,
            last_stage_index=self._current_stage_index,
            duration_seconds=time.perf_counter() - started,
        )
        self._build_logger.finish(
            success=outcome.succeeded,
            artifacts=len(produced),
            error=str(cause) if cause is not None else None,
        )
        return outcome

    def _execute_stage(
        self, index: int, stage: BuildStage
    ) -> Tuple[StageReport, Optional[BaseException]]:
        self._build_logger.start_stage(stage.name)
        started = time.perf_counter()
        try:
            output: StageOutput = stage.execute(self._max_workers)
        except Exception as e:
            summary = str(e).splitlines()[0] if str(e) else type(e).__name__
            self._build_logger.fail_stage(summary)
            report = StageReport(
                name=stage.name,
                index=index,
                kind=stage.kind,
                status=StageStatus.FAILED,
                duration_seconds=time.perf_counter() - started,
                error=str(e),
            )
            return report, e

        if output.skipped:
            self._build_logger.log_progress("Stage skipped", note=output.note)
        report = StageReport(
            name=stage.name,
            index=index,
            kind=stage.kind,
            status=StageStatus.SKIPPED if output.skipped else StageStatus.SUCCEEDED,
            duration_seconds=time.perf_counter() - started,
            artifacts=list(output.artifacts),
            note=output.note,
        )
        return report, None

    def _skip_remaining(
        self, start: int, remaining: Sequence[BuildStage], purge: bool = True
    ) -> List[StageReport]:
        reports = []
        for offset, stage in enumerate(remaining):
            if purge:
                for path in stage.stale_outputs:
                    _remove_stale(path, stage.name)
            reports.append(
                StageReport(
                    name=stage.name,
                    index=start + offset,
                    kind=stage.kind,
                    status=StageStatus.NOT_RUN,
                )
            )
        return reports


def _remove_stale(path: Path, stage_name: str) -> None:
    if not path.is_file():
        return
    path.unlink()
    logger.info("Removed stale output", stage=stage_name, path=path)
