"""
Build Stage Definitions.

A build is an ordered list of stages. Every stage has a name, an action
producing a StageOutput, and an abort_on_failure flag. Stages come in two
kinds:

**SequentialStage**
    One action, run on the calling thread.

**ParallelGroup**
    Several independent tasks run on a thread pool. The group waits for all
    of them to settle, then raises a single error listing every failure so
    independent defects are never hidden behind the first one.

    group = ParallelGroup(
        name="bundle-client",
        tasks=(StageTask("app", build_app), StageTask("sw", build_sw)),
        error_factory=BundleError.from_failures,
    )
    output = group.execute(max_workers=4)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple, Union

from buildforge.core.exceptions import StageGroupError, TaskFailure
from buildforge.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageOutput:
    """What a stage action produced.

    Attributes:
        artifacts: Deployable files written by the action.
        skipped: True when the action decided there was nothing to do.
        note: Short human-readable summary.
    """

    artifacts: Tuple[Path, ...] = ()
    skipped: bool = False
    note: str = ""

    @classmethod
    def merge(cls, outputs: Sequence["StageOutput"], note: str = "") -> "StageOutput":
        """Combine task outputs in order."""
        artifacts: List[Path] = []
        for output in outputs:
            artifacts.extend(output.artifacts)
        skipped = bool(outputs) and all(output.skipped for output in outputs)
        return cls(artifacts=tuple(artifacts), skipped=skipped, note=note)


StageAction = Callable[[], StageOutput]
GroupErrorFactory = Callable[[str, Sequence[TaskFailure]], Exception]


@dataclass(frozen=True)
class StageTask:
    """One independent unit of work inside a ParallelGroup."""

    name: str
    action: StageAction
    description: str = ""


@dataclass(frozen=True)
class SequentialStage:
    """A stage with a single action.

    ``stale_outputs`` lists files this stage would produce. When an earlier
    stage aborts the run, the runner deletes them so leftovers from a
    previous run never look like output of this one.

    A stage with ``touches_outputs=False`` runs before anything is written;
    its failure leaves the tree exactly as it was, stale outputs included.
    """

    name: str
    action: StageAction
    abort_on_failure: bool = True
    description: str = ""
    stale_outputs: Tuple[Path, ...] = ()
    touches_outputs: bool = True

    kind = "sequential"

    @property
    def task_names(self) -> List[str]:
        return [self.name]

    def execute(self, max_workers: int = 1) -> StageOutput:
        return self.action()


@dataclass(frozen=True)
class ParallelGroup:
    """A stage made of independent tasks that may run concurrently."""

    name: str
    tasks: Tuple[StageTask, ...]
    error_factory: GroupErrorFactory = StageGroupError.from_failures
    abort_on_failure: bool = True
    description: str = ""
    stale_outputs: Tuple[Path, ...] = field(default=())
    touches_outputs: bool = True

    kind = "parallel"

    @property
    def task_names(self) -> List[str]:
        return [task.name for task in self.tasks]

    def execute(self, max_workers: int = 1) -> StageOutput:
        """Run every task, wait for all, aggregate failures.

        Outputs and failures are reported in task order regardless of the
        order in which the tasks finished.

        Raises:
            Exception: Built by ``error_factory`` when any task failed.
        """
        outputs: Dict[int, StageOutput] = {}
        failures: Dict[int, TaskFailure] = {}
        workers = max(1, min(max_workers, len(self.tasks)))

        if workers == 1:
            for index, task in enumerate(self.tasks):
                self._run_task(index, task, outputs, failures)
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(task.action): (index, task)
                    for index, task in enumerate(self.tasks)
                }
                for future in as_completed(futures):
                    index, task = futures[future]
                    try:
                        outputs[index] = future.result()
                    except Exception as e:
                        failures[index] = TaskFailure(task.name, e)
                        logger.error("Task failed", group=self.name, task=task.name)

        if failures:
            ordered = [failures[index] for index in sorted(failures)]
            raise self.error_factory(self.name, ordered) from ordered[0].error

        ordered_outputs = [outputs[index] for index in sorted(outputs)]
        return StageOutput.merge(
            ordered_outputs, note=f"{len(self.tasks)} task(s) completed"
        )

    def _run_task(
        self,
        index: int,
        task: StageTask,
        outputs: Dict[int, StageOutput],
        failures: Dict[int, TaskFailure],
    ) -> None:
        try:
            outputs[index] = task.action()
        except Exception as e:
            failures[index] = TaskFailure(task.name, e)
            logger.error("Task failed", group=self.name, task=task.name)


BuildStage = Union[SequentialStage, ParallelGroup]
