"""
Pipeline package: stage kinds and the fail-fast runner.
"""

from buildforge.core.pipeline.runner import (
    BuildRunner,
    PipelineOutcome,
    PipelineStatus,
    PlannedStage,
    StageReport,
    StageStatus,
)
from buildforge.core.pipeline.stages import (
    BuildStage,
    ParallelGroup,
    SequentialStage,
    StageOutput,
    StageTask,
)

__all__ = [
    "BuildRunner",
    "BuildStage",
    "ParallelGroup",
    "PipelineOutcome",
    "PipelineStatus",
    "PlannedStage",
    "SequentialStage",
    "StageOutput",
    "StageReport",
    "StageStatus",
    "StageTask",
]
