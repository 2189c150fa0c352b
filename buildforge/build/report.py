"""Build report export."""

from __future__ import annotations

import json
import platform
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from buildforge import __version__
from buildforge.core.config.build import BuildConfig
from buildforge.core.exceptions import IOError
from buildforge.core.pipeline.runner import PipelineOutcome


def build_report(outcome: PipelineOutcome, config: BuildConfig) -> Dict[str, Any]:
    """Serializable summary of a run."""
    report = outcome.to_dict()
    report.update(
        {
            "timestamp": datetime.now().isoformat(),
            "buildforge_version": __version__,
            "python_version": sys.version.split()[0],
            "platform": platform.system().lower(),
            "root": str(config.root),
            "custom_runtime": config.custom_runtime,
        }
    )
    return report


def write_report(outcome: PipelineOutcome, config: BuildConfig, path: Path) -> Path:
    """Write the run report as JSON."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(build_report(outcome, config), f, indent=2)
    except OSError as e:
        raise IOError(f"Could not write build report {path}: {e}", path=path) from e
    return path
