"""
Output Tree Preparation.

Two stages that touch only the filesystem:

- ensure_directories: create-if-missing for every output directory
- copy_assets: recursive copy of static assets, newer sources always win
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Sequence

from buildforge.core.exceptions import IOError
from buildforge.core.logging import get_logger
from buildforge.core.pipeline.stages import StageOutput

logger = get_logger(__name__)


def ensure_directories(directories: Sequence[Path]) -> StageOutput:
    """Create each directory (and parents) unless it already exists.

    Raises:
        IOError: If a path exists as a file or cannot be created.
    """
    created: List[Path] = []
    for directory in directories:
        if directory.is_dir():
            continue
        if directory.exists():
            raise IOError(f"Output path exists and is not a directory: {directory}", path=directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOError(f"Could not create directory {directory}: {e}", path=directory) from e
        created.append(directory)
        logger.debug("Created directory", path=directory)

    return StageOutput(note=f"{len(created)} created, {len(directories) - len(created)} existing")


def copy_assets(source: Path, target: Path) -> StageOutput:
    """Copy the asset tree into the output tree, overwriting existing files.

    Raises:
        IOError: If the source is missing or a file cannot be copied.
    """
    if not source.is_dir():
        raise IOError(f"Asset directory not found: {source}", path=source)

    copied = 0
    try:
        for path in sorted(source.rglob("*")):
            destination = target / path.relative_to(source)
            if path.is_dir():
                destination.mkdir(parents=True, exist_ok=True)
                continue
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, destination)
            copied += 1
    except OSError as e:
        raise IOError(f"Could not copy assets from {source}: {e}", path=source) from e

    logger.info("Copied assets", source=source, target=target, files=copied)
    return StageOutput(note=f"{copied} file(s) copied")
