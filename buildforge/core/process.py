"""
External Process Execution.

Every toolchain step (tailwind, esbuild, tsc, the native build script) is
an external process. Stages talk to them through a CommandRunner so the
pipeline can be exercised without Node.js installed: tests hand the
stages a fake runner that simulates the tools' outputs.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, Tuple

from buildforge.core.logging import get_logger

logger = get_logger(__name__)

# Conventional shell exit status for "command not found"
COMMAND_NOT_FOUND_EXIT = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    command: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def display(self) -> str:
        """Command line as it would be typed in a shell."""
        return " ".join(self.command)

    @property
    def diagnostic(self) -> str:
        """Tool output, unmodified: stderr first, then stdout."""
        parts = [part for part in (self.stderr, self.stdout) if part]
        return "\n".join(parts)


class CommandRunner(Protocol):
    """Anything that can run a command and report its result."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """CommandRunner backed by subprocess.run.

    Output is captured so failing tools can be reported verbatim. No timeout
    is applied; long-running tools run to completion or failure.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = tuple(str(part) for part in command)
        merged_env = None
        if env is not None:
            merged_env = os.environ.copy()
            merged_env.update(env)

        logger.debug("Running command", command=" ".join(argv), cwd=cwd)
        try:
            completed = subprocess.run(
                list(argv),
                cwd=cwd,
                env=merged_env,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError:
            return CommandResult(
                command=argv,
                returncode=COMMAND_NOT_FOUND_EXIT,
                stderr=f"command not found: {argv[0]}",
            )

        return CommandResult(
            command=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def check_command(command: str) -> Optional[str]:
    """Return the resolved path of a command, or None if it is not on PATH."""
    return shutil.which(command)
