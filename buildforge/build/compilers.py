"""
Style and Server Compilers.

Both wrap a single external compiler invocation and turn a non-zero exit
into a CompileError carrying the compiler's own output.

    StyleCompiler:   pnpm exec tailwindcss -i <in> -o <out> --minify
    ServerCompiler:  pnpm exec tsc
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from buildforge.core.config.build import BuildConfig
from buildforge.core.exceptions import CompileError
from buildforge.core.logging import get_logger
from buildforge.core.pipeline.stages import StageOutput
from buildforge.core.process import CommandResult, CommandRunner

logger = get_logger(__name__)


def _compile_failure(label: str, result: CommandResult) -> CompileError:
    message = f"{label} failed (exit {result.returncode}): {result.display}"
    if result.diagnostic:
        message += f"\n{result.diagnostic}"
    return CompileError(message, diagnostic=result.diagnostic)


class StyleCompiler:
    """Produces the single minified stylesheet."""

    def __init__(self, config: BuildConfig, runner: CommandRunner) -> None:
        self._config = config
        self._runner = runner

    @property
    def output_path(self) -> Path:
        return self._config.resolve(self._config.paths.style_output)

    def command(self) -> List[str]:
        paths = self._config.paths
        return [
            *self._config.tools.node_tool(self._config.tools.tailwind),
            "-i",
            paths.style_input,
            "-o",
            paths.style_output,
            "--minify",
        ]

    def compile(self) -> StageOutput:
        """Run tailwind.

        Raises:
            CompileError: On non-zero exit or when no stylesheet was written.
        """
        result = self._runner.run(self.command(), cwd=self._config.root)
        if not result.ok:
            raise _compile_failure("Style compilation", result)
        if not self.output_path.is_file():
            raise CompileError(f"Style compiler wrote no output: {self.output_path}")

        logger.info("Compiled styles", output=self.output_path)
        return StageOutput(artifacts=(self.output_path,))


class ServerCompiler:
    """Type-checks and compiles the server sources with tsc.

    A failed compile gates every later stage; its output tree is never
    reported as an artifact.
    """

    def __init__(self, config: BuildConfig, runner: CommandRunner) -> None:
        self._config = config
        self._runner = runner

    def command(self) -> List[str]:
        return self._config.tools.node_tool(self._config.tools.tsc)

    def compile(self) -> StageOutput:
        result = self._runner.run(self.command(), cwd=self._config.root)
        if not result.ok:
            raise _compile_failure("Server compilation", result)

        logger.info("Server compiled")
        return StageOutput(note="type-check passed")
