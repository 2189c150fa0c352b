"""
Native Executable Builder.

The native build takes minutes, so it is skipped when all three native
artifacts already exist. Only presence is checked, never content or
timestamps: this is a convenience for iterative local builds, not a cache.
Removing any one artifact forces a full rebuild.

    builder = NativeExecutableBuilder(config, runner, custom_runtime=True)
    builder.build()   # node build-native.js --custom-node, or a skip
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from buildforge.core.config.build import BuildConfig, NativeConfig
from buildforge.core.exceptions import NativeBuildError
from buildforge.core.logging import get_logger
from buildforge.core.pipeline.stages import StageOutput
from buildforge.core.process import CommandRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class NativeArtifactSet:
    """The executable, the native extension module, and the spawn helper."""

    executable: Path
    extension_module: Path
    spawn_helper: Path

    @classmethod
    def from_config(cls, root: Path, native: NativeConfig) -> "NativeArtifactSet":
        directory = root / native.directory
        return cls(
            executable=directory / native.executable,
            extension_module=directory / native.extension_module,
            spawn_helper=directory / native.spawn_helper,
        )

    @property
    def paths(self) -> Tuple[Path, Path, Path]:
        return (self.executable, self.extension_module, self.spawn_helper)

    def labels(self) -> Dict[str, Path]:
        return {
            f"{self.executable.name} executable": self.executable,
            self.extension_module.name: self.extension_module,
            self.spawn_helper.name: self.spawn_helper,
        }

    def missing(self) -> List[Path]:
        return [path for path in self.paths if not path.exists()]

    def all_present(self) -> bool:
        return not self.missing()


class NativeExecutableBuilder:
    """Build-or-skip for the native artifact set.

    Args:
        config: Build configuration.
        runner: Executes the native build script.
        custom_runtime: Build against the reduced-size runtime.
    """

    def __init__(
        self, config: BuildConfig, runner: CommandRunner, custom_runtime: bool = False
    ) -> None:
        self._config = config
        self._runner = runner
        self._custom_runtime = custom_runtime
        self.artifacts = NativeArtifactSet.from_config(config.root, config.native)

    def command(self) -> List[str]:
        native = self._config.native
        command = [self._config.tools.node, native.build_script]
        if self._custom_runtime:
            command.append(native.custom_runtime_flag)
        return command

    def build(self) -> StageOutput:
        """Skip if every artifact exists, otherwise run the native build.

        Raises:
            NativeBuildError: If the build script fails or leaves an artifact
                missing. The script's output is kept verbatim.
        """
        if self.artifacts.all_present():
            logger.info("Native binaries already exist, skipping build")
            for label in self.artifacts.labels():
                logger.info(f"  - {label}: ✓")
            return StageOutput(skipped=True, note="native artifacts present")

        missing = self.artifacts.missing()
        logger.info(
            "Building native executable",
            runtime="custom" if self._custom_runtime else "system",
            missing=", ".join(path.name for path in missing),
        )

        result = self._runner.run(self.command(), cwd=self._config.root)
        if not result.ok:
            raise NativeBuildError(
                f"Native build failed (exit {result.returncode}): {result.display}"
                + (f"\n{result.diagnostic}" if result.diagnostic else ""),
                diagnostic=result.diagnostic,
            )

        still_missing = self.artifacts.missing()
        if still_missing:
            raise NativeBuildError(
                "Native build finished but artifacts are missing: "
                + ", ".join(str(path) for path in still_missing),
                diagnostic=result.diagnostic,
            )

        if result.diagnostic:
            logger.debug("Native build output", output=result.diagnostic)
        return StageOutput(artifacts=self.artifacts.paths, note="native artifacts built")
