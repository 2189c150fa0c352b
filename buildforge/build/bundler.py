"""
esbuild Driver.

Translates an ArtifactSpec into an esbuild command line and runs it through
the configured package runner (``pnpm exec esbuild ...`` by default).

    bundler = EsbuildBundler(config, runner)
    output = bundler.bundle(spec)
"""

from __future__ import annotations

from typing import List

from buildforge.build.artifacts import ArtifactSpec
from buildforge.core.config.build import BuildConfig
from buildforge.core.exceptions import BundleError
from buildforge.core.logging import get_logger
from buildforge.core.pipeline.stages import StageOutput
from buildforge.core.process import CommandRunner

logger = get_logger(__name__)


def build_esbuild_args(spec: ArtifactSpec) -> List[str]:
    """esbuild CLI arguments for one spec (without the executable)."""
    args = [
        str(spec.entry_point),
        "--bundle",
        f"--outfile={spec.output_path}",
        f"--platform={spec.target_platform.value}",
        f"--format={spec.module_format.value}",
        f"--target={spec.target}",
    ]
    if spec.minify:
        args.append("--minify")
    args.append(f"--tree-shaking={'true' if spec.tree_shaking else 'false'}")
    if spec.sourcemap:
        args.append("--sourcemap")
    args.extend(f"--external:{module}" for module in spec.external_modules)
    args.extend(f"--loader:{ext}={loader}" for ext, loader in sorted(spec.loaders.items()))
    return args


class EsbuildBundler:
    """Runs esbuild for ArtifactSpecs."""

    def __init__(self, config: BuildConfig, runner: CommandRunner) -> None:
        self._config = config
        self._runner = runner

    def command_for(self, spec: ArtifactSpec) -> List[str]:
        return [*self._config.tools.node_tool(self._config.tools.esbuild), *build_esbuild_args(spec)]

    def bundle(self, spec: ArtifactSpec) -> StageOutput:
        """Produce one bundle.

        Raises:
            BundleError: If the entry point is missing, esbuild fails, or no
                output file was written.
        """
        if not spec.entry_point.is_file():
            raise BundleError(
                f"Entry point not found: {spec.entry_point}",
                entry_point=spec.entry_point,
                output_path=spec.output_path,
            )

        logger.info("Bundling", artifact=spec.name, format=spec.module_format.value)
        result = self._runner.run(self.command_for(spec), cwd=self._config.root)
        if not result.ok:
            raise BundleError(
                f"esbuild failed for {spec.entry_point} (exit {result.returncode})"
                + (f"\n{result.diagnostic}" if result.diagnostic else ""),
                entry_point=spec.entry_point,
                output_path=spec.output_path,
                diagnostic=result.diagnostic,
            )
        if not spec.output_path.is_file():
            raise BundleError(
                f"esbuild reported success but wrote no file: {spec.output_path}",
                entry_point=spec.entry_point,
                output_path=spec.output_path,
            )

        logger.debug("Bundle written", artifact=spec.name, path=spec.output_path)
        return StageOutput(artifacts=(spec.output_path,), note=spec.name)
