"""
Client and CLI Bundle Groups.

Each bundle is an independent task; a group runs them together and raises
one BundleError listing every failed entry point.

Client group
    Four browser bundles with shared production options. The service
    worker is emitted as IIFE, since worker contexts cannot resolve module
    imports while installing.

CLI group
    Three node executables. After esbuild each output gets exactly one
    interpreter directive and mode 0755, then its externals are checked.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from buildforge.build.artifacts import ArtifactSpec
from buildforge.build.bundler import EsbuildBundler
from buildforge.build.interpreter import normalize_interpreter
from buildforge.core.config.build import BuildConfig
from buildforge.core.exceptions import BundleError
from buildforge.core.logging import get_logger
from buildforge.core.pipeline.stages import ParallelGroup, StageOutput, StageTask
from buildforge.core.process import CommandRunner

logger = get_logger(__name__)


def inlined_marker(module: str) -> str:
    """Path fragment esbuild leaves behind when it inlines a package."""
    return f"node_modules/{module}/"


def _require_pattern(module: str) -> "re.Pattern[str]":
    return re.compile(r"""require\(\s*["']""" + re.escape(module) + r"""["']\s*\)""")


def verify_externals(spec: ArtifactSpec) -> List[str]:
    """Check that external modules were left unresolved.

    Returns:
        Externals the bundle never requires (allowed, logged as a warning).

    Raises:
        BundleError: If any external module was inlined into the bundle.
    """
    content = spec.output_path.read_text(encoding="utf-8", errors="replace")

    inlined = [m for m in spec.external_modules if inlined_marker(m) in content]
    if inlined:
        raise BundleError(
            f"External module(s) inlined into {spec.output_path.name}: {', '.join(inlined)}",
            entry_point=spec.entry_point,
            output_path=spec.output_path,
        )

    unreferenced = [
        m for m in spec.external_modules if not _require_pattern(m).search(content)
    ]
    for module in unreferenced:
        logger.warning("External module not required by bundle", artifact=spec.name, module=module)
    return unreferenced


class ClientBundleTask:
    """Bundle one browser entry point."""

    def __init__(self, bundler: EsbuildBundler, spec: ArtifactSpec) -> None:
        self.bundler = bundler
        self.spec = spec

    def __call__(self) -> StageOutput:
        return self.bundler.bundle(self.spec)


class CliBundleTask:
    """Bundle one CLI entry point and turn it into an executable."""

    def __init__(
        self,
        bundler: EsbuildBundler,
        spec: ArtifactSpec,
        directive: str,
        check_externals: bool = True,
    ) -> None:
        self.bundler = bundler
        self.spec = spec
        self.directive = directive
        self.check_externals = check_externals

    def __call__(self) -> StageOutput:
        output = self.bundler.bundle(self.spec)
        normalize_interpreter(self.spec.output_path, self.directive)
        if self.check_externals:
            verify_externals(self.spec)
        logger.info("Executable ready", artifact=self.spec.name, path=self.spec.output_path)
        return output


def client_bundle_group(
    config: BuildConfig,
    runner: CommandRunner,
    specs: Sequence[ArtifactSpec],
) -> ParallelGroup:
    bundler = EsbuildBundler(config, runner)
    return ParallelGroup(
        name="bundle-client",
        tasks=tuple(
            StageTask(spec.name, ClientBundleTask(bundler, spec), str(spec.output_path))
            for spec in specs
        ),
        error_factory=BundleError.from_failures,
        description="Browser bundles",
    )


def cli_bundle_group(
    config: BuildConfig,
    runner: CommandRunner,
    specs: Sequence[ArtifactSpec],
) -> ParallelGroup:
    bundler = EsbuildBundler(config, runner)
    return ParallelGroup(
        name="bundle-cli",
        tasks=tuple(
            StageTask(
                spec.name,
                CliBundleTask(
                    bundler, spec, config.cli.interpreter, config.cli.verify_externals
                ),
                str(spec.output_path),
            )
            for spec in specs
        ),
        error_factory=BundleError.from_failures,
        description="Command-line executables",
        stale_outputs=tuple(spec.output_path for spec in specs),
    )
