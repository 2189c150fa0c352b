"""
Build Plan Assembly.

Turns a BuildConfig into the ordered stage list:

    validate-versions -> ensure-directories -> copy-assets -> compile-styles
    -> bundle-client (parallel) -> compile-server -> bundle-cli (parallel)
    -> build-native

Every stage aborts the run on failure. Output-path uniqueness across all
bundle specs is checked here, before anything runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from buildforge.build.artifacts import ArtifactSpec, cli_specs, client_specs, ensure_unique_outputs
from buildforge.build.bundles import cli_bundle_group, client_bundle_group
from buildforge.build.compilers import ServerCompiler, StyleCompiler
from buildforge.build.filesystem import copy_assets, ensure_directories
from buildforge.build.native import NativeExecutableBuilder
from buildforge.core.config.build import BuildConfig
from buildforge.core.exceptions import ConfigValidationError
from buildforge.core.logging import BuildLogger
from buildforge.core.pipeline.runner import BuildRunner, PipelineOutcome
from buildforge.core.pipeline.stages import BuildStage, SequentialStage, StageOutput
from buildforge.core.process import CommandRunner, SubprocessRunner
from buildforge.core.versioning.version_sync import VersionSyncValidator


@dataclass
class BuildPlan:
    """Stages of one run plus the bundle specs they were built from."""

    config: BuildConfig
    stages: List[BuildStage]
    client_specs: List[ArtifactSpec] = field(default_factory=list)
    cli_specs: List[ArtifactSpec] = field(default_factory=list)

    @property
    def specs(self) -> List[ArtifactSpec]:
        return [*self.client_specs, *self.cli_specs]

    def runner(self, build_logger: Optional[BuildLogger] = None) -> BuildRunner:
        return BuildRunner(
            self.stages,
            max_workers=self.config.runner.effective_workers,
            build_logger=build_logger,
        )


def _version_stage(config: BuildConfig) -> SequentialStage:
    validator = VersionSyncValidator(config.root, config.versions)

    def validate() -> StageOutput:
        versions = validator.validate()
        if not versions:
            return StageOutput(skipped=True, note="no version sources")
        return StageOutput(note=f"version {versions[0].value}")

    return SequentialStage(
        "validate-versions",
        validate,
        description="Manifest versions agree",
        touches_outputs=False,
    )


def assemble_plan(
    config: BuildConfig,
    runner: Optional[CommandRunner] = None,
    custom_runtime: Optional[bool] = None,
) -> BuildPlan:
    """Build the stage list for ``config``.

    Args:
        config: Resolved configuration.
        runner: Command runner for external tools (subprocess by default).
        custom_runtime: Overrides ``config.custom_runtime`` when given.

    Raises:
        ValidationError: If two bundle specs share an output path.
    """
    runner = runner or SubprocessRunner()
    use_custom_runtime = config.custom_runtime if custom_runtime is None else custom_runtime

    try:
        client = client_specs(config)
        cli = cli_specs(config)
    except PydanticValidationError as e:
        raise ConfigValidationError(f"Invalid artifact settings: {e}") from e
    ensure_unique_outputs([*client, *cli])

    paths = config.paths
    directories = [config.resolve(directory) for directory in paths.directories]
    styles = StyleCompiler(config, runner)
    server = ServerCompiler(config, runner)

    stages: List[BuildStage] = [
        _version_stage(config),
        SequentialStage(
            "ensure-directories",
            lambda: ensure_directories(directories),
            description="Create output directories",
        ),
        SequentialStage(
            "copy-assets",
            lambda: copy_assets(
                config.resolve(paths.assets_source), config.resolve(paths.assets_target)
            ),
            description="Copy static assets",
        ),
        SequentialStage("compile-styles", styles.compile, description="Minified stylesheet"),
        client_bundle_group(config, runner, client),
        SequentialStage("compile-server", server.compile, description="Type-check server"),
        cli_bundle_group(config, runner, cli),
    ]

    if config.native.enabled:
        native = NativeExecutableBuilder(config, runner, custom_runtime=use_custom_runtime)
        stages.append(
            SequentialStage(
                "build-native",
                native.build,
                description="Native executable (skipped when present)",
            )
        )

    return BuildPlan(config=config, stages=stages, client_specs=client, cli_specs=cli)


def run_build(
    config: BuildConfig,
    runner: Optional[CommandRunner] = None,
    custom_runtime: Optional[bool] = None,
) -> PipelineOutcome:
    """Assemble and run the full pipeline."""
    plan = assemble_plan(config, runner, custom_runtime)
    return plan.runner().run()
