"""
Tests for build plan assembly.
"""

import pytest

from buildforge.build.plan import assemble_plan
from buildforge.core.config.build import BuildConfig, EntryConfig
from buildforge.core.exceptions import ConfigValidationError, ValidationError


class TestAssemblePlan:
    """Tests for assemble_plan."""

    def test_stage_order(self, build_config, toolchain):
        """Test the fixed pipeline order."""
        plan = assemble_plan(build_config, toolchain)

        assert [stage.name for stage in plan.stages] == [
            "validate-versions",
            "ensure-directories",
            "copy-assets",
            "compile-styles",
            "bundle-client",
            "compile-server",
            "bundle-cli",
            "build-native",
        ]
        assert all(stage.abort_on_failure for stage in plan.stages)
        assert [stage.kind for stage in plan.stages].count("parallel") == 2

    def test_specs(self, build_config, toolchain):
        """Test seven bundle specs."""
        plan = assemble_plan(build_config, toolchain)

        assert len(plan.client_specs) == 4
        assert len(plan.cli_specs) == 3
        assert len(plan.specs) == 7

    def test_native_disabled(self, build_config, toolchain):
        """Test no native stage when disabled."""
        build_config.native.enabled = False

        plan = assemble_plan(build_config, toolchain)

        assert plan.stages[-1].name == "bundle-cli"

    def test_duplicate_outputs_rejected(self, project_root, toolchain):
        """Test two entries writing the same file."""
        config = BuildConfig.from_dict(
            {
                "cli": {
                    "entries": [
                        {"name": "a", "entry_point": "src/cli.ts", "output_path": "dist/x"},
                        {"name": "b", "entry_point": "src/linux-server.ts", "output_path": "dist/x"},
                    ]
                }
            },
            root=project_root,
        )

        with pytest.raises(ValidationError, match="Duplicate artifact output paths"):
            assemble_plan(config, toolchain)

    def test_blank_entry_name_rejected(self, project_root, toolchain):
        """Test model validation errors become ConfigValidationError."""
        config = BuildConfig(root=project_root)
        config.client.entries = [EntryConfig(name="", entry_point="a.ts", output_path="a.js")]

        with pytest.raises(ConfigValidationError, match="Invalid artifact settings"):
            assemble_plan(config, toolchain)

    def test_runner_uses_effective_workers(self, build_config, toolchain):
        """Test --sequential maps to one worker."""
        build_config.runner.parallel = False

        runner = assemble_plan(build_config, toolchain).runner()

        assert runner._max_workers == 1

    def test_custom_runtime_override(self, build_config, toolchain):
        """Test the argument wins over configuration."""
        build_config.custom_runtime = False

        plan = assemble_plan(build_config, toolchain, custom_runtime=True)
        plan.stages[-1].execute()

        assert toolchain.invocations("--custom-node")
