"""
Tests for ArtifactSpec construction from configuration.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from buildforge.build.artifacts import (
    ArtifactSpec,
    ModuleFormat,
    TargetPlatform,
    cli_specs,
    client_specs,
    ensure_unique_outputs,
)
from buildforge.core.exceptions import ValidationError


def _spec(name: str, output: str, **kwargs) -> ArtifactSpec:
    defaults = {
        "entry_point": Path("src/a.ts"),
        "target_platform": TargetPlatform.BROWSER,
        "module_format": ModuleFormat.ESM,
        "target": "es2020",
    }
    defaults.update(kwargs)
    return ArtifactSpec(name=name, output_path=Path(output), **defaults)


class TestClientSpecs:
    """Tests for client_specs."""

    def test_four_browser_bundles(self, build_config):
        """Test count, platform and resolved paths."""
        specs = client_specs(build_config)

        assert len(specs) == 4
        assert all(spec.target_platform == TargetPlatform.BROWSER for spec in specs)
        assert all(spec.entry_point.is_absolute() for spec in specs)
        assert all(spec.external_modules == () for spec in specs)
        assert {spec.target for spec in specs} == {"es2020"}

    def test_service_worker_is_iife(self, build_config):
        """Test the worker bundle format differs from the rest."""
        formats = {spec.name: spec.module_format for spec in client_specs(build_config)}

        assert formats["service-worker"] == ModuleFormat.IIFE
        assert formats["client-app"] == ModuleFormat.ESM
        assert formats["client-test"] == ModuleFormat.ESM
        assert formats["client-screencap"] == ModuleFormat.ESM


class TestCliSpecs:
    """Tests for cli_specs."""

    def test_node_executables(self, build_config):
        """Test shared node options and externals."""
        specs = cli_specs(build_config)

        assert [spec.output_path.name for spec in specs] == [
            "vibetunnel-cli",
            "vibetunnel-linux",
            "vibetunnel-linux-cli",
        ]
        for spec in specs:
            assert spec.is_executable
            assert spec.module_format == ModuleFormat.CJS
            assert spec.target == "node18"
            assert spec.external_modules == ("node-pty", "authenticate-pam")
            assert spec.loaders == {".ts": "ts", ".js": "js"}

    def test_linux_variants_tagged(self, build_config):
        """Test OS target is carried as metadata."""
        targets = {spec.name: spec.os_target for spec in cli_specs(build_config)}

        assert targets == {"cli": "any", "linux-server": "linux", "linux-cli": "linux"}


class TestArtifactSpecModel:
    """Tests for model validation."""

    def test_frozen(self):
        """Test specs are immutable."""
        spec = _spec("a", "out/a.js")

        with pytest.raises(PydanticValidationError):
            spec.minify = False

    def test_extra_fields_forbidden(self):
        """Test unknown fields are rejected."""
        with pytest.raises(PydanticValidationError):
            _spec("a", "out/a.js", splitting=True)

    def test_blank_external_rejected(self):
        """Test external module names must be non-empty."""
        with pytest.raises(PydanticValidationError, match="must not be empty"):
            _spec("a", "out/a.js", external_modules=("node-pty", " "))


class TestEnsureUniqueOutputs:
    """Tests for ensure_unique_outputs."""

    def test_distinct_paths_pass(self):
        """Test no error for distinct outputs."""
        ensure_unique_outputs([_spec("a", "out/a.js"), _spec("b", "out/b.js")])

    def test_duplicate_paths_rejected(self):
        """Test both owners are named."""
        with pytest.raises(ValidationError) as exc_info:
            ensure_unique_outputs(
                [_spec("a", "out/x.js"), _spec("b", "out/y.js"), _spec("c", "out/x.js")]
            )

        assert "out/x.js <- a, c" in str(exc_info.value)

    def test_default_config_has_unique_outputs(self, build_config):
        """Test the built-in layout never clashes."""
        ensure_unique_outputs([*client_specs(build_config), *cli_specs(build_config)])
