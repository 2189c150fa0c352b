"""
Tests for Exception Hierarchy.

All BuildForge exceptions inherit from BuildForgeError and carry an error
code, an explanation and fix suggestions for the CLI error panel.

Organization
------------
- TestBaseException: BuildForgeError
- TestStageExceptions: ValidationError, IOError, CompileError, NativeBuildError
- TestBundleError: aggregation of parallel failures
- TestErrorInfo: get_error_info / get_root_cause
"""

import builtins

import pytest

from buildforge.core.exceptions import (
    BuildForgeError,
    BundleError,
    CompileError,
    ConfigValidationError,
    IOError,
    NativeBuildError,
    StageGroupError,
    TaskFailure,
    ToolNotFoundError,
    ValidationError,
    get_error_info,
    get_root_cause,
)


class TestBaseException:
    """Tests for BuildForgeError base exception."""

    def test_create_base_exception(self):
        """Test creating base BuildForgeError."""
        error = BuildForgeError("test error")

        assert str(error) == "test error"
        assert error.user_message == "test error"
        assert error.error_code == "BF-ERR-000"

    def test_overrides_class_defaults(self):
        """Test per-instance code, reason and fixes."""
        error = BuildForgeError(
            "boom", error_code="BF-X-001", why_it_happened="because", how_to_fix=["retry"]
        )

        assert error.error_code == "BF-X-001"
        assert error.why_it_happened == "because"
        assert error.how_to_fix == ["retry"]
        assert BuildForgeError.error_code == "BF-ERR-000"

    @pytest.mark.parametrize(
        "exc_type",
        [ValidationError, ConfigValidationError, IOError, CompileError, BundleError,
         NativeBuildError, ToolNotFoundError, StageGroupError],
    )
    def test_all_catchable_as_base(self, exc_type):
        """Test that every stage error is a BuildForgeError."""
        with pytest.raises(BuildForgeError):
            raise exc_type("failure")


class TestStageExceptions:
    """Tests for the per-stage error types."""

    def test_config_validation_error_fields(self):
        """Test ConfigValidationError keeps field and value."""
        error = ConfigValidationError("bad workers", field="runner.max_workers", value=0)

        assert isinstance(error, ValidationError)
        assert error.field == "runner.max_workers"
        assert error.value == 0

    def test_io_error_shadows_builtin(self):
        """Test IOError is ours, not the builtin alias of OSError."""
        error = IOError("missing assets", path="src/client/assets")

        assert not isinstance(error, builtins.OSError)
        assert error.path == "src/client/assets"
        assert error.error_code == "BF-IO-001"

    def test_compile_error_keeps_diagnostic(self):
        """Test CompileError stores the compiler output."""
        error = CompileError("tsc failed", diagnostic="src/a.ts(1,1): error TS2322")

        assert error.diagnostic == "src/a.ts(1,1): error TS2322"

    def test_native_build_error_diagnostic_verbatim(self):
        """Test NativeBuildError does not alter the tool output."""
        output = "  gyp ERR! stack\n\tat foo  \n"
        error = NativeBuildError("native failed", diagnostic=output)

        assert error.diagnostic == output


class TestBundleError:
    """Tests for BundleError aggregation."""

    def test_from_failures_lists_every_task(self):
        """Test that all failed tasks appear in the message."""
        failures = [
            TaskFailure("client-app", BundleError("app broke")),
            TaskFailure("service-worker", BundleError("sw broke")),
        ]

        error = BundleError.from_failures("bundle-client", failures)

        message = str(error)
        assert message.startswith("2 bundle(s) failed in bundle-client:")
        assert "client-app: app broke" in message
        assert "service-worker: sw broke" in message
        assert error.failures == tuple(failures)

    def test_single_bundle_error_fields(self):
        """Test entry point and output path attributes."""
        error = BundleError("failed", entry_point="src/cli.ts", output_path="dist/cli")

        assert error.entry_point == "src/cli.ts"
        assert error.output_path == "dist/cli"
        assert error.failures == ()

    def test_stage_group_error_from_failures(self):
        """Test the generic group error."""
        error = StageGroupError.from_failures("group", [TaskFailure("t1", ValueError("x"))])

        assert "1 task(s) failed in group:" in str(error)
        assert "t1: x" in str(error)


class TestErrorInfo:
    """Tests for get_error_info and get_root_cause."""

    def test_info_from_buildforge_error(self):
        """Test that BuildForgeError info comes from the instance."""
        info = get_error_info(CompileError("x"))

        assert info["error_code"] == "BF-COMP-001"
        assert info["how_to_fix"]

    def test_info_for_standard_exception(self):
        """Test lookup of a builtin exception."""
        info = get_error_info(builtins.FileNotFoundError("nope"))

        assert info["error_code"] == "BF-IO-002"

    def test_info_for_subclass_of_known_type(self):
        """Test fallback to a parent type entry."""
        info = get_error_info(builtins.IsADirectoryError("dir"))

        assert info["error_code"] == "BF-SYS-001"

    def test_info_for_unknown_exception(self):
        """Test the generic fallback."""
        info = get_error_info(RuntimeError("?"))

        assert info["error_code"] == "BF-ERR-999"

    def test_root_cause_follows_chain(self):
        """Test that the innermost cause is returned."""
        try:
            try:
                raise builtins.PermissionError("denied")
            except builtins.PermissionError as inner:
                raise IOError("cannot copy") from inner
        except IOError as outer:
            assert isinstance(get_root_cause(outer), builtins.PermissionError)
            assert isinstance(outer.get_root_cause(), builtins.PermissionError)
