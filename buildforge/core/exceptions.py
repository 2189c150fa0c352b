"""
BuildForge error taxonomy.

A stage reports failure by raising a BuildForgeError subclass. The runner
records it as the cause of the failed run and the CLI turns it into an
error panel. Three class-level attributes feed that panel and may be
overridden per instance:

- error_code: stable identifier such as "BF-COMP-001"
- why_it_happened: one sentence on the cause
- how_to_fix: list of steps for the user

Hierarchy
---------
    BuildForgeError
    ├── ValidationError
    │   └── ConfigValidationError
    ├── IOError
    ├── CompileError
    ├── BundleError
    ├── NativeBuildError
    ├── ToolNotFoundError
    └── StageGroupError

get_error_info() gives the same three fields for any exception, builtins
included, so unexpected failures still render a useful panel.
"""

from __future__ import annotations

import builtins
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple


def get_root_cause(exc: BaseException) -> BaseException:
    """Innermost exception reached through __cause__ / __context__ links."""
    visited = {id(exc)}
    while True:
        nxt = exc.__cause__ if exc.__cause__ is not None else exc.__context__
        if nxt is None or id(nxt) in visited:
            return exc
        visited.add(id(nxt))
        exc = nxt


class BuildForgeError(Exception):
    """Root of every error a build stage raises."""

    error_code: str = "BF-ERR-000"
    why_it_happened: str = "The build stopped on an unexpected condition"
    how_to_fix: List[str] = ["Read the message above for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        overrides = {
            "error_code": error_code,
            "why_it_happened": why_it_happened,
            "how_to_fix": how_to_fix,
        }
        for name, value in overrides.items():
            if value is not None:
                setattr(self, name, value)

    @property
    def user_message(self) -> str:
        return str(self)

    def get_root_cause(self) -> BaseException:
        return get_root_cause(self)


class ValidationError(BuildForgeError):
    """The source tree is not in a buildable state.

    Raised before any output directory is touched, e.g. for manifests that
    disagree on the version or two artifacts sharing an output path.
    """

    error_code = "BF-VAL-000"
    why_it_happened = "A pre-build check rejected the source tree; nothing was written"
    how_to_fix = [
        "Compare the values named in the message",
        "Make the manifests agree and rebuild",
    ]


class ConfigValidationError(ValidationError):
    """A buildforge.yaml or environment setting has an unusable value.

    ``field`` is the dotted setting name (``runner.max_workers``) and
    ``value`` what was supplied.
    """

    error_code = "BF-VAL-001"
    why_it_happened = "buildforge.yaml or a BUILDFORGE_* variable holds an invalid setting"
    how_to_fix = [
        "Fix or remove the named setting in buildforge.yaml",
        "Unset BUILDFORGE_* variables you did not mean to export",
    ]

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class IOError(BuildForgeError):
    """A source or output path could not be read or written.

    Deliberately named after the builtin it shadows within this module;
    refer to ``builtins.OSError`` for the standard type.
    """

    error_code = "BF-IO-001"
    why_it_happened = "A path the build reads from or writes to was unavailable"
    how_to_fix = [
        "Confirm the path in the message exists",
        "Check ownership of public/ and dist/",
    ]

    def __init__(self, message: str, path: Optional[Path] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.path = path


class _DiagnosticError(BuildForgeError):
    """Carries the failing tool's output unmodified in ``diagnostic``."""

    def __init__(self, message: str, diagnostic: str = "", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.diagnostic = diagnostic


class CompileError(_DiagnosticError):
    """tailwindcss or tsc exited non-zero or wrote nothing."""

    error_code = "BF-COMP-001"
    why_it_happened = "A compiler reported errors, so later stages were not started"
    how_to_fix = [
        "Fix the errors in the compiler output",
        "Iterate with 'pnpm exec tsc' directly",
    ]


@dataclass(frozen=True)
class TaskFailure:
    """One failed task inside a parallel group."""

    task_name: str
    error: BaseException

    def describe(self) -> str:
        return f"{self.task_name}: {self.error}"


def _summarize(kind: str, group_name: str, failures: Sequence[TaskFailure]) -> str:
    header = f"{len(failures)} {kind}(s) failed in {group_name}:"
    return "\n".join([header, *(f"  - {f.describe()}" for f in failures)])


class BundleError(_DiagnosticError):
    """esbuild could not produce an artifact, or the artifact is unusable.

    When raised for a whole group, ``failures`` holds one TaskFailure per
    failed bundle in task order.
    """

    error_code = "BF-BUND-001"
    why_it_happened = "A bundle was not produced; outputs of earlier stages are untouched"
    how_to_fix = [
        "Look for syntax or import errors in the named entry point",
        "Run 'pnpm install' if a dependency cannot be resolved",
        "Add --debug to see the bundler output",
    ]

    def __init__(
        self,
        message: str,
        *,
        entry_point: Optional[Path] = None,
        output_path: Optional[Path] = None,
        failures: Sequence[TaskFailure] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.entry_point = entry_point
        self.output_path = output_path
        self.failures = tuple(failures)

    @classmethod
    def from_failures(cls, group_name: str, failures: Sequence[TaskFailure]) -> "BundleError":
        return cls(_summarize("bundle", group_name, failures), failures=failures)


class NativeBuildError(_DiagnosticError):
    """build-native.js failed or left an artifact missing."""

    error_code = "BF-NAT-001"
    why_it_happened = "The native build did not complete with all three artifacts"
    how_to_fix = [
        "Inspect the native build output shown with this error",
        "Try again without --custom-runtime",
        "Remove native/ to force a rebuild from scratch",
    ]


class ToolNotFoundError(BuildForgeError):
    """An external executable is not installed."""

    error_code = "BF-DEP-001"
    why_it_happened = "A toolchain executable is missing from PATH"
    how_to_fix = [
        "Install Node.js 18+ and pnpm, then run 'pnpm install'",
        "Run 'buildforge doctor' for the full tool list",
    ]


class StageGroupError(BuildForgeError):
    """Default aggregate for a parallel group without its own error type."""

    error_code = "BF-GRP-001"
    why_it_happened = "At least one task of a parallel stage failed"
    how_to_fix = ["Work through the task failures listed in the message"]

    def __init__(self, message: str, failures: Sequence[TaskFailure] = (), **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.failures = tuple(failures)

    @classmethod
    def from_failures(cls, group_name: str, failures: Sequence[TaskFailure]) -> "StageGroupError":
        return cls(_summarize("task", group_name, failures), failures=failures)


def _info(code: str, why: str, *fixes: str) -> Dict[str, Any]:
    return {"error_code": code, "why_it_happened": why, "how_to_fix": list(fixes)}


# Checked in order; subclasses must precede their bases.
STANDARD_ERROR_INFO: Tuple[Tuple[type, Dict[str, Any]], ...] = (
    (builtins.FileNotFoundError, _info(
        "BF-IO-002", "A file or directory the build needs does not exist",
        "Check the path in the message",
        "Run from the project root or pass --root",
    )),
    (builtins.PermissionError, _info(
        "BF-IO-003", "The operating system refused access to a path",
        "Inspect permissions with ls -la",
        "Make sure you own public/ and dist/",
    )),
    (KeyError, _info(
        "BF-CFG-001", "An expected key was absent",
        "Compare buildforge.yaml with the documented sections",
    )),
    (ValueError, _info(
        "BF-VAL-002", "A value had the wrong form",
        "See the message for the accepted format",
    )),
    (OSError, _info(
        "BF-SYS-001", "The operating system reported an error",
        "Check free disk space and permissions",
    )),
)

_UNKNOWN_INFO = _info(
    "BF-ERR-999", "An unexpected error occurred",
    "Read the message above for details",
    "Re-run with --debug to see the full traceback",
)


def get_error_info(exc: BaseException) -> Dict[str, Any]:
    """Code, cause and fixes for ``exc`` as a dict for the error panel."""
    if isinstance(exc, BuildForgeError):
        return {
            "error_code": exc.error_code,
            "why_it_happened": exc.why_it_happened,
            "how_to_fix": exc.how_to_fix,
        }
    for exc_type, info in STANDARD_ERROR_INFO:
        if isinstance(exc, exc_type):
            return info
    return _UNKNOWN_INFO
