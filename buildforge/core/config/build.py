"""
Build configuration dataclasses.

BuildConfig aggregates every setting the pipeline needs. It is created once
by load_config() and passed to the stage factories and the runner; no stage
reads the environment on its own.

    BuildConfig
    ├── PathsConfig       # output directories, assets, stylesheet
    ├── ToolsConfig       # package runner and tool executables
    ├── ClientConfig      # browser bundle options and entry points
    ├── CliConfig         # CLI bundle options, externals, interpreter line
    ├── NativeConfig      # native artifact names and build script
    ├── VersionSource[]   # manifests that must agree on the version
    ├── RunnerConfig      # parallel group worker count
    └── ServeConfig       # server launcher defaults
"""

import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from buildforge.core.exceptions import ConfigValidationError

MODULE_FORMATS = ("esm", "iife", "cjs")
OS_TARGETS = ("any", "linux")
MAX_WORKERS_LIMIT = 32
SECTIONS = ("paths", "tools", "client", "cli", "native", "versions", "runner", "serve", "debug")


@dataclass
class EntryConfig:
    """One bundle entry point and where its artifact goes."""

    name: str
    entry_point: str
    output_path: str
    module_format: Optional[str] = None  # overrides the group format
    os_target: str = "any"


@dataclass
class PathsConfig:
    """Output directories and static inputs."""

    public_dir: str = "public"
    bundle_dir: str = "public/bundle"
    dist_dir: str = "dist"
    extra_dirs: List[str] = field(default_factory=list)
    assets_source: str = "src/client/assets"
    assets_target: str = "public"
    style_input: str = "src/client/styles.css"
    style_output: str = "public/bundle/styles.css"

    def __post_init__(self) -> None:
        _require_str_list("paths.extra_dirs", self.extra_dirs)

    @property
    def directories(self) -> List[str]:
        return [self.public_dir, self.bundle_dir, self.dist_dir, *self.extra_dirs]


@dataclass
class ToolsConfig:
    """External executables. Node tools run through the package runner."""

    package_runner: List[str] = field(default_factory=lambda: ["pnpm", "exec"])
    tailwind: str = "tailwindcss"
    esbuild: str = "esbuild"
    tsc: str = "tsc"
    node: str = "node"

    def __post_init__(self) -> None:
        _require_str_list("tools.package_runner", self.package_runner)

    def node_tool(self, name: str) -> List[str]:
        """Command prefix for a tool installed in node_modules."""
        return [*self.package_runner, name]


def _default_client_entries() -> List[EntryConfig]:
    return [
        EntryConfig("client-app", "src/client/app-entry.ts", "public/bundle/client-bundle.js"),
        EntryConfig("client-test", "src/client/test-entry.ts", "public/bundle/test.js"),
        EntryConfig("client-screencap", "src/client/screencap-entry.ts", "public/bundle/screencap.js"),
        # Service workers cannot resolve module imports at install time
        EntryConfig("service-worker", "src/client/sw.ts", "public/sw.js", module_format="iife"),
    ]


def _default_cli_entries() -> List[EntryConfig]:
    return [
        EntryConfig("cli", "src/cli.ts", "dist/vibetunnel-cli"),
        EntryConfig("linux-server", "src/linux-server.ts", "dist/vibetunnel-linux", os_target="linux"),
        EntryConfig("linux-cli", "src/cli.ts", "dist/vibetunnel-linux-cli", os_target="linux"),
    ]


@dataclass
class ClientConfig:
    """Shared production options for browser bundles."""

    target: str = "es2020"
    module_format: str = "esm"
    minify: bool = True
    tree_shaking: bool = True
    entries: List[EntryConfig] = field(default_factory=_default_client_entries)

    def __post_init__(self) -> None:
        _require_list("client.entries", self.entries)


@dataclass
class CliConfig:
    """Shared options for the command-line executables."""

    target: str = "node18"
    module_format: str = "cjs"
    minify: bool = True
    external_modules: List[str] = field(
        default_factory=lambda: ["node-pty", "authenticate-pam"]
    )
    loaders: Dict[str, str] = field(default_factory=lambda: {".ts": "ts", ".js": "js"})
    interpreter: str = "#!/usr/bin/env node"
    verify_externals: bool = True
    entries: List[EntryConfig] = field(default_factory=_default_cli_entries)

    def __post_init__(self) -> None:
        _require_str_list("cli.external_modules", self.external_modules)
        _require_list("cli.entries", self.entries)
        if not isinstance(self.loaders, dict):
            raise ConfigValidationError(
                "cli.loaders must be a mapping", field="cli.loaders", value=self.loaders
            )


@dataclass
class NativeConfig:
    """Native artifact layout and the external procedure that builds it."""

    directory: str = "native"
    executable: str = "vibetunnel"
    extension_module: str = "pty.node"
    spawn_helper: str = "spawn-helper"
    build_script: str = "build-native.js"
    custom_runtime_flag: str = "--custom-node"
    enabled: bool = True


@dataclass
class VersionSource:
    """Where a manifest keeps its version string.

    ``key`` is a dotted JSON path, ``pattern`` a regex whose first group is
    the version. With neither, the whole file (stripped) is the version.
    """

    path: str
    key: Optional[str] = None
    pattern: Optional[str] = None

    def __post_init__(self) -> None:
        if self.pattern is None:
            return
        try:
            groups = re.compile(self.pattern).groups
        except re.error as e:
            raise ConfigValidationError(
                f"Invalid version pattern for {self.path}: {e}",
                field="versions.pattern",
                value=self.pattern,
            ) from e
        if groups < 1:
            raise ConfigValidationError(
                f"Version pattern for {self.path} needs a capture group",
                field="versions.pattern",
                value=self.pattern,
            )


def _default_version_sources() -> List[VersionSource]:
    return [
        VersionSource(path="package.json", key="version"),
        VersionSource(
            path="../mac/VibeTunnel/version.xcconfig",
            pattern=r"^\s*MARKETING_VERSION\s*=\s*(\S+)",
        ),
    ]


@dataclass
class RunnerConfig:
    """Parallel group execution."""

    max_workers: int = 4
    parallel: bool = True

    def __post_init__(self) -> None:
        self.max_workers = _coerce_int("runner.max_workers", self.max_workers)

    @property
    def effective_workers(self) -> int:
        return self.max_workers if self.parallel else 1


@dataclass
class ServeConfig:
    """Defaults for the server-only launcher."""

    server_entry: str = "dist/server/server.js"
    port: int = 4020
    host: str = "0.0.0.0"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        self.port = _coerce_int("serve.port", self.port)


@dataclass
class BuildConfig:
    """Complete, resolved configuration for one build invocation."""

    root: Path = field(default_factory=Path.cwd)
    paths: PathsConfig = field(default_factory=PathsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    cli: CliConfig = field(default_factory=CliConfig)
    native: NativeConfig = field(default_factory=NativeConfig)
    versions: List[VersionSource] = field(default_factory=_default_version_sources)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    serve: ServeConfig = field(default_factory=ServeConfig)
    debug: bool = False
    custom_runtime: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.root = Path(self.root)
        self._validate()

    def _validate(self) -> None:
        if not 1 <= self.runner.max_workers <= MAX_WORKERS_LIMIT:
            raise ConfigValidationError(
                f"runner.max_workers must be between 1 and {MAX_WORKERS_LIMIT}",
                field="runner.max_workers",
                value=self.runner.max_workers,
            )
        for group_name, group in (("client", self.client), ("cli", self.cli)):
            _validate_format(f"{group_name}.module_format", group.module_format)
            if not group.entries:
                raise ConfigValidationError(
                    f"{group_name}.entries must not be empty",
                    field=f"{group_name}.entries",
                )
            for entry in group.entries:
                if entry.module_format is not None:
                    _validate_format(
                        f"{group_name}.entries.{entry.name}.module_format",
                        entry.module_format,
                    )
                if entry.os_target not in OS_TARGETS:
                    raise ConfigValidationError(
                        f"Unknown os_target '{entry.os_target}' for {entry.name}",
                        field=f"{group_name}.entries.{entry.name}.os_target",
                        value=entry.os_target,
                    )
        if not self.cli.interpreter.startswith("#!"):
            raise ConfigValidationError(
                "cli.interpreter must start with '#!'",
                field="cli.interpreter",
                value=self.cli.interpreter,
            )

    def resolve(self, relative: str) -> Path:
        """Absolute path of a project-relative setting."""
        return (self.root / relative).resolve()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a YAML/JSON friendly dictionary."""
        result = asdict(self)
        result["root"] = str(self.root)
        return result

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Section for {cls_type.__name__} must be a mapping",
                value=data,
            )
        valid_keys = {f.name for f in fields(cls_type)}
        unknown = sorted(set(data) - valid_keys)
        if unknown:
            raise ConfigValidationError(
                f"Unknown {cls_type.__name__} setting(s): {', '.join(unknown)}",
                field=unknown[0],
            )
        return dict(data)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], root: Optional[Path] = None
    ) -> "BuildConfig":
        """Create BuildConfig from a parsed buildforge.yaml dictionary."""
        unknown = sorted(set(data) - set(SECTIONS))
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration section(s): {', '.join(unknown)}",
                field=unknown[0],
            )
        try:
            client_data = cls._filter_fields(ClientConfig, data.get("client"))
            cli_data = cls._filter_fields(CliConfig, data.get("cli"))
            for name, section in (("client", client_data), ("cli", cli_data)):
                if "entries" in section:
                    _require_list(f"{name}.entries", section["entries"])
                    section["entries"] = [
                        EntryConfig(**cls._filter_fields(EntryConfig, entry))
                        for entry in section["entries"]
                    ]

            kwargs: Dict[str, Any] = {
                "paths": PathsConfig(**cls._filter_fields(PathsConfig, data.get("paths"))),
                "tools": ToolsConfig(**cls._filter_fields(ToolsConfig, data.get("tools"))),
                "client": ClientConfig(**client_data),
                "cli": CliConfig(**cli_data),
                "native": NativeConfig(**cls._filter_fields(NativeConfig, data.get("native"))),
                "runner": RunnerConfig(**cls._filter_fields(RunnerConfig, data.get("runner"))),
                "serve": ServeConfig(**cls._filter_fields(ServeConfig, data.get("serve"))),
                "debug": _coerce_bool(data.get("debug", False)),
            }
            if "versions" in data:
                sources = data.get("versions") or []
                _require_list("versions", sources)
                kwargs["versions"] = [
                    VersionSource(**cls._filter_fields(VersionSource, source))
                    for source in sources
                ]
        except TypeError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}") from e

        if root is not None:
            kwargs["root"] = root
        return cls(**kwargs)


def _coerce_int(field_name: str, value: Any) -> int:
    """Integers may arrive as strings after ${VAR} expansion."""
    if isinstance(value, bool):
        raise ConfigValidationError(f"{field_name} must be an integer", field=field_name, value=value)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"{field_name} must be an integer", field=field_name, value=value
        ) from e


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return bool(value)


def _validate_format(field_name: str, value: str) -> None:
    if value not in MODULE_FORMATS:
        raise ConfigValidationError(
            f"Unknown module format '{value}' (expected one of {', '.join(MODULE_FORMATS)})",
            field=field_name,
            value=value,
        )


def _require_list(field_name: str, value: Any) -> None:
    # A bare YAML scalar would otherwise be iterated character by character
    if not isinstance(value, list):
        raise ConfigValidationError(f"{field_name} must be a list", field=field_name, value=value)


def _require_str_list(field_name: str, value: Any) -> None:
    _require_list(field_name, value)
    if not all(isinstance(item, str) for item in value):
        raise ConfigValidationError(
            f"{field_name} must be a list of strings", field=field_name, value=value
        )
