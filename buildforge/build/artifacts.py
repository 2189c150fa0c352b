"""
Artifact Specifications.

An ArtifactSpec describes one bundling operation: which entry point, where
the output goes, and the module-resolution rules of the target runtime.
Specs are immutable and rebuilt from configuration on every run.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, Field, field_validator

from buildforge.core.config.build import BuildConfig, EntryConfig
from buildforge.core.exceptions import ValidationError

MAX_EXTERNAL_MODULES = 32


class TargetPlatform(str, Enum):
    """Runtime the bundle is executed by."""

    BROWSER = "browser"
    NODE = "node"


class ModuleFormat(str, Enum):
    """Module system of the emitted file."""

    ESM = "esm"
    IIFE = "iife"
    CJS = "cjs"


class ArtifactSpec(BaseModel):
    """One bundle to produce.

    ``external_modules`` stay unresolved in the output and must be supplied
    by the deployment runtime.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(..., min_length=1, description="Task name of this bundle")
    entry_point: Path = Field(..., description="Source file the bundler starts from")
    output_path: Path = Field(..., description="File the bundle is written to")
    target_platform: TargetPlatform
    module_format: ModuleFormat
    target: str = Field(..., description="Language level, e.g. es2020 or node18")
    external_modules: Tuple[str, ...] = ()
    minify: bool = True
    tree_shaking: bool = True
    sourcemap: bool = False
    loaders: Dict[str, str] = Field(default_factory=dict)
    os_target: str = "any"

    @field_validator("external_modules")
    @classmethod
    def validate_externals(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(v) > MAX_EXTERNAL_MODULES:
            raise ValueError(f"At most {MAX_EXTERNAL_MODULES} external modules allowed")
        if any(not name.strip() for name in v):
            raise ValueError("External module names must not be empty")
        return v

    @property
    def is_executable(self) -> bool:
        """Node bundles are shipped as standalone executables."""
        return self.target_platform == TargetPlatform.NODE


def client_specs(config: BuildConfig) -> List[ArtifactSpec]:
    """Browser bundles: application, test harness, capture tool, service worker."""
    client = config.client
    return [
        ArtifactSpec(
            name=entry.name,
            entry_point=config.resolve(entry.entry_point),
            output_path=config.resolve(entry.output_path),
            target_platform=TargetPlatform.BROWSER,
            module_format=ModuleFormat(entry.module_format or client.module_format),
            target=client.target,
            minify=client.minify,
            tree_shaking=client.tree_shaking,
            os_target=entry.os_target,
        )
        for entry in client.entries
    ]


def cli_specs(config: BuildConfig) -> List[ArtifactSpec]:
    """Command-line executables sharing one set of node bundling options."""
    cli = config.cli
    return [_cli_spec(config, entry) for entry in cli.entries]


def _cli_spec(config: BuildConfig, entry: EntryConfig) -> ArtifactSpec:
    cli = config.cli
    return ArtifactSpec(
        name=entry.name,
        entry_point=config.resolve(entry.entry_point),
        output_path=config.resolve(entry.output_path),
        target_platform=TargetPlatform.NODE,
        module_format=ModuleFormat(entry.module_format or cli.module_format),
        target=cli.target,
        external_modules=tuple(cli.external_modules),
        minify=cli.minify,
        tree_shaking=True,
        loaders=dict(cli.loaders),
        os_target=entry.os_target,
    )


def ensure_unique_outputs(specs: Iterable[ArtifactSpec]) -> None:
    """Require that no two specs of a run write the same file.

    Raises:
        ValidationError: Naming every path claimed more than once.
    """
    owners: Dict[Path, List[str]] = {}
    for spec in specs:
        owners.setdefault(spec.output_path, []).append(spec.name)

    clashes = {path: names for path, names in owners.items() if len(names) > 1}
    if clashes:
        details = "; ".join(
            f"{path} <- {', '.join(names)}" for path, names in sorted(clashes.items())
        )
        raise ValidationError(f"Duplicate artifact output paths: {details}")
