"""Version Sync Validation.

The web package and the desktop app ship together, so their manifests must
declare the same version string. This is the first gate of a build: it runs
before any output directory is created.

Each manifest is described by a VersionSource:

    VersionSource(path="package.json", key="version")          # JSON key
    VersionSource(path="version.xcconfig",
                  pattern=r"MARKETING_VERSION\\s*=\\s*(\\S+)")  # regex group 1
    VersionSource(path="VERSION")                               # whole file

Agreement is textual equality. Values that are not SemVer 2.0.0 are
reported with a warning only.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from buildforge.core.config.build import VersionSource
from buildforge.core.exceptions import ValidationError
from buildforge.core.logging import get_logger

logger = get_logger(__name__)

# SemVer 2.0.0, with the leading "v" that tags commonly carry.
SEMVER = re.compile(
    r"""
    v?
    (0|[1-9][0-9]*) \. (0|[1-9][0-9]*) \. (0|[1-9][0-9]*)
    (-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?
    (\+[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?
    """,
    re.VERBOSE,
)


def is_semver(text: str) -> bool:
    return bool(text) and len(text) <= 64 and SEMVER.fullmatch(text) is not None


@dataclass(frozen=True)
class ManifestVersion:
    """Version string read from one manifest."""

    source: VersionSource
    value: str

    @property
    def label(self) -> str:
        return self.source.path


class VersionSyncValidator:
    """Checks that every configured manifest declares the same version.

    Args:
        root: Project root the source paths are relative to.
        sources: Manifests to compare.
    """

    def __init__(self, root: Path, sources: Sequence[VersionSource]) -> None:
        self._root = Path(root)
        self._sources = list(sources)

    def read(self, source: VersionSource) -> ManifestVersion:
        """Read the version string of one manifest.

        Raises:
            ValidationError: If the manifest is missing or has no value.
        """
        path = self._root / source.path
        if not path.is_file():
            raise ValidationError(f"Version manifest not found: {source.path}")

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ValidationError(
                f"Could not read version manifest {source.path}: {e}"
            ) from e

        if source.key:
            value = _lookup_json_key(content, source)
        elif source.pattern:
            match = re.search(source.pattern, content, re.MULTILINE)
            value = match.group(1) if match else None
        else:
            value = content.strip()

        if not value:
            raise ValidationError(
                f"No version value found in {source.path}"
                + (f" (key '{source.key}')" if source.key else "")
            )
        return ManifestVersion(source=source, value=str(value).strip())

    def validate(self) -> List[ManifestVersion]:
        """Read all manifests and require textual equality.

        Returns:
            The versions read, in source order.

        Raises:
            ValidationError: On a missing manifest or a mismatch.
        """
        if len(self._sources) < 2:
            logger.debug("Fewer than two version sources, nothing to compare")
            return [self.read(source) for source in self._sources]

        versions = [self.read(source) for source in self._sources]
        for version in versions:
            if not is_semver(version.value):
                logger.warning(
                    "Version is not valid SemVer", manifest=version.label, value=version.value
                )

        distinct = {version.value for version in versions}
        if len(distinct) > 1:
            details = ", ".join(f"{v.label}={v.value}" for v in versions)
            raise ValidationError(f"Version mismatch between manifests: {details}")

        logger.info("Versions in sync", version=versions[0].value, manifests=len(versions))
        return versions


def _lookup_json_key(content: str, source: VersionSource) -> Optional[Any]:
    try:
        data: Any = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {source.path}: {e}") from e

    for part in (source.key or "").split("."):
        if not isinstance(data, dict) or part not in data:
            return None
        data = data[part]
    if isinstance(data, (dict, list)):
        return None
    return data


def versions_as_dict(versions: Sequence[ManifestVersion]) -> Dict[str, str]:
    """Manifest path to version, for reports."""
    return {version.label: version.value for version in versions}
