"""Versioning Module.

Manifest version agreement checks.
"""

from buildforge.core.versioning.version_sync import (
    ManifestVersion,
    VersionSyncValidator,
    is_semver,
    versions_as_dict,
)

__all__ = [
    "ManifestVersion",
    "VersionSyncValidator",
    "is_semver",
    "versions_as_dict",
]
