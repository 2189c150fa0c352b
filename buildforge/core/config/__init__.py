"""
Configuration package for BuildForge.

    from buildforge.core.config import load_config

    config = load_config(root=Path("web"))
    config.client.entries  # browser bundle entry points
"""

from buildforge.core.config.build import (
    BuildConfig,
    CliConfig,
    ClientConfig,
    EntryConfig,
    NativeConfig,
    PathsConfig,
    RunnerConfig,
    ServeConfig,
    ToolsConfig,
    VersionSource,
)
from buildforge.core.config.loaders import (
    env_flag,
    expand_env_vars,
    get_env_int,
    load_config,
    save_config,
)

__all__ = [
    "BuildConfig",
    "CliConfig",
    "ClientConfig",
    "EntryConfig",
    "NativeConfig",
    "PathsConfig",
    "RunnerConfig",
    "ServeConfig",
    "ToolsConfig",
    "VersionSource",
    "env_flag",
    "expand_env_vars",
    "get_env_int",
    "load_config",
    "save_config",
]
