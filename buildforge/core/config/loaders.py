"""
Reading buildforge.yaml and the environment into a BuildConfig.

Precedence, highest first: CLI flags, BUILDFORGE_* variables, the YAML
file, built-in defaults. CLI flags are applied by the command itself.

Environment Variables
---------------------
    BUILDFORGE_DEBUG           1/true enables debug logging and tracebacks
    BUILDFORGE_MAX_WORKERS     worker count for parallel bundle groups
    BUILDFORGE_PACKAGE_RUNNER  command prefix for node tools (e.g. "npx")

String values in buildforge.yaml may reference the environment with
${VAR_NAME} or ${VAR_NAME:default}; an unset variable without a default
becomes the empty string.
"""

import os
import re
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from buildforge.core.config.build import MAX_WORKERS_LIMIT, BuildConfig
from buildforge.core.exceptions import ConfigValidationError
from buildforge.core.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAMES = ("buildforge.yaml", "buildforge.yml")

_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


def _environ(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if env is None else env


def expand_env_vars(value: Any, env: Optional[Mapping[str, str]] = None) -> Any:
    """Substitute ${VAR} placeholders in every string of a nested value."""
    environ = _environ(env)

    def substitute(match: "re.Match[str]") -> str:
        return environ.get(match["name"], match["default"] or "")

    if isinstance(value, str):
        return _PLACEHOLDER.sub(substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, environ) for item in value]
    return value


def env_flag(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """True when the variable is set to 1 or true (any case)."""
    return _environ(env).get(name, "").strip().lower() in ("1", "true")


def get_env_int(
    name: str,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Optional[int]:
    """Integer variable clamped to [min_value, max_value].

    Unset, blank or unparsable values give ``default``; the last case is
    logged.
    """
    raw = _environ(env).get(name, "").strip()
    if not raw:
        return default
    try:
        number = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer environment value", name=name, value=raw, default=default)
        return default
    if min_value is not None:
        number = max(number, min_value)
    if max_value is not None:
        number = min(number, max_value)
    return number


def _set_debug(config: BuildConfig, raw: str) -> None:
    if raw.strip().lower() in ("1", "true"):
        config.debug = True


def _set_workers(config: BuildConfig, raw: str) -> None:
    workers = get_env_int("value", min_value=1, max_value=MAX_WORKERS_LIMIT, env={"value": raw})
    if workers is not None:
        config.runner.max_workers = workers


def _set_package_runner(config: BuildConfig, raw: str) -> None:
    if raw.strip():
        config.tools.package_runner = shlex.split(raw)


ENV_OVERRIDES: Dict[str, Callable[[BuildConfig, str], None]] = {
    "BUILDFORGE_DEBUG": _set_debug,
    "BUILDFORGE_MAX_WORKERS": _set_workers,
    "BUILDFORGE_PACKAGE_RUNNER": _set_package_runner,
}


def apply_env_overrides(config: BuildConfig, env: Optional[Mapping[str, str]] = None) -> BuildConfig:
    environ = _environ(env)
    for name, apply in ENV_OVERRIDES.items():
        if name in environ:
            apply(config, environ[name])
    return config


def find_config_file(root: Path) -> Optional[Path]:
    """First of buildforge.yaml / buildforge.yml present in ``root``."""
    return next((root / name for name in CONFIG_FILENAMES if (root / name).exists()), None)


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Could not read configuration from {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Configuration in {path} must be a mapping", value=data)
    return data


def load_config(
    root: Optional[Path] = None,
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> BuildConfig:
    """Resolve the configuration of one build.

    Args:
        root: Project root (directory holding package.json). Defaults to cwd.
        config_path: Explicit config file. Defaults to buildforge.yaml in root.
        env: Environment mapping (default: os.environ).

    Raises:
        ConfigValidationError: If the file is missing, unreadable or invalid.
    """
    root = (root or Path.cwd()).resolve()

    if config_path is not None and not config_path.exists():
        raise ConfigValidationError(f"Configuration file not found: {config_path}", field="config_path")
    path = config_path or find_config_file(root)

    if path is None:
        logger.debug("No buildforge.yaml found, using defaults", root=root)
        config = BuildConfig(root=root)
    else:
        logger.debug("Loaded configuration", path=path)
        config = BuildConfig.from_dict(expand_env_vars(_read_yaml(path), env), root=root)
    return apply_env_overrides(config, env)


def save_config(config: BuildConfig, config_path: Optional[Path] = None) -> Path:
    """Write ``config`` as buildforge.yaml, minus per-run values."""
    path = config_path or config.root / CONFIG_FILENAMES[0]
    data = {k: v for k, v in config.to_dict().items() if k not in ("root", "custom_runtime")}
    path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
    return path
