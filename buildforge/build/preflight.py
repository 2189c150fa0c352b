"""
Toolchain Preflight Checks.

Reports which external tools a build needs and whether they can be found.
Node tools are looked up in ``node_modules/.bin`` first, then on PATH.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from buildforge.core.config.build import BuildConfig
from buildforge.core.process import check_command


@dataclass(frozen=True)
class ToolCheck:
    """Availability of one external tool."""

    name: str
    purpose: str
    location: Optional[str]
    required: bool = True

    @property
    def found(self) -> bool:
        return self.location is not None


def _node_module_tool(root: Path, name: str) -> Optional[str]:
    local = root / "node_modules" / ".bin" / name
    if local.exists():
        return str(local)
    return check_command(name)


def check_toolchain(config: BuildConfig) -> List[ToolCheck]:
    """Check every tool the configured pipeline invokes."""
    tools = config.tools
    checks = [
        ToolCheck("node", "JavaScript runtime", check_command(tools.node)),
    ]
    if tools.package_runner:
        runner = tools.package_runner[0]
        checks.append(ToolCheck(runner, "package runner", check_command(runner)))

    checks.extend(
        [
            ToolCheck(tools.tailwind, "style compiler", _node_module_tool(config.root, tools.tailwind)),
            ToolCheck(tools.esbuild, "bundler", _node_module_tool(config.root, tools.esbuild)),
            ToolCheck(tools.tsc, "server compiler", _node_module_tool(config.root, tools.tsc)),
        ]
    )

    if config.native.enabled:
        script = config.root / config.native.build_script
        checks.append(
            ToolCheck(
                config.native.build_script,
                "native build script",
                str(script) if script.exists() else None,
                required=False,
            )
        )
    return checks


def missing_required(checks: List[ToolCheck]) -> List[ToolCheck]:
    return [check for check in checks if check.required and not check.found]
