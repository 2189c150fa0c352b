"""
Shared pytest fixtures and configuration for BuildForge tests.

This file is automatically discovered by pytest and provides fixtures
that can be used across all test files.

Fixture Organization
--------------------
- **project_root**: A web source tree with manifests, entry points and assets
- **build_config**: BuildConfig rooted at project_root
- **toolchain**: FakeToolchain standing in for tailwind/esbuild/tsc/native
- **native_artifacts**: Pre-built native artifact triple

The fake toolchain writes the files the real tools would write, so stages
see realistic outputs without Node.js installed.
"""

import json
import threading
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

from buildforge.core.config.build import BuildConfig
from buildforge.core.process import CommandResult

PROJECT_VERSION = "1.0.0-beta.1"

CLIENT_ENTRIES = (
    "src/client/app-entry.ts",
    "src/client/test-entry.ts",
    "src/client/screencap-entry.ts",
    "src/client/sw.ts",
)
CLI_ENTRIES = ("src/cli.ts", "src/linux-server.ts")

CLIENT_OUTPUTS = (
    "public/bundle/client-bundle.js",
    "public/bundle/test.js",
    "public/bundle/screencap.js",
    "public/sw.js",
)
CLI_OUTPUTS = (
    "dist/vibetunnel-cli",
    "dist/vibetunnel-linux",
    "dist/vibetunnel-linux-cli",
)
NATIVE_ARTIFACTS = ("native/vibetunnel", "native/pty.node", "native/spawn-helper")


# ============================================================================
# Fake Toolchain
# ============================================================================


class FakeToolchain:
    """CommandRunner that simulates the node toolchain.

    Example:
        def test_tsc_failure(toolchain):
            toolchain.fail_tool("tsc", stderr="error TS2322")
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: List[Tuple[str, ...]] = []
        self.node_bundle_body = 'var p=require("node-pty"),a=require("authenticate-pam");p.spawn();\n'
        self._tool_failures: Dict[str, CommandResult] = {}
        self._entry_failures: Dict[str, CommandResult] = {}
        self._lock = threading.Lock()

    # -- configuration -------------------------------------------------------

    def fail_tool(self, tool: str, returncode: int = 1, stderr: str = "", stdout: str = "") -> None:
        """Make every invocation of ``tool`` fail."""
        self._tool_failures[tool] = CommandResult((tool,), returncode, stdout, stderr)

    def fail_entry(self, entry: str, returncode: int = 1, stderr: str = "") -> None:
        """Make esbuild fail for one project-relative entry point."""
        key = str((self.root / entry).resolve())
        self._entry_failures[key] = CommandResult((entry,), returncode, "", stderr)

    # -- CommandRunner -------------------------------------------------------

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = tuple(str(part) for part in command)
        with self._lock:
            self.calls.append(argv)

        for tool, failure in self._tool_failures.items():
            if tool in argv:
                return CommandResult(argv, failure.returncode, failure.stdout, failure.stderr)
        for entry, failure in self._entry_failures.items():
            if entry in argv:
                return CommandResult(argv, failure.returncode, "", failure.stderr)

        if "tailwindcss" in argv:
            self._write(cwd / argv[argv.index("-o") + 1], "body{margin:0}")
        elif "esbuild" in argv:
            self._esbuild(argv)
        elif "tsc" in argv:
            self._write(cwd / "dist" / "server" / "server.js", "module.exports={};\n")
        elif "build-native.js" in argv:
            for artifact in NATIVE_ARTIFACTS:
                self._write(cwd / artifact, "\x7fELF")
        return CommandResult(argv, 0, "", "")

    # -- helpers -------------------------------------------------------------

    def invocations(self, tool: str) -> List[Tuple[str, ...]]:
        return [call for call in self.calls if tool in call]

    def _esbuild(self, argv: Tuple[str, ...]) -> None:
        outfile = next(part.split("=", 1)[1] for part in argv if part.startswith("--outfile="))
        if "--platform=node" in argv:
            # esbuild keeps the entry point's own directive
            content = "#!/usr/bin/env node\n" + self.node_bundle_body
        else:
            content = "(()=>{console.log('bundle')})();\n"
        self._write(Path(outfile), content)

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


# ============================================================================
# Project Fixtures
# ============================================================================


def write_manifests(workspace: Path, web_version: str, mac_version: str) -> None:
    web = workspace / "web"
    web.mkdir(parents=True, exist_ok=True)
    (web / "package.json").write_text(
        json.dumps({"name": "vibetunnel", "version": web_version}), encoding="utf-8"
    )
    xcconfig = workspace / "mac" / "VibeTunnel" / "version.xcconfig"
    xcconfig.parent.mkdir(parents=True, exist_ok=True)
    xcconfig.write_text(
        f"// Version\nMARKETING_VERSION = {mac_version}\nCURRENT_PROJECT_VERSION = 100\n",
        encoding="utf-8",
    )


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a fresh checkout of the web project.

    Layout:
        <tmp>/web/package.json, src/..., build-native.js
        <tmp>/mac/VibeTunnel/version.xcconfig
    """
    write_manifests(tmp_path, PROJECT_VERSION, PROJECT_VERSION)
    root = tmp_path / "web"

    for entry in (*CLIENT_ENTRIES, *CLI_ENTRIES):
        path = root / entry
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("export {};\n", encoding="utf-8")

    (root / "src" / "client" / "styles.css").write_text("@tailwind base;\n", encoding="utf-8")
    assets = root / "src" / "client" / "assets"
    (assets / "icons").mkdir(parents=True)
    (assets / "favicon.ico").write_bytes(b"\x00\x01")
    (assets / "icons" / "icon-192.png").write_bytes(b"\x89PNG")
    (assets / "manifest.json").write_text('{"name": "VibeTunnel"}', encoding="utf-8")

    (root / "build-native.js").write_text("// native build\n", encoding="utf-8")
    return root


@pytest.fixture
def build_config(project_root: Path) -> BuildConfig:
    """Default configuration for the fixture project."""
    return BuildConfig(root=project_root)


@pytest.fixture
def toolchain(project_root: Path) -> FakeToolchain:
    """Fake external tools bound to the fixture project."""
    return FakeToolchain(project_root)


@pytest.fixture
def native_artifacts(project_root: Path) -> List[Path]:
    """Pre-existing native artifact triple."""
    paths = []
    for artifact in NATIVE_ARTIFACTS:
        path = project_root / artifact
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"prebuilt")
        paths.append(path)
    return paths
