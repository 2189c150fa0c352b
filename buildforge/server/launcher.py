"""
Server-Only Launcher.

Runs the compiled server tree (``node dist/server/server.js``) with an
effective configuration resolved from flags, environment and defaults:

    flag  >  environment (PORT, HOST, NO_AUTH, BUILDFORGE_DEBUG)  >  default

Lifecycle
---------
    with log_sink(...) as log, shutdown_signals():
        banner -> start child -> access URLs -> wait

The log sink is flushed and released on every exit path:

    child exits          -> child's exit status
    SIGTERM / SIGINT     -> child terminated, exit 0
    unexpected error     -> logged with traceback, exit 1
"""

from __future__ import annotations

import os
import platform
import signal
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import FrameType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from rich.console import Console

from buildforge import __version__
from buildforge.core.config.build import BuildConfig, ServeConfig
from buildforge.core.config.loaders import env_flag
from buildforge.core.exceptions import IOError
from buildforge.core.logging import (
    StructuredLogger,
    configure_logging,
    get_logger,
    shutdown_logging,
)

ALL_INTERFACES = "0.0.0.0"
MAX_PORT = 65535
CHILD_TERMINATE_GRACE_SECONDS = 10


@dataclass(frozen=True)
class ServerOptions:
    """Effective launcher configuration."""

    port: int
    host: str
    no_auth: bool = False
    debug: bool = False

    def child_env(self) -> Dict[str, str]:
        """Variables the server process reads its configuration from."""
        env = {"PORT": str(self.port), "HOST": self.host}
        if self.no_auth:
            env["NO_AUTH"] = "1"
        return env

    def access_urls(self) -> List[Tuple[str, str]]:
        if self.host == ALL_INTERFACES:
            return [
                ("Local", f"http://localhost:{self.port}"),
                ("Network", f"http://your-server-ip:{self.port}"),
            ]
        return [("Server", f"http://{self.host}:{self.port}")]


def parse_port(value: Optional[str], default: int) -> int:
    """Port number from text; anything unusable falls back to ``default``."""
    if value is None:
        return default
    try:
        port = int(value.strip())
    except ValueError:
        return default
    if not 0 < port <= MAX_PORT:
        return default
    return port


def resolve_options(
    port: Optional[str] = None,
    host: Optional[str] = None,
    no_auth: bool = False,
    debug: bool = False,
    env: Optional[Mapping[str, str]] = None,
    defaults: Optional[ServeConfig] = None,
) -> ServerOptions:
    """Combine flags, environment and defaults."""
    environ = os.environ if env is None else env
    defaults = defaults or ServeConfig()

    env_port = parse_port(environ.get("PORT"), defaults.port)
    env_host = environ.get("HOST") or defaults.host

    return ServerOptions(
        port=parse_port(port, defaults.port) if port is not None else env_port,
        host=host or env_host,
        no_auth=no_auth or env_flag("NO_AUTH", environ),
        debug=debug or env_flag("BUILDFORGE_DEBUG", environ),
    )


@contextmanager
def log_sink(
    debug: bool = False, log_file: Optional[Path] = None
) -> Iterator[StructuredLogger]:
    """Configure logging for the launcher; flush and release it on exit."""
    configure_logging(level="DEBUG" if debug else "INFO", log_file=log_file)
    try:
        yield get_logger("buildforge.server")
    finally:
        shutdown_logging()


class ShutdownRequested(Exception):
    """A termination signal arrived."""

    def __init__(self, signum: int) -> None:
        super().__init__(signal.Signals(signum).name)
        self.signum = signum


def _raise_shutdown(signum: int, frame: Optional[FrameType]) -> None:
    raise ShutdownRequested(signum)


@contextmanager
def shutdown_signals(
    signals: Sequence[int] = (signal.SIGTERM, signal.SIGINT),
) -> Iterator[None]:
    """Turn termination signals into ShutdownRequested for the block."""
    previous = {signum: signal.signal(signum, _raise_shutdown) for signum in signals}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def render_banner(console: Console, options: ServerOptions) -> None:
    console.print()
    console.print("[bold blue]🌐 BuildForge Server[/bold blue]")
    console.print(f"[dim]   Version: {__version__}[/dim]")
    console.print(f"[dim]   Python: {platform.python_version()}[/dim]")
    console.print(f"[dim]   Platform: {platform.system().lower()} {platform.machine()}[/dim]")
    console.print()
    console.print("[green]🚀 Starting server...[/green]")
    console.print(f"[dim]   Host: {options.host}[/dim]")
    console.print(f"[dim]   Port: {options.port}[/dim]")
    console.print(f"[dim]   Auth: {'disabled' if options.no_auth else 'enabled'}[/dim]")
    console.print(f"[dim]   Debug: {'enabled' if options.debug else 'disabled'}[/dim]")
    console.print()
    if options.no_auth:
        console.print("[bold yellow]⚠️  WARNING: Authentication is disabled![/bold yellow]")
        console.print("[yellow]   This should only be used for development.[/yellow]")
        console.print()


def render_access_urls(console: Console, options: ServerOptions) -> None:
    console.print("[bold green]✅ Server is running![/bold green]")
    console.print()
    console.print("[bold]Access URLs:[/bold]")
    for label, url in options.access_urls():
        console.print(f"[blue]   {label + ':':<9} {url}[/blue]")
    console.print()
    console.print("[dim]Press Ctrl+C to stop the server[/dim]")
    console.print()


def version_lines() -> List[str]:
    return [
        f"BuildForge Server v{__version__}",
        f"Python {platform.python_version()}",
        f"Platform: {platform.system().lower()} {platform.machine()}",
        f"OS: {platform.system()} {platform.release()}",
    ]


class ServerLauncher:
    """Starts the compiled server and supervises it until exit.

    Args:
        config: Build configuration (server entry, project root).
        options: Resolved port, host, auth and debug settings.
        console: Output for the banner.
        popen: Process factory, replaceable in tests.
    """

    def __init__(
        self,
        config: BuildConfig,
        options: ServerOptions,
        console: Optional[Console] = None,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self._config = config
        self._options = options
        self._console = console or Console()
        self._popen = popen
        self._process: Optional[Any] = None

    @property
    def server_entry(self) -> Path:
        return self._config.resolve(self._config.serve.server_entry)

    def command(self) -> List[str]:
        return [self._config.tools.node, str(self.server_entry)]

    def run(self) -> int:
        """Run the server. Returns the process exit status."""
        log_file = self._config.serve.log_file
        log_path = self._config.resolve(log_file) if log_file else None
        with log_sink(self._options.debug, log_path) as log:
            with shutdown_signals():
                try:
                    return self._serve(log)
                except ShutdownRequested as e:
                    log.info(f"{e} received, shutting down gracefully...")
                    self._stop_child(log)
                    return 0
                except Exception:
                    log.exception("Server failed")
                    self._stop_child(log)
                    return 1

    def _serve(self, log: StructuredLogger) -> int:
        render_banner(self._console, self._options)
        if not self.server_entry.is_file():
            raise IOError(
                f"Compiled server not found: {self.server_entry}. Run 'buildforge build' first.",
                path=self.server_entry,
            )

        env = os.environ.copy()
        env.update(self._options.child_env())
        self._process = self._popen(self.command(), cwd=self._config.root, env=env)
        log.info("Server started", pid=self._process.pid, host=self._options.host, port=self._options.port)
        render_access_urls(self._console, self._options)

        returncode = self._process.wait()
        log.info("Server exited", returncode=returncode)
        return returncode

    def _stop_child(self, log: StructuredLogger) -> None:
        process = self._process
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=CHILD_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            log.warning("Server did not stop, killing", pid=process.pid)
            process.kill()
            process.wait()
