"""Server-only launcher for the compiled server tree."""

from buildforge.server.launcher import (
    ServerLauncher,
    ServerOptions,
    ShutdownRequested,
    log_sink,
    resolve_options,
    shutdown_signals,
)

__all__ = [
    "ServerLauncher",
    "ServerOptions",
    "ShutdownRequested",
    "log_sink",
    "resolve_options",
    "shutdown_signals",
]
