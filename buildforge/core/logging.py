"""
Structured Logging for BuildForge.

All modules should import get_logger() from here rather than using
Python's logging directly:

    from buildforge.core.logging import get_logger
    logger = get_logger(__name__)

Logger Types
------------
**StructuredLogger**
    Key-value pairs passed to a call, or bound once with bind(), are
    appended to the message:

        logger.info("Bundled", entry="src/cli.ts", output="dist/cli")
        # Bundled | entry=src/cli.ts | output=dist/cli

**BuildLogger**
    Stage start/finish messages with durations for one pipeline run:

        blog = BuildLogger()
        blog.start_stage("compile-styles")
        blog.finish(success=True, artifacts=5)

Loggers are cached by name. configure_logging() re-applies the new settings
to every cached logger, so a --debug flag parsed after import still reaches
module-level loggers.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.logging import RichHandler


@dataclass
class LogConfig:
    """Where log records go and at which level."""

    level: str = "INFO"
    console: bool = True
    file_path: Optional[Path] = None
    line_format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)


def _build_handlers(config: LogConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.console:
        handlers.append(
            RichHandler(show_time=True, show_path=False, markup=False, rich_tracebacks=True)
        )
    if config.file_path:
        config.file_path.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(config.file_path, encoding="utf-8")
        sink.setFormatter(logging.Formatter(config.line_format, datefmt=config.date_format))
        handlers.append(sink)
    for handler in handlers:
        handler.setLevel(config.numeric_level)
    return handlers


def _release(handler: logging.Handler) -> None:
    handler.flush()
    handler.close()


class StructuredLogger:
    """Wraps a stdlib logger and renders keyword fields as ``key=value``."""

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self._context: Dict[str, Any] = {}
        self.config = config or _default_config
        self.apply(self.config)

    def apply(self, config: LogConfig) -> None:
        """Replace this logger's handlers with ones built from ``config``.

        Previous handlers are flushed and closed.
        """
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            _release(handler)
        self.config = config
        self.logger.setLevel(config.numeric_level)
        for handler in _build_handlers(config):
            self.logger.addHandler(handler)

    def bind(self, **fields: Any) -> "StructuredLogger":
        self._context.update(fields)
        return self

    def unbind(self, *keys: str) -> None:
        for key in keys:
            self._context.pop(key, None)

    def _format_message(self, message: str, **fields: Any) -> str:
        merged = {**self._context, **fields}
        if not merged:
            return message
        rendered = " | ".join(f"{key}={value}" for key, value in merged.items())
        return f"{message} | {rendered}"

    def _emit(self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._format_message(message, **fields), exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, message, fields, exc_info=True)


_default_config = LogConfig()
_registry: Dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """Cached StructuredLogger for ``name`` (usually ``__name__``)."""
    if name not in _registry:
        _registry[name] = StructuredLogger(name, config)
    return _registry[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """Set the default configuration and apply it to every cached logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_file: Also write records to this file.
        console: Write records to the terminal through rich.
    """
    global _default_config
    _default_config = LogConfig(level=level, console=console, file_path=log_file)
    for structured in _registry.values():
        structured.apply(_default_config)


def shutdown_logging() -> None:
    """Flush and close every sink, then fall back to console-only INFO."""
    configure_logging()


class BuildLogger:
    """Stage timing messages for one pipeline run.

    Every message carries ``run=<label>`` so interleaved runs in one log
    file stay distinguishable.
    """

    def __init__(self, run_label: str = "build") -> None:
        self.run_label = run_label
        self.logger = get_logger("buildforge.pipeline")
        self._active: Optional[Tuple[str, float]] = None

    def start_stage(self, stage: str) -> None:
        self._close_active()
        self._active = (stage, time.perf_counter())
        self.logger.info("Starting stage", run=self.run_label, stage=stage)

    def _close_active(self) -> None:
        if self._active is None:
            return
        stage, started = self._active
        self._active = None
        self.logger.info(
            "Completed stage",
            run=self.run_label,
            stage=stage,
            duration_sec=f"{time.perf_counter() - started:.2f}",
        )

    @property
    def current_stage(self) -> Optional[str]:
        return self._active[0] if self._active else None

    def fail_stage(self, error: str) -> None:
        """Record that the active stage failed; it is not reported as completed."""
        stage = self.current_stage
        self._active = None
        self.logger.error("Stage failed", run=self.run_label, stage=stage, error=error)

    def finish(self, success: bool, artifacts: int = 0, error: Optional[str] = None) -> None:
        self._close_active()
        if success:
            self.logger.info("Build completed successfully", run=self.run_label, artifacts=artifacts)
        else:
            self.logger.error("Build failed", run=self.run_label, error=error)

    def log_progress(self, message: str, **fields: Any) -> None:
        self.logger.debug(message, run=self.run_label, stage=self.current_stage, **fields)
