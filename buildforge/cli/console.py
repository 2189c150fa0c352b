"""Console output helpers.

Regular output goes to stdout; error panels go to stderr so a CI job can
keep the diagnostic of a failed stage apart from progress output.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from buildforge.core.exceptions import get_error_info, get_root_cause

_consoles: Dict[str, Console] = {}
_verbose = {"enabled": False}


def _shared(stream: str) -> Console:
    if stream not in _consoles:
        _consoles[stream] = Console(stderr=stream == "stderr")
    return _consoles[stream]


def get_console() -> Console:
    return _shared("stdout")


def get_error_console() -> Console:
    return _shared("stderr")


def set_verbose_mode(enabled: bool) -> None:
    """Show full tracebacks under error panels (--debug)."""
    _verbose["enabled"] = enabled


def is_verbose_mode() -> bool:
    return _verbose["enabled"]


def tip(message: str) -> None:
    """Print a dimmed hint line, e.g. ``Tip: run 'pnpm install'``."""
    get_console().print(Text(f"  Tip: {message}", style="dim"))


@dataclass
class ErrorReport:
    """What the error panel shows for one exception."""

    code: str
    message: str
    why: str
    fixes: List[str] = field(default_factory=list)
    context: str = ""
    root_cause: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException, context: str = "") -> "ErrorReport":
        info = get_error_info(exc)
        message = str(exc) or type(exc).__name__
        root = get_root_cause(exc)
        root_text = str(root) if root is not exc else None
        if root_text and root_text in message:
            root_text = None
        return cls(
            code=info["error_code"],
            message=message,
            why=info["why_it_happened"],
            fixes=list(info["how_to_fix"]),
            context=context,
            root_cause=root_text,
        )

    def sections(self) -> List[RenderableType]:
        parts: List[RenderableType] = []
        if self.context:
            parts.append(Text(self.context + "\n", style="bold"))
        parts.append(Text(self.message + "\n", style="bold red"))
        if self.root_cause:
            parts.append(Text.assemble(("Root cause: ", "bold yellow"), (self.root_cause + "\n", "yellow")))
        parts.append(Text.assemble(("Why it happened:\n", "bold cyan"), (f"  {self.why}\n", "cyan")))
        fixes = "\n".join(f"  - {fix}" for fix in self.fixes)
        parts.append(Text.assemble(("How to fix:\n", "bold green"), (fixes, "green")))
        return parts

    def panel(self) -> Panel:
        return Panel(
            Group(*self.sections()),
            title=f"[bold red]Error: {self.code}[/bold red]",
            border_style="red",
            padding=(1, 2),
        )


class ErrorRenderer:
    """Prints an ErrorReport panel for a failed command.

    Example
    -------
        outcome = runner.run()
        if not outcome.succeeded:
            ErrorRenderer.render(outcome.cause, context="Stage 'compile-server' failed")
            raise typer.Exit(1)
    """

    @staticmethod
    def render(
        exc: BaseException,
        context: str = "",
        show_traceback: Optional[bool] = None,
    ) -> None:
        """Print the panel on stderr, followed by the traceback in verbose mode.

        Args:
            exc: Exception to render
            context: Line shown above the message, such as the failed stage
            show_traceback: Override for verbose mode (None means use --debug)
        """
        console = get_error_console()
        console.print(ErrorReport.from_exception(exc, context).panel())

        if show_traceback is None:
            show_traceback = is_verbose_mode()
        if show_traceback:
            lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
            console.print()
            console.print(Text("--- Traceback (--debug mode) ---", style="dim"))
            console.print(Text("".join(lines), style="dim"))
