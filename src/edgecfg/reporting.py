"""
Console reporting for edgecfg.

All user-facing output goes through a Reporter wrapping a rich Console.
A reporter is created per command invocation and passed down explicitly.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape


class Reporter:
    """Prints progress, warnings and errors; keeps track of emitted warnings."""

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console(stderr=True)
        self.verbose = verbose
        self.warnings: list[str] = []

    def debug(self, message: str = "") -> None:
        """Print detail output, only in verbose mode."""
        if self.verbose:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def info(self, message: str = "") -> None:
        self.console.print(escape(message))

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def warn(self, message: str) -> None:
        """Print a warning. Warnings never abort processing."""
        self.warnings.append(message)
        self.console.print(f"[yellow]Warning: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error: {escape(message)}[/red]")

    def warnings_matching(self, text: str) -> list[str]:
        """Return the warnings that contain the given text."""
        return [w for w in self.warnings if text in w]


def quiet_reporter() -> Reporter:
    """Reporter that records warnings but prints nothing."""
    return Reporter(console=Console(quiet=True))
