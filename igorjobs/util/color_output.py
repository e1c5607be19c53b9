#!/usr/bin/env python3
"""
Colored terminal output for the igorjobs command line, using Rich.
"""

from typing import Optional

from rich.console import Console
from rich.text import Text

from igorjobs.job.diagnostics import DiagnosticRecord
from igorjobs.job.state import JobResult, StopKind


_STOP_KIND_STYLES = {
    StopKind.FINISHED: "green",
    StopKind.FAILED: "red",
    StopKind.STOPPED: "yellow",
}


class ColorOutput:
    """Prints job output, status and diagnostics to a Rich console."""

    def __init__(self, force_terminal: Optional[bool] = None, stderr: bool = False):
        """
        Args:
            force_terminal: Force terminal mode (True/False) or auto-detect (None)
            stderr: Write to stderr instead of stdout
        """
        self.console = Console(force_terminal=force_terminal, stderr=stderr, highlight=False)

    def print_green(self, message: str) -> None:
        self.console.print(message, style="green")

    def print_yellow(self, message: str) -> None:
        self.console.print(message, style="yellow")

    def print_red(self, message: str) -> None:
        self.console.print(message, style="red")

    def print_blue(self, message: str) -> None:
        self.console.print(message, style="blue")

    def print_raw(self, text: str) -> None:
        """Print process output verbatim, without markup or a trailing newline."""
        self.console.print(Text(text), end="")

    def print_diagnostic(self, record: DiagnosticRecord) -> None:
        text = Text()
        text.append("✗ ", style="red bold")
        text.append(record.describe(), style="red")
        self.console.print(text)

    def print_result(self, result: JobResult) -> None:
        """Print a job's terminal status followed by its diagnostics."""
        for record in result.diagnostics:
            self.print_diagnostic(record)

        style = _STOP_KIND_STYLES[result.kind]
        summary = Text()
        summary.append(f"{result.kind.value}", style=f"{style} bold")
        if result.exit_code is not None:
            summary.append(f" (exit code {result.exit_code})", style=style)
        if result.diagnostics:
            summary.append(f", {len(result.diagnostics)} diagnostics", style=style)
        self.console.print(summary)

        if result.termination_error is not None:
            self.print_yellow(f"Warning: {result.termination_error}")
