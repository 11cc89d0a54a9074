"""
ConsoleUI - Rich-based console interface.

Banner, run configuration, state transitions and the final per-stage table.
Progress lines themselves go through logging (see logging_utils); this is
the human-facing frame around them.
"""

from typing import Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from ..runner.state import State
from ..protocol.context import TargetProcess
from ..protocol.result import RunSummary


class ConsoleUI:
    """
    Rich console interface for dotnet_diagnose.
    """

    def __init__(
        self,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, *args, **kwargs):
        """Print to console."""
        if self.quiet:
            return
        self.console.print(*args, **kwargs)

    def print_header(self, title: str):
        """Print a section header."""
        if self.quiet:
            return
        self.console.print()
        self.console.rule(f"[bold blue]{title}[/]")

    def print_banner(self, version: str):
        """Print application banner."""
        if self.quiet:
            return

        banner = f"""
[bold cyan].NET Diagnostics Collector[/] [dim]v{version}[/]
[dim]trace → dump → stack → counters, each uploaded to blob storage[/]
        """
        self.console.print(Panel(banner.strip(), border_style="cyan"))

    def print_config(self, summary_text: str):
        """Display the effective configuration."""
        if self.quiet:
            return

        table = Table(show_header=False, box=None)
        table.add_column("Key", style="dim")
        table.add_column("Value")
        for line in summary_text.splitlines():
            key, _, value = line.partition(": ")
            table.add_row(key, value)
        self.console.print(table)

    def print_target(self, target: TargetProcess):
        """Display the discovered target."""
        if self.quiet:
            return

        self.print_header("Target")
        table = Table(show_header=False, box=None)
        table.add_column("Key", style="dim")
        table.add_column("Value")
        table.add_row("PID", str(target.pid))
        table.add_row("Instance", target.host_identifier)
        table.add_row("Destination", target.redacted_destination)
        self.console.print(table)

    def print_state_change(self, from_state: State, to_state: State, metadata: Optional[Dict] = None):
        """Display state transition."""
        if self.quiet:
            return

        status_colors = {
            State.INIT: "dim",
            State.LOCATE_PROCESS: "blue",
            State.READ_ENVIRONMENT: "cyan",
            State.COLLECT: "yellow",
            State.UPLOAD: "magenta",
            State.COMPLETE: "bold green",
            State.ABORTED: "bold red",
            State.CANCELLED: "bold red",
        }

        color = status_colors.get(to_state, "white")
        label = to_state.name
        if metadata and metadata.get("kind"):
            label = f"{label} ({metadata['kind']})"

        self.console.print(f"[dim]{from_state.name}[/] -> [{color}]{label}[/]")

    def print_summary(self, summary: RunSummary):
        """Display the per-stage results table."""
        if self.quiet:
            return

        self.print_header("Run Summary")

        table = Table(box=box.SIMPLE)
        table.add_column("Stage")
        table.add_column("Artifact")
        table.add_column("Collected", justify="center")
        table.add_column("Uploaded", justify="center")
        table.add_column("Attempts", justify="right")
        table.add_column("Notes", style="dim")

        for stage in summary.stages:
            collection = stage.collection
            upload = stage.upload
            notes = []
            if collection and not collection.succeeded and collection.reason:
                notes.append(collection.reason)
            if upload and not upload.succeeded and upload.reason:
                notes.append(upload.reason)

            table.add_row(
                stage.kind.value,
                collection.artifact.name if collection else "-",
                self._mark(collection.succeeded if collection else None),
                self._mark(upload.succeeded if upload else None),
                str(upload.attempt_count) if upload else "-",
                "; ".join(notes),
            )

        self.console.print(table)

        failed = len(summary.failed_stages)
        if summary.cancelled:
            self.console.print("[bold red]Run cancelled[/]")
        elif failed:
            self.console.print(f"[yellow]{failed} of {len(summary.stages)} stage(s) incomplete; artifact set is best-effort[/]")
        else:
            self.console.print("[bold green]All stages collected and uploaded[/]")

    @staticmethod
    def _mark(ok: Optional[bool]) -> str:
        if ok is None:
            return "[dim]-[/]"
        return "[green]✓[/]" if ok else "[red]✗[/]"

    def print_error(self, message: str):
        """Display a fatal error as ``[error] message`` on stderr (never suppressed)."""
        self.err_console.print(f"[error] {message}", markup=False, highlight=False, style="bold red")
