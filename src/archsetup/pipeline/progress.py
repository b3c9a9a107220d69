"""Progress lines and run summary rendered with rich."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from archsetup.pipeline.models import PipelineResult, StepStatus

_STATUS_STYLES: dict[StepStatus, str] = {
    StepStatus.SUCCESS: "green",
    StepStatus.UNCHANGED: "cyan",
    StepStatus.SKIPPED: "yellow",
    StepStatus.DECLINED: "dim",
    StepStatus.FAILED: "bold red",
    StepStatus.NOT_RUN: "dim",
}


class ProgressReporter:
    """Render ``[index/total] description`` lines and the final summary.

    Args:
        console: Rich console to print to.
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize ProgressReporter."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Return the console used for output."""
        return self._console

    @staticmethod
    def format_line(index: int, total: int, description: str) -> str:
        """Format one progress line.

        Examples:
            >>> ProgressReporter.format_line(3, 11, "Setting default shell")
            '[3/11] Setting default shell'
        """
        return f"[{index}/{total}] {description}"

    def step(self, index: int, total: int, description: str) -> None:
        """Print the progress line for a step about to be considered."""
        self._console.print()
        self._console.print(self.format_line(index, total, description), style="bold", markup=False)

    def note(self, message: str, *, style: str = "dim") -> None:
        """Print an indented note under the current step."""
        self._console.print(f"  {message}", style=style, markup=False)

    def summary(self, result: PipelineResult) -> None:
        """Print a table of step statuses followed by closing remarks."""
        table = Table(title=f"{result.name} ({result.duration:.1f}s)", show_lines=False)
        table.add_column("Step")
        table.add_column("Status")
        table.add_column("Detail", overflow="fold")
        for step in result.results:
            style = _STATUS_STYLES[step.status]
            table.add_row(step.name, f"[{style}]{step.status.value}[/]", step.error or step.detail or "")
        self._console.print()
        self._console.print(table)

        if result.reboot_required:
            self._console.print(
                "[yellow]Reboot required:[/] driver and boot configuration changes take effect after a restart."
            )


__all__ = [
    "ProgressReporter",
]
