"""Rich terminal rendering for batch reports and tool listings.

Color scheme
------------
- green     : INSTALLED
- cyan      : UPDATED
- dim       : SKIPPED
- yellow    : WARNING
- bold red  : FAILED
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from toolfetcher.models.manifest import ManifestRecord
from toolfetcher.models.outcomes import BatchReport, OutcomeStatus
from toolfetcher.models.tools import ToolBase

_STATUS_LABELS: dict[OutcomeStatus, str] = {
    OutcomeStatus.INSTALLED: "[green]INSTALLED[/green]",
    OutcomeStatus.UPDATED: "[cyan]UPDATED[/cyan]",
    OutcomeStatus.SKIPPED: "[dim]SKIPPED[/dim]",
    OutcomeStatus.WARNING: "[yellow]WARNING[/yellow]",
    OutcomeStatus.FAILED: "[bold red]FAILED[/bold red]",
}


class ReportRenderer:
    """Prints toolfetcher results to a Rich console.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Batch report
    # ------------------------------------------------------------------

    def build_report_table(self, report: BatchReport, *, show_skipped: bool = False) -> Table:
        table = Table(title=f"Tools in {report.tools_root}", expand=False)
        table.add_column("Tool", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Version")
        table.add_column("Files", justify="right")
        table.add_column("Details", overflow="fold")

        for outcome in report.outcomes:
            if outcome.status is OutcomeStatus.SKIPPED and not show_skipped:
                continue
            table.add_row(
                outcome.name,
                _STATUS_LABELS[outcome.status],
                outcome.version or "-",
                str(outcome.files) if outcome.files else "-",
                outcome.message,
            )
        return table

    def print_report(self, report: BatchReport, *, show_skipped: bool = False) -> None:
        counts = report.counts()
        processed = len(report.outcomes) - counts[OutcomeStatus.SKIPPED]
        if processed or show_skipped:
            self.console.print(self.build_report_table(report, show_skipped=show_skipped))

        summary = "  ".join(
            f"{_STATUS_LABELS[status]} {counts[status]}" for status in OutcomeStatus
        )
        border = "red" if counts[OutcomeStatus.FAILED] else "green"
        self.console.print(Panel(summary, title="[bold]Summary[/bold]", border_style=border))

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def print_tool_list(
        self,
        rows: list[tuple[ToolBase, ManifestRecord | None]],
        tools_root: str,
    ) -> None:
        if not rows:
            self.console.print("[dim]No tools configured.[/dim]")
            return

        table = Table(title=f"Configured tools ({tools_root})")
        table.add_column("Tool", style="cyan")
        table.add_column("Method")
        table.add_column("Destination")
        table.add_column("Skip", justify="center")
        table.add_column("Installed", justify="center")
        table.add_column("Version")
        table.add_column("Updated")

        for tool, record in rows:
            skip = "[yellow]Yes[/yellow]" if tool.skip_download else "No"
            if record is None:
                installed, version, stamp = "[dim]No[/dim]", "", ""
            else:
                installed = "[green]Yes[/green]"
                version = record.version
                if record.commit_hash:
                    version = f"{version} ({record.commit_hash[:7]})".strip()
                stamp = record.timestamp
            table.add_row(
                tool.name,
                tool.download_method.value,
                "/".join(filter(None, (tool.output_folder, tool.name))),
                skip,
                installed,
                version or "-",
                stamp or "-",
            )
        self.console.print(table)
