# src/kubeforge/cli/formatter.py
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from kubeforge.core.models import PipelineResult, ResultStatus

_STATUS_STYLE = {
    ResultStatus.WRITTEN: ("green", "✅"),
    ResultStatus.SKIPPED: ("dim", "⏭"),
    ResultStatus.VALIDATION_WARNED: ("yellow", "⚠️"),
}


class KubeFormatter:
    """
    Renders pipeline outcomes: the written bundle, validation warnings and
    the final summary panel.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_header(self, subtitle: str, version: str):
        self.console.print(Panel.fit(
            f"[bold cyan]KubeForge v{version}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def show_warnings(self, warnings: List[str]):
        for warning in warnings:
            self.console.print(f"[bold yellow]⚠  Validation:[/bold yellow] [white]{escape(warning)}[/white]")

    def print_bundle_table(self, result: PipelineResult):
        """Lists the per-resource files next to the aggregate."""
        if result.artifact is None:
            return
        aggregate = Path(result.artifact.path)
        bundle_dir = aggregate.with_suffix("")

        table = Table(title="KubeForge Bundle", show_lines=False, header_style="bold magenta")
        table.add_column("File", style="cyan")
        table.add_column("Type", style="white")
        for path in sorted(bundle_dir.glob("*")):
            if path.is_file():
                table.add_row(str(path.relative_to(aggregate.parent)), path.stem.split("-", 1)[0])
        table.add_row(f"[bold]{aggregate.name}[/bold]", "aggregate")
        self.console.print(table)

    def print_summary(self, result: PipelineResult):
        color, icon = _STATUS_STYLE.get(result.status, ("white", ""))
        artifact = result.artifact
        self.console.print(Panel(
            f"[bold white]Summary Report[/bold white]\n"
            f"════════════════════════════════════════\n"
            f"Status:     [{color}]{result.status.value}[/{color}] {icon}\n"
            f"Resources:  {result.resources}\n"
            f"Warnings:   [yellow]{len(result.warnings)}[/yellow]\n"
            f"Artifact:   {escape(str(artifact.path)) if artifact else '-'}",
            border_style="dim"
        ))

    def print_error(self, message: str):
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}")
