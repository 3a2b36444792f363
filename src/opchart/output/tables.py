"""Rich table builders for command output."""

from __future__ import annotations

from pathlib import Path

from rich.panel import Panel
from rich.table import Table

from opchart.core.chart_creator import ChartResult
from opchart.models.chart import Chart
from opchart.output.themes import styled_source


def result_panel(result: ChartResult, written: Path | None = None) -> Panel:
    r = result.resource
    c = result.chart
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold cyan", no_wrap=True)
    table.add_column("Value")

    table.add_row("Source", styled_source(result.source))
    table.add_row("Chart", f"{c.name}-{c.version}")
    table.add_row("App Version", c.metadata.app_version or "-")
    table.add_row("Description", c.metadata.description or "-")
    table.add_row("API Version", r.api_version)
    table.add_row("Kind", r.kind)
    table.add_row("Plural", r.plural)
    table.add_row("CRD Version", r.crd_version)
    if c.dependencies:
        deps = ", ".join(f"{d.name}@{d.version}" for d in c.dependencies)
        table.add_row("Dependencies", deps)
    if written is not None:
        table.add_row("Written To", str(written))

    return Panel(table, title=f"[bold]Chart: {c.name}[/bold]", border_style="blue")


def template_table(chart: Chart) -> Table:
    table = Table(title="Templates", expand=False)
    table.add_column("Template", style="magenta")
    table.add_column("Size", justify="right", style="dim")
    for t in sorted(chart.templates, key=lambda t: t.name):
        table.add_row(t.name, str(len(t.data)))
    return table
