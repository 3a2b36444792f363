"""opchart create - Acquire a chart and derive its resource identity."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from opchart.cli.options import OutputOption
from opchart.core.chart_creator import create_chart, write_chart
from opchart.core.errors import ChartError
from opchart.models.resource import CreateOptions, GroupVersionKind
from opchart.output.formatters import output_result

app = typer.Typer()
err_console = Console(stderr=True)


@app.callback(invoke_without_command=True)
def create(
    helm_chart: str = typer.Option("", "--helm-chart", help="Chart reference: local path, repo/name, URL or name"),
    helm_chart_repo: str = typer.Option("", "--helm-chart-repo", help="Chart repository URL for a bare chart name"),
    helm_chart_version: str = typer.Option("", "--helm-chart-version", help="Chart version or constraint (default: latest)"),
    group: str = typer.Option("", "--group", help="Resource group"),
    version: str = typer.Option("", "--version", help="Resource version"),
    kind: str = typer.Option("", "--kind", help="Resource kind (required without --helm-chart)"),
    domain: str = typer.Option("", "--domain", help="Project domain"),
    crd_version: str = typer.Option("v1", "--crd-version", help="apiextensions.k8s.io version for the CRD"),
    project_dir: Optional[Path] = typer.Option(
        None, "--project-dir", help="Write the chart to <dir>/helm-charts/<name>",
    ),
    output: str = OutputOption,
) -> None:
    """Acquire a Helm chart for a new operator API."""
    if not helm_chart and not kind:
        typer.echo("--kind is required when --helm-chart is not set.", err=True)
        raise typer.Exit(code=1)

    options = CreateOptions(
        gvk=GroupVersionKind(group=group, version=version, kind=kind),
        chart=helm_chart,
        repo=helm_chart_repo,
        version=helm_chart_version,
        crd_version=crd_version,
        domain=domain,
    )
    try:
        result = create_chart(options)
        written = write_chart(project_dir, result.chart) if project_dir is not None else None
    except (ChartError, OSError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    output_result(result, output, written=written)
