"""Table / JSON / YAML output dispatch."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

from opchart.core.chart_creator import ChartResult

console = Console()


def _result_to_dict(result: ChartResult, written: Path | None = None) -> dict[str, Any]:
    r = result.resource
    c = result.chart
    data: dict[str, Any] = {
        "source": result.source.value,
        "resource": {
            "group": r.group,
            "version": r.version,
            "kind": r.kind,
            "domain": r.domain,
            "plural": r.plural,
            "qualified_group": r.qualified_group,
            "crd_version": r.crd_version,
            "namespaced": r.namespaced,
        },
        "chart": {
            "name": c.name,
            "version": c.version,
            "app_version": c.metadata.app_version,
            "templates": c.template_names,
            "dependencies": [f"{d.name}@{d.version}" for d in c.dependencies],
        },
    }
    if written is not None:
        data["path"] = str(written)
    return data


def output_result(result: ChartResult, fmt: str, written: Path | None = None) -> None:
    if fmt == "json":
        console.print_json(json.dumps(_result_to_dict(result, written), indent=2))
    elif fmt == "yaml":
        console.print(yaml.dump(_result_to_dict(result, written), default_flow_style=False, sort_keys=False))
    else:
        from opchart.output.tables import result_panel, template_table
        console.print(result_panel(result, written))
        console.print(template_table(result.chart))
