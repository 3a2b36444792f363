"""Create the chart and resource identity for a new Helm operator API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from opchart.config.constants import HELM_CHARTS_DIR
from opchart.config.settings import Settings, settings as default_settings
from opchart.core import loader
from opchart.core.acquirer import (
    fetch_chart_dependencies,
    fetch_from_repository,
    load_local,
    reload_chart,
    scaffold_default,
)
from opchart.core.classifier import classify_reference
from opchart.core.errors import ChartError, LoadError, rewrap
from opchart.core.getter import Getters
from opchart.core.identity import derive_identity, new_resource
from opchart.core.repo_resolver import RepositoryStore
from opchart.core.workspace import temporary_workspace
from opchart.models import SourceKind
from opchart.models.chart import Chart
from opchart.models.resource import CreateOptions, ResourceIdentity

logger = logging.getLogger(__name__)

Acquire = Callable[[Path, CreateOptions, RepositoryStore], Chart]

_ACQUIRERS: dict[SourceKind, Acquire] = {
    SourceKind.EMPTY: scaffold_default,
    SourceKind.LOCAL_FILE: load_local,
    SourceKind.LOCAL_DIRECTORY: load_local,
    SourceKind.REMOTE: fetch_from_repository,
}


@dataclass
class ChartResult:
    resource: ResourceIdentity
    chart: Chart
    source: SourceKind


def create_chart(
    options: CreateOptions,
    settings: Settings | None = None,
    getters: Getters | None = None,
) -> ChartResult:
    """Acquire a chart, build its dependencies and derive its resource identity.

    An empty ``options.chart`` scaffolds helm's default chart named after
    ``options.gvk.kind``; a local file or directory is loaded; anything else
    is fetched from a repository. For loaded and fetched charts, unset
    group, version and kind are defaulted (``charts``, ``v1alpha1``,
    camel-cased chart name); a scaffolded chart keeps ``options.gvk`` as given.

    Everything happens inside a temporary workspace that is removed before
    returning, whether or not the pipeline succeeded. Any failure raises a
    :class:`ChartError` subclass and no chart is returned.
    """
    store = RepositoryStore(settings or default_settings, getters)

    source = classify_reference(options.chart)
    logger.debug("Chart reference %r classified as %s", options.chart, source.value)

    with temporary_workspace(store.settings.workspace_prefix) as workspace:
        try:
            chart = _ACQUIRERS[source](workspace, options, store)
        except ChartError as e:
            context = "failed to scaffold default chart" if source is SourceKind.EMPTY else "failed to fetch chart"
            raise rewrap(e, context) from e

        if source is SourceKind.EMPTY:
            # The scaffolded chart is named after the kind; the options are used as given.
            resource = new_resource(options.gvk, options.domain, options.crd_version)
        else:
            resource = derive_identity(chart.name, options.gvk, options.domain, options.crd_version)

        chart_path = workspace / chart.name
        try:
            fetch_chart_dependencies(chart_path, store)
        except ChartError as e:
            raise rewrap(e, "failed to fetch chart dependencies") from e

        try:
            chart = reload_chart(chart_path)
        except LoadError as e:
            raise rewrap(e, "failed to load chart") from e

    logger.debug("Created chart %s-%s for %s", chart.name, chart.version, resource.gvk)
    return ChartResult(resource=resource, chart=chart, source=source)


def write_chart(project_dir: str | Path, chart: Chart) -> Path:
    """Save ``chart`` into the project's ``helm-charts`` directory."""
    charts_dir = Path(project_dir) / HELM_CHARTS_DIR
    charts_dir.mkdir(parents=True, exist_ok=True)
    return loader.save_dir(chart, charts_dir)
