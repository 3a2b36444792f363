"""Acquisition strategies: scaffold, load from disk, fetch from a repository."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from opchart.core import loader, scaffold
from opchart.core.dependency import DependencyManager
from opchart.core.downloader import ChartDownloader
from opchart.core.errors import DependencyError, FetchError, LoadError, ScaffoldError
from opchart.core.repo_resolver import RepositoryStore, find_chart_in_repo_url
from opchart.models.chart import Chart
from opchart.models.resource import CreateOptions

logger = logging.getLogger(__name__)


def scaffold_default(workspace: Path, options: CreateOptions, store: RepositoryStore) -> Chart:
    """Write helm's default chart, named after the lower-cased kind."""
    name = options.gvk.kind.lower()
    if not name:
        raise ScaffoldError("a resource kind is required to scaffold a chart")
    chart_path = scaffold.create(name, workspace)
    try:
        return loader.load(chart_path)
    except LoadError as e:
        raise ScaffoldError(f"scaffolded chart {chart_path} is invalid: {e}") from e


def load_from_disk(workspace: Path, source: str | Path) -> Chart:
    """Load a chart archive or directory and re-save it as ``<workspace>/<name>``."""
    chart = loader.load(source)
    try:
        loader.save_dir(chart, workspace)
    except OSError as e:
        raise LoadError(f"failed to save chart {chart.name} into {workspace}: {e}") from e
    logger.debug("Loaded chart %s from %s", chart.name, source)
    return chart


def load_local(workspace: Path, options: CreateOptions, store: RepositoryStore) -> Chart:
    return load_from_disk(workspace, options.chart)


def fetch_from_repository(workspace: Path, options: CreateOptions, store: RepositoryStore) -> Chart:
    """Download the referenced chart into the workspace, then load it.

    With ``options.repo`` set, ``options.chart`` is a bare chart name looked
    up in that repository's index. Otherwise it is ``repoName/chartName`` or
    a chart URL. Failures are not retried.
    """
    ref = options.chart
    digest = ""
    try:
        if options.repo:
            ref, cv = find_chart_in_repo_url(
                options.repo,
                options.chart,
                options.version,
                store.getters,
                store.options(store.for_url(options.repo)),
            )
            digest = cv.digest
        archive = ChartDownloader(store).download_to(ref, options.version, workspace, digest=digest)
    except FetchError as e:
        raise FetchError(f"chart {options.chart!r}: {e}") from e
    return load_from_disk(workspace, archive)


def fetch_chart_dependencies(chart_path: Path, store: RepositoryStore) -> None:
    """Build the dependencies of the chart at ``chart_path`` in place.

    Resolver output is kept in memory and only logged when the build fails.
    """
    out = io.StringIO()
    manager = DependencyManager(chart_path, store.settings, out=out, store=store)
    try:
        manager.build()
    except DependencyError as e:
        if e.output:
            logger.error("Dependency build output for %s:\n%s", chart_path, e.output.rstrip())
        raise


def reload_chart(chart_path: Path) -> Chart:
    """Re-read the chart after its dependencies were written to disk."""
    return loader.load(chart_path)
