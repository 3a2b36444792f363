"""Download packaged charts by URL or ``repoName/chartName`` reference."""

from __future__ import annotations

import hashlib
import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from opchart.core.errors import FetchError
from opchart.core.repo_resolver import RepositoryStore, find_chart_version, resolve_chart_url
from opchart.models.repo import ChartVersion, Repository

logger = logging.getLogger(__name__)


@dataclass
class ResolvedChart:
    url: str
    repository: Repository | None = None
    chart_version: ChartVersion | None = None


def verify_digest(data: bytes, digest: str, source: str) -> None:
    """Compare ``data`` against an index ``digest`` (hex sha256, optionally prefixed)."""
    expected = digest.split(":", 1)[-1].lower()
    actual = hashlib.sha256(data).hexdigest()
    if actual != expected:
        raise FetchError(f"digest mismatch for {source}: expected sha256:{expected}, got sha256:{actual}")


class ChartDownloader:
    """Resolve a chart reference to a URL and save the archive locally.

    Supported references: an absolute URL whose scheme has a registered
    getter, or ``repoName/chartName`` naming a repository configured in
    repositories.yaml. ``version`` is only consulted for the latter.
    """

    def __init__(self, store: RepositoryStore) -> None:
        self.store = store

    def resolve(self, ref: str, version: str) -> ResolvedChart:
        parsed = urlparse(ref)
        if parsed.scheme:
            # Validates the scheme before any network access.
            self.store.getters.by_scheme(parsed.scheme)
            return ResolvedChart(url=ref, repository=self.store.for_chart_url(ref))

        repo_name, sep, chart_name = ref.partition("/")
        if not sep or not repo_name or not chart_name:
            raise FetchError(f"non-absolute URLs should be in form of repo_name/path_to_chart, got: {ref}")
        repo = self.store.get(repo_name)
        if repo is None:
            raise FetchError(f"repo {repo_name} not found")
        index = self.store.index(repo)
        cv = find_chart_version(index, chart_name, version, repo_name)
        return ResolvedChart(url=resolve_chart_url(repo.url, cv), repository=repo, chart_version=cv)

    def download_to(self, ref: str, version: str, dest: str | Path, digest: str = "") -> Path:
        """Fetch ``ref`` into ``dest`` and return the saved archive path.

        ``digest`` is checked when given; otherwise the index digest is used
        for references resolved through a named repository.
        """
        resolved = self.resolve(ref, version)
        options = self.store.options(resolved.repository)
        if resolved.repository is not None and not self._may_send_credentials(resolved):
            options.username = options.password = ""

        logger.info("Downloading %s", resolved.url)
        data = self.store.getters.get(resolved.url, options)
        if not digest and resolved.chart_version is not None:
            digest = resolved.chart_version.digest
        if digest:
            verify_digest(data, digest, resolved.url)

        name = posixpath.basename(unquote(urlparse(resolved.url).path)) or "chart"
        if not name.endswith((".tgz", ".tar.gz")):
            name += ".tgz"
        target = Path(dest) / name
        try:
            target.write_bytes(data)
        except OSError as e:
            raise FetchError(f"failed to save {resolved.url} to {target}: {e}") from e
        logger.debug("Saved %s to %s", resolved.url, target)
        return target

    @staticmethod
    def _may_send_credentials(resolved: ResolvedChart) -> bool:
        """Only send repository credentials to the repository's own host."""
        repo = resolved.repository
        if repo is None or repo.pass_credentials_all:
            return True
        return urlparse(repo.url).netloc == urlparse(resolved.url).netloc
