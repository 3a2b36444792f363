"""Materialize a chart's declared dependencies into its ``charts/`` directory."""

from __future__ import annotations

import hashlib
import io
import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO
from urllib.parse import urlparse

import yaml

from opchart.config.constants import API_VERSION_V1, CHART_FILE, CHARTS_DIR
from opchart.config.settings import Settings
from opchart.core import loader
from opchart.core.downloader import verify_digest
from opchart.core.errors import DependencyError, FetchError, LoadError
from opchart.core.getter import Getters
from opchart.core.repo_resolver import RepositoryStore, find_chart_version, resolve_chart_url
from opchart.models.chart import Chart, ChartDependency, ChartLock
from opchart.models.repo import Repository
from opchart.utils.version_compare import ConstraintError, satisfies

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"


# Go's json.Marshal HTML-escapes these; everything else non-ASCII stays raw.
_GO_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _go_json(value: Any) -> bytes:
    """Encode ``value`` byte-for-byte the way Go's ``json.Marshal`` does."""
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    for raw, escaped in _GO_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text.encode("utf-8")


def _sort_keys(value: Any) -> Any:
    # Go marshals map keys sorted; struct fields keep declaration order.
    if isinstance(value, dict):
        return {k: _sort_keys(value[k]) for k in sorted(value)}
    if isinstance(value, list):
        return [_sort_keys(v) for v in value]
    return value


def _hash_entry(dep: ChartDependency) -> dict[str, Any]:
    entry = dep.to_dict()
    if "import-values" in entry:
        entry["import-values"] = _sort_keys(entry["import-values"])
    return entry


def _digest(payload: Any) -> str:
    return "sha256:" + hashlib.sha256(_go_json(payload)).hexdigest()


def hash_requirements(requirements: list[ChartDependency], locked: list[ChartDependency]) -> str:
    """Digest tying a lock file to the dependency list it was resolved from.

    Matches the ``digest`` helm 3 writes into Chart.lock, so locks produced
    by either tool verify against each other.
    """
    return _digest([[_hash_entry(d) for d in requirements], [_hash_entry(d) for d in locked]])


def hash_v2_requirements(requirements: list[ChartDependency]) -> str:
    """Digest helm 2 wrote into requirements.lock."""
    return _digest({"dependencies": [_hash_entry(d) for d in requirements]})


@dataclass
class _PendingArchive:
    dependency: ChartDependency
    data: bytes


class DependencyManager:
    """Build-style dependency sync for one chart directory.

    With a lock file, the locked versions are downloaded after checking the
    lock still matches Chart.yaml. Without one, constraints are resolved
    against the dependency repositories and a lock file is written. Archives
    already present under ``charts/`` are left untouched, so a second build
    of a resolved chart changes nothing.

    Progress messages go to ``out``; every failure is raised as a
    :class:`DependencyError` carrying that output.
    """

    def __init__(
        self,
        chart_path: str | Path,
        settings: Settings,
        getters: Getters | None = None,
        out: TextIO | None = None,
        store: RepositoryStore | None = None,
    ) -> None:
        self.chart_path = Path(chart_path)
        self.settings = settings
        self.store = store or RepositoryStore(settings, getters)
        self.getters = self.store.getters
        self.out = out if out is not None else io.StringIO()

    @property
    def charts_dir(self) -> Path:
        return self.chart_path / CHARTS_DIR

    def build(self) -> None:
        try:
            self._build()
        except (DependencyError, FetchError, LoadError, ConstraintError, OSError) as e:
            message = e.args[0] if isinstance(e, DependencyError) else str(e)
            raise DependencyError(message, output=self._output()) from e

    def _build(self) -> None:
        chart = loader.load(self.chart_path)
        requirements = chart.declared_dependencies
        if not requirements:
            logger.debug("Chart %s declares no dependencies", chart.name)
            return

        if chart.lock is None:
            self._update(chart, requirements)
            return

        if not self._lock_in_sync(chart, requirements):
            lock_name = loader.lock_file_name(chart.metadata)
            raise DependencyError(
                f"the lock file ({lock_name}) is out of sync with the dependencies file. "
                "Please update the dependencies"
            )
        self._download_all(chart.lock.dependencies)

    @staticmethod
    def _lock_in_sync(chart: Chart, requirements: list[ChartDependency]) -> bool:
        digest = chart.lock.digest
        if digest == hash_requirements(requirements, chart.lock.dependencies):
            return True
        # requirements.lock files written by helm 2 hash only the requirements.
        if chart.metadata.api_version == API_VERSION_V1:
            logger.warning("A valid helm 3 lock digest was not found, checking against the helm 2 digest")
            return digest == hash_v2_requirements(requirements)
        return False

    def _update(self, chart: Chart, requirements: list[ChartDependency]) -> None:
        self._print("Hang tight while we grab the latest from your chart repositories...")
        locked = [self._resolve(dep) for dep in requirements]
        self._download_all(locked)

        lock = ChartLock(
            generated=datetime.now(timezone.utc).isoformat(),
            digest=hash_requirements(requirements, locked),
            dependencies=locked,
        )
        lock_path = self.chart_path / loader.lock_file_name(chart.metadata)
        lock_path.write_text(yaml.safe_dump(lock.to_dict(), sort_keys=False), encoding="utf-8")
        self._print(f"Update Complete. Wrote {lock_path.name}")

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, dep: ChartDependency) -> ChartDependency:
        """Pin ``dep`` to the exact version its repository provides."""
        if not dep.repository:
            local = self._present_chart(dep.name)
            if local is None:
                raise DependencyError(
                    f"dependency {dep.name!r} did not declare a repository and is not present in {CHARTS_DIR}/"
                )
            version = local.version
        elif dep.repository.startswith(FILE_SCHEME):
            version = self._load_file_dependency(dep).version
        else:
            repo = self._repository(dep)
            index = self.store.index(repo)
            version = find_chart_version(index, dep.name, dep.version, repo.name or repo.url).version

        if dep.version and not satisfies(version, dep.version):
            raise DependencyError(
                f"can't get a valid version for dependency {dep.name!r}: "
                f"{version} does not satisfy {dep.version!r}"
            )
        return ChartDependency(name=dep.name, version=version, repository=dep.repository)

    def _repository(self, dep: ChartDependency) -> Repository:
        ref = dep.repository
        if ref.startswith("@") or ref.startswith("alias:"):
            name = ref[1:] if ref.startswith("@") else ref[len("alias:"):]
            repo = self.store.get(name)
            if repo is None:
                raise DependencyError(
                    f"no repository definition for {ref}. Please add the missing repos via 'helm repo add'"
                )
            return repo
        scheme = urlparse(ref).scheme
        if not scheme:
            raise DependencyError(f"dependency {dep.name!r} has an invalid repository {ref!r}")
        self.getters.by_scheme(scheme)
        return self.store.for_url(ref) or Repository(name="", url=ref)

    def _load_file_dependency(self, dep: ChartDependency) -> Chart:
        rel = dep.repository[len(FILE_SCHEME):]
        path = (self.chart_path / rel).resolve()
        chart = loader.load(path)
        if chart.name != dep.name:
            raise DependencyError(
                f"chart at {dep.repository} is named {chart.name!r}, expected {dep.name!r}"
            )
        return chart

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def _download_all(self, locked: list[ChartDependency]) -> None:
        pending: list[_PendingArchive] = []
        for dep in locked:
            if self._is_present(dep):
                logger.debug("Dependency %s-%s already present", dep.name, dep.version)
                continue
            if not dep.repository:
                raise DependencyError(
                    f"dependency {dep.name!r} version {dep.version} is not present in {CHARTS_DIR}/"
                )
            pending.append(_PendingArchive(dependency=dep, data=self._fetch_archive(dep)))

        if not pending:
            return

        # Only touch charts/ once every archive has been fetched.
        self._print(f"Saving {len(pending)} charts")
        self.charts_dir.mkdir(parents=True, exist_ok=True)
        for item in pending:
            self._remove_outdated(item.dependency)
            (self.charts_dir / _archive_name(item.dependency)).write_bytes(item.data)
        self._print("Deleting outdated charts")

    def _fetch_archive(self, dep: ChartDependency) -> bytes:
        if dep.repository.startswith(FILE_SCHEME):
            chart = self._load_file_dependency(dep)
            if chart.version != dep.version:
                raise DependencyError(
                    f"chart at {dep.repository} has version {chart.version}, locked version is {dep.version}"
                )
            self._print(f"Packaging {dep.name} from {dep.repository}")
            return loader.archive_bytes(chart)

        repo = self._repository(dep)
        index = self.store.index(repo)
        cv = find_chart_version(index, dep.name, dep.version, repo.name or repo.url)
        url = resolve_chart_url(repo.url, cv)
        self._print(f'Downloading {dep.name} from repo {repo.url}')
        data = self.getters.get(url, self.store.options(repo))
        if cv.digest:
            verify_digest(data, cv.digest, url)
        # Fail early on archives that are not charts.
        fetched = loader.load_archive_bytes(data, source=url)
        if fetched.name != dep.name or fetched.version != dep.version:
            raise DependencyError(
                f"archive {url} contains {fetched.name}-{fetched.version}, expected {dep.name}-{dep.version}"
            )
        return data

    def _is_present(self, dep: ChartDependency) -> bool:
        if (self.charts_dir / _archive_name(dep)).is_file():
            return True
        local = self._present_chart(dep.name)
        return local is not None and local.version == dep.version

    def _present_chart(self, name: str) -> Chart | None:
        """Return the chart for ``name`` unpacked or packaged under charts/, if any."""
        chart_dir = self.charts_dir / name
        if (chart_dir / CHART_FILE).is_file():
            return loader.load(chart_dir)
        for archive in sorted(self.charts_dir.glob(f"{name}-*.tgz")):
            chart = loader.load(archive)
            if chart.name == name:
                return chart
        return None

    def _remove_outdated(self, dep: ChartDependency) -> None:
        keep = _archive_name(dep)
        for archive in self.charts_dir.glob(f"{dep.name}-*.tgz"):
            if archive.name == keep:
                continue
            if loader.load(archive).name == dep.name:
                archive.unlink()
        chart_dir = self.charts_dir / dep.name
        if (chart_dir / CHART_FILE).is_file():
            shutil.rmtree(chart_dir)

    def _print(self, message: str) -> None:
        print(message, file=self.out)

    def _output(self) -> str:
        if isinstance(self.out, io.StringIO):
            return self.out.getvalue()
        return ""


def _archive_name(dep: ChartDependency) -> str:
    return f"{dep.name}-{dep.version}.tgz"
