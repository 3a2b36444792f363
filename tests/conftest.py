"""Shared pytest fixtures for opchart tests."""

import hashlib
import sys
from pathlib import Path

import pytest
import yaml

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from opchart.config.settings import Settings
from opchart.core import loader
from opchart.core.errors import FetchError
from opchart.core.getter import FileGetter, Getters
from opchart.core.repo_resolver import RepositoryStore
from opchart.models.chart import Chart, ChartDependency, ChartFile, ChartMetadata

REPO_URL = "https://charts.example.com"


class FakeHTTPGetter:
    """In-memory stand-in for the HTTP transport."""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.options = []

    def add(self, url, data):
        self.responses[url] = data

    def get(self, url, options):
        self.calls.append(url)
        self.options.append(options)
        if url not in self.responses:
            raise FetchError(f"failed to fetch {url}: 404 Client Error: Not Found")
        return self.responses[url]


def build_chart(name, version="0.1.0", dependencies=None, templates=None):
    """Create an in-memory chart with a values file and templates."""
    metadata = ChartMetadata(
        name=name,
        version=version,
        api_version="v2",
        description=f"{name} test chart",
        dependencies=[ChartDependency.from_dict(d) for d in dependencies or []],
    )
    if templates is None:
        templates = {"templates/configmap.yaml": "kind: ConfigMap\n"}
    return Chart(
        metadata=metadata,
        values=b"replicaCount: 1\n",
        templates=[ChartFile(name=k, data=v.encode()) for k, v in templates.items()],
    )


def write_chart_dir(base, name, version="0.1.0", dependencies=None):
    """Write a chart tree to ``base/name`` and return its path."""
    return loader.save_dir(build_chart(name, version, dependencies), base)


def index_entry(name, version, data, url=None):
    return {
        "name": name,
        "version": version,
        "urls": [url or f"{name}-{version}.tgz"],
        "digest": hashlib.sha256(data).hexdigest(),
        "apiVersion": "v2",
    }


def index_yaml(entries):
    """Serialize a repository index from {name: [entry, ...]}."""
    return yaml.safe_dump({"apiVersion": "v1", "entries": entries}).encode()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's helm configuration."""
    return Settings(
        helm_cache_dir=tmp_path / 'helm-cache',
        helm_config_dir=tmp_path / 'helm-config',
        repository_config=None,
    )


@pytest.fixture
def http():
    return FakeHTTPGetter()


@pytest.fixture
def getters(http):
    return Getters({"https": http, "http": http, "file": FileGetter()})


@pytest.fixture
def store(settings, getters):
    return RepositoryStore(settings, getters)


@pytest.fixture
def repo(http):
    """A chart repository serving ``nginx`` 1.0.0/1.1.0 and ``redis`` 17.3.2."""
    archives = {
        ("nginx", "1.0.0"): loader.archive_bytes(build_chart("nginx", "1.0.0")),
        ("nginx", "1.1.0"): loader.archive_bytes(build_chart("nginx", "1.1.0")),
        ("redis", "17.3.2"): loader.archive_bytes(build_chart("redis", "17.3.2")),
    }
    entries = {}
    for (name, version), data in archives.items():
        entries.setdefault(name, []).append(index_entry(name, version, data))
        http.add(f"{REPO_URL}/{name}-{version}.tgz", data)
    http.add(f"{REPO_URL}/index.yaml", index_yaml(entries))
    return archives


@pytest.fixture
def named_repo(settings, repo):
    """Register the fake repository as ``myrepo`` in repositories.yaml."""
    settings.helm_config_dir.mkdir(parents=True)
    settings.repositories_file.write_text(yaml.safe_dump({
        "apiVersion": "",
        "repositories": [{"name": "myrepo", "url": REPO_URL}],
    }))
    return "myrepo"
