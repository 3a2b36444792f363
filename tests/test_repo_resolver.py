"""Tests for repository configuration and index lookup."""

import pytest
import yaml

from opchart.core.errors import FetchError
from opchart.core.getter import GetterOptions
from opchart.core.repo_resolver import (
    RepositoryStore,
    fetch_index,
    find_chart_in_repo_url,
    find_chart_version,
    load_repositories,
    parse_index,
    resolve_chart_url,
)
from opchart.models.repo import ChartVersion, IndexFile, Repository

from conftest import REPO_URL, index_yaml


class TestLoadRepositories:

    def test_missing_file(self, settings):
        assert load_repositories(settings) == {}

    def test_parses_entries(self, settings):
        settings.helm_config_dir.mkdir(parents=True)
        settings.repositories_file.write_text(yaml.safe_dump({"repositories": [
            {"name": "stable", "url": "https://stable.example.com", "username": "u", "password": "p"},
            {"name": "broken"},
        ]}))
        repos = load_repositories(settings)
        assert list(repos) == ["stable"]
        assert repos["stable"].username == "u"
        assert RepositoryStore(settings).for_url("https://stable.example.com/").name == "stable"

    def test_repository_config_override(self, settings, tmp_path):
        custom = tmp_path / "custom-repos.yaml"
        custom.write_text(yaml.safe_dump({"repositories": [{"name": "c", "url": "https://c"}]}))
        settings.repository_config = custom
        assert list(load_repositories(settings)) == ["c"]


class TestParseIndex:

    def test_requires_api_version(self):
        with pytest.raises(FetchError, match="no API version"):
            parse_index(b"entries: {}\n", "test")

    def test_invalid_yaml(self):
        with pytest.raises(FetchError, match="failed to parse"):
            parse_index(b"entries: [\n", "test")


class TestFindChartVersion:

    @pytest.fixture
    def index(self):
        return IndexFile(entries={"nginx": [
            ChartVersion(name="nginx", version="1.0.0", urls=["nginx-1.0.0.tgz"]),
            ChartVersion(name="nginx", version="1.2.0", urls=["nginx-1.2.0.tgz"]),
            ChartVersion(name="nginx", version="2.0.0-beta.1", urls=["nginx-2.0.0-beta.1.tgz"]),
        ]})

    def test_latest_when_version_empty(self, index):
        assert find_chart_version(index, "nginx", "", "test").version == "1.2.0"

    def test_exact_version(self, index):
        assert find_chart_version(index, "nginx", "1.0.0", "test").version == "1.0.0"

    def test_exact_prerelease(self, index):
        assert find_chart_version(index, "nginx", "2.0.0-beta.1", "test").version == "2.0.0-beta.1"

    def test_constraint(self, index):
        assert find_chart_version(index, "nginx", "~1.0", "test").version == "1.0.0"

    def test_missing_chart(self, index):
        with pytest.raises(FetchError, match="not found in test repository"):
            find_chart_version(index, "redis", "", "test")

    def test_missing_version(self, index):
        with pytest.raises(FetchError, match="version '9.9.9' not found"):
            find_chart_version(index, "nginx", "9.9.9", "test")


class TestResolveChartUrl:

    def test_relative(self):
        cv = ChartVersion(name="a", version="1", urls=["charts/a-1.tgz"])
        assert resolve_chart_url("https://x.example.com/repo", cv) == "https://x.example.com/repo/charts/a-1.tgz"

    def test_absolute(self):
        cv = ChartVersion(name="a", version="1", urls=["https://cdn.example.com/a-1.tgz"])
        assert resolve_chart_url("https://x.example.com", cv) == "https://cdn.example.com/a-1.tgz"

    def test_no_urls(self):
        with pytest.raises(FetchError, match="no downloadable URLs"):
            resolve_chart_url("https://x", ChartVersion(name="a", version="1"))


class TestRemoteIndex:

    def test_find_chart_in_repo_url(self, repo, getters):
        url, cv = find_chart_in_repo_url(REPO_URL, "nginx", "", getters, GetterOptions())
        assert url == f"{REPO_URL}/nginx-1.1.0.tgz"
        assert cv.version == "1.1.0"

    def test_unreachable_repo(self, getters):
        with pytest.raises(FetchError, match="not a valid chart repository"):
            fetch_index("https://nowhere.example.com", getters, GetterOptions())

    def test_cached_index_preferred(self, named_repo, settings, store, http):
        settings.helm_cache_dir.mkdir(parents=True)
        settings.index_cache_file(named_repo).write_bytes(index_yaml({
            "cached": [{"name": "cached", "version": "0.0.1", "urls": ["cached-0.0.1.tgz"]}],
        }))
        index = store.index(store.get(named_repo))
        assert index.versions("cached") == ["0.0.1"]
        assert http.calls == []


class TestRepositoryStore:

    def test_index_fetched_once_per_store(self, named_repo, store, http):
        repo = store.get(named_repo)
        assert store.index(repo) is store.index(repo)
        assert http.calls == [f"{REPO_URL}/index.yaml"]

    def test_stores_do_not_share_state(self, named_repo, settings, getters, http):
        first = RepositoryStore(settings, getters)
        first.index(first.get(named_repo))

        settings.repositories_file.write_text(yaml.safe_dump({
            "repositories": [{"name": "other", "url": "https://other.example.com"}],
        }))
        second = RepositoryStore(settings, getters)
        assert second.get(named_repo) is None
        assert second.get("other").url == "https://other.example.com"
        assert first.get(named_repo) is not None

    def test_unnamed_repository_is_fetched(self, repo, store, http, settings):
        settings.helm_cache_dir.mkdir(parents=True)
        index = store.index(store.for_url(REPO_URL) or Repository(name="", url=REPO_URL))
        assert index.versions("nginx") == ["1.0.0", "1.1.0"]
        assert http.calls == [f"{REPO_URL}/index.yaml"]

    def test_for_chart_url(self, named_repo, store):
        assert store.for_chart_url(f"{REPO_URL}/nginx-1.1.0.tgz").name == named_repo
        assert store.for_chart_url("https://cdn.example.net/nginx-1.1.0.tgz") is None
