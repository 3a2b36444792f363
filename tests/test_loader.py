"""Tests for chart loading and saving.

Tests verify:
1. Directory and archive charts load into the same model
2. Malformed charts raise LoadError
3. Sub-charts under charts/ are loaded as dependencies
4. .helmignore rules are honored for directories
"""

import io
import tarfile

import pytest
import yaml

from opchart.core import loader
from opchart.core.errors import LoadError

from conftest import build_chart, write_chart_dir


def _tar_gz(members):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class TestLoadDir:

    def test_loads_metadata_values_and_templates(self, tmp_path):
        path = write_chart_dir(tmp_path, "web", "1.2.3")
        chart = loader.load(path)
        assert chart.name == "web"
        assert chart.version == "1.2.3"
        assert chart.values == b"replicaCount: 1\n"
        assert chart.template_names == ["templates/configmap.yaml"]

    def test_missing_chart_yaml(self, tmp_path):
        (tmp_path / "templates").mkdir()
        (tmp_path / "templates" / "a.yaml").write_text("kind: A\n")
        with pytest.raises(LoadError, match="Chart.yaml file is missing"):
            loader.load(tmp_path)

    def test_missing_name(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nversion: 1.0.0\n")
        with pytest.raises(LoadError, match="name is required"):
            loader.load(tmp_path)

    def test_missing_version(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nname: web\n")
        with pytest.raises(LoadError, match="version is required"):
            loader.load(tmp_path)

    def test_unquoted_numeric_version_rejected(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nname: web\nversion: 1.10\n")
        with pytest.raises(LoadError, match="cannot load Chart.yaml.*quote it"):
            loader.load(tmp_path)

    def test_unquoted_dependency_version_rejected(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text(
            "apiVersion: v2\nname: web\nversion: 1.0.0\n"
            "dependencies:\n- name: db\n  version: 2.10\n  repository: https://x\n"
        )
        with pytest.raises(LoadError, match="version 2.1 must be a string"):
            loader.load(tmp_path)

    def test_quoted_version_kept_verbatim(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("apiVersion: v2\nname: web\nversion: \"1.10\"\n")
        assert loader.load(tmp_path).version == "1.10"

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("name: [unclosed\n")
        with pytest.raises(LoadError, match="cannot load Chart.yaml"):
            loader.load(tmp_path)

    def test_missing_path(self, tmp_path):
        with pytest.raises(LoadError, match="no chart found"):
            loader.load(tmp_path / "nope")

    def test_default_api_version_is_v1(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("name: web\nversion: 1.0.0\n")
        assert loader.load(tmp_path).metadata.api_version == "v1"

    def test_helmignore(self, tmp_path):
        path = write_chart_dir(tmp_path, "web")
        (path / ".helmignore").write_text("# comment\n*.bak\n.git/\n")
        (path / "notes.bak").write_text("ignored")
        (path / ".git").mkdir()
        (path / ".git" / "HEAD").write_text("ref")
        (path / "templates" / ".hidden.yaml").write_text("kind: Hidden\n")
        (path / "README.md").write_text("# web")

        chart = loader.load(path)
        names = {f.name for f in chart.files}
        assert "README.md" in names
        assert ".helmignore" in names
        assert "notes.bak" not in names
        assert ".git/HEAD" not in names
        assert chart.template_names == ["templates/configmap.yaml"]

    def test_subchart_directory_and_archive(self, tmp_path):
        path = write_chart_dir(tmp_path, "web")
        write_chart_dir(path / "charts", "db", "2.0.0")
        loader.save_archive(build_chart("cache", "3.0.0"), path / "charts")

        chart = loader.load(path)
        deps = sorted((d.name, d.version) for d in chart.dependencies)
        assert deps == [("cache", "3.0.0"), ("db", "2.0.0")]

    def test_lock_file_loaded(self, tmp_path):
        path = write_chart_dir(tmp_path, "web")
        (path / "Chart.lock").write_text(yaml.safe_dump({
            "dependencies": [{"name": "db", "version": "2.0.0", "repository": "https://x"}],
            "digest": "sha256:abc",
            "generated": "2024-01-01T00:00:00Z",
        }))
        chart = loader.load(path)
        assert chart.lock.digest == "sha256:abc"
        assert chart.lock.dependencies[0].version == "2.0.0"

    def test_requirements_yaml_for_v1_charts(self, tmp_path):
        (tmp_path / "Chart.yaml").write_text("apiVersion: v1\nname: old\nversion: 1.0.0\n")
        (tmp_path / "requirements.yaml").write_text(
            "dependencies:\n- name: db\n  version: ~2.0.0\n  repository: https://x\n"
        )
        chart = loader.load(tmp_path)
        assert [d.name for d in chart.declared_dependencies] == ["db"]


class TestLoadArchive:

    def test_roundtrip_with_directory(self, tmp_path):
        archive = loader.save_archive(build_chart("web", "1.0.0"), tmp_path)
        assert archive.name == "web-1.0.0.tgz"
        chart = loader.load(archive)
        assert chart.name == "web"
        assert chart.template_names == ["templates/configmap.yaml"]

    def test_not_gzip(self, tmp_path):
        bogus = tmp_path / "web.tgz"
        bogus.write_text("plain text")
        with pytest.raises(LoadError, match="does not appear to be a gzipped archive"):
            loader.load(bogus)

    def test_rejects_path_traversal(self, tmp_path):
        archive = tmp_path / "evil.tgz"
        archive.write_bytes(_tar_gz({
            "web/Chart.yaml": b"name: web\nversion: 1.0.0\n",
            "../../etc/passwd": b"root",
        }))
        with pytest.raises(LoadError, match="outside the base directory"):
            loader.load(archive)

    def test_strips_top_level_directory(self, tmp_path):
        archive = tmp_path / "web.tgz"
        archive.write_bytes(_tar_gz({
            "whatever/Chart.yaml": b"apiVersion: v2\nname: web\nversion: 1.0.0\n",
            "whatever/templates/svc.yaml": b"kind: Service\n",
        }))
        chart = loader.load(archive)
        assert chart.name == "web"
        assert chart.template_names == ["templates/svc.yaml"]

    def test_archive_bytes_are_stable(self):
        chart = build_chart("web", "1.0.0")
        assert loader.archive_bytes(chart) == loader.archive_bytes(chart)


class TestSaveDir:

    def test_writes_chart_tree(self, tmp_path):
        chart = build_chart("web", "1.0.0", dependencies=[
            {"name": "db", "version": "^2.0.0", "repository": "https://x"},
        ])
        chart.dependencies.append(build_chart("db", "2.0.1"))
        out = loader.save_dir(chart, tmp_path)

        assert out == tmp_path / "web"
        meta = yaml.safe_load((out / "Chart.yaml").read_text())
        assert meta["name"] == "web"
        assert meta["dependencies"][0]["version"] == "^2.0.0"
        assert (out / "templates" / "configmap.yaml").is_file()
        assert (out / "charts" / "db" / "Chart.yaml").is_file()

    def test_reload_preserves_name_and_templates(self, tmp_path):
        original = build_chart("web", "1.0.0", templates={
            "templates/a.yaml": "a: 1\n",
            "templates/sub/b.yaml": "b: 2\n",
        })
        reloaded = loader.load(loader.save_dir(original, tmp_path))
        assert reloaded.name == original.name
        assert reloaded.template_names == original.template_names

    def test_target_is_a_file(self, tmp_path):
        (tmp_path / "web").write_text("in the way")
        with pytest.raises(LoadError, match="not a directory"):
            loader.save_dir(build_chart("web"), tmp_path)
