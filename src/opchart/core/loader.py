"""Read and write charts in helm's directory and packaged-archive formats."""

from __future__ import annotations

import fnmatch
import gzip
import io
import logging
import posixpath
import tarfile
from pathlib import Path
from typing import Callable, TypeVar

import yaml

from opchart.config.constants import (
    API_VERSION_V1,
    CHART_FILE,
    CHARTS_DIR,
    LOCK_FILE,
    REQUIREMENTS_FILE,
    REQUIREMENTS_LOCK_FILE,
    SCHEMA_FILE,
    TEMPLATES_DIR,
    VALUES_FILE,
)
from opchart.core.errors import LoadError
from opchart.models.chart import Chart, ChartDependency, ChartFile, ChartLock, ChartMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

HELMIGNORE_FILE = ".helmignore"
_GZIP_MAGIC = b"\x1f\x8b"
_ARCHIVE_SUFFIXES = (".tgz", ".tar.gz")


def is_archive_name(name: str) -> bool:
    return name.endswith(_ARCHIVE_SUFFIXES)


def load(path: str | Path) -> Chart:
    """Load a chart from a directory or a packaged ``.tgz`` archive."""
    p = Path(path)
    if not p.exists():
        raise LoadError(f"no chart found at {p}")
    if p.is_dir():
        return load_dir(p)
    return load_archive(p)


def load_dir(path: Path) -> Chart:
    rules = _IgnoreRules.from_dir(path)
    files: list[ChartFile] = []
    for f in sorted(path.rglob("*")):
        rel = f.relative_to(path).as_posix()
        if rules.ignored(rel, f.is_dir()):
            continue
        if not f.is_file():
            continue
        try:
            files.append(ChartFile(name=rel, data=f.read_bytes()))
        except OSError as e:
            raise LoadError(f"cannot read {f}: {e}") from e
    return load_files(files, source=str(path))


def load_archive(path: Path) -> Chart:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise LoadError(f"cannot read chart archive {path}: {e}") from e
    if raw[:2] != _GZIP_MAGIC:
        raise LoadError(f"file '{path}' does not appear to be a gzipped archive")
    return load_archive_bytes(raw, source=str(path))


def load_archive_bytes(raw: bytes, source: str = "<archive>") -> Chart:
    files: list[ChartFile] = []
    try:
        with tarfile.open(fileobj=io.BytesIO(raw), mode="r:gz") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                name = _archive_member_name(member.name, source)
                if name is None:
                    continue
                fh = tar.extractfile(member)
                if fh is None:
                    continue
                files.append(ChartFile(name=name, data=fh.read()))
    except (tarfile.TarError, EOFError, OSError) as e:
        raise LoadError(f"cannot read chart archive {source}: {e}") from e
    if not files:
        raise LoadError(f"no files in chart archive {source}")
    return load_files(files, source=source)


def _archive_member_name(name: str, source: str) -> str | None:
    """Strip the top-level directory from an archive member name."""
    if name == "pax_global_header":
        return None
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized.startswith(("/", "../")) or normalized == "..":
        raise LoadError(f"chart {source} illegally contains content outside the base directory: {name}")
    parts = normalized.split("/", 1)
    if len(parts) < 2:
        return None
    return parts[1]


def load_files(files: list[ChartFile], source: str = "<memory>") -> Chart:
    """Assemble a chart from its files, relative to the chart root."""
    chart = Chart()
    chart_yaml: bytes | None = None
    subcharts: dict[str, list[ChartFile]] = {}
    archives: list[ChartFile] = []

    for f in files:
        if f.name == CHART_FILE:
            chart_yaml = f.data
        elif f.name in (LOCK_FILE, REQUIREMENTS_LOCK_FILE):
            lock = _parse_yaml(f.data, f.name, source)
            chart.lock = _from_mapping(ChartLock.from_dict, lock, f.name, source)
        elif f.name == REQUIREMENTS_FILE:
            data = _parse_yaml(f.data, f.name, source)
            chart.requirements = [
                _from_mapping(ChartDependency.from_dict, d, f.name, source) for d in data.get("dependencies") or []
            ]
        elif f.name == VALUES_FILE:
            chart.values = f.data
        elif f.name == SCHEMA_FILE:
            chart.schema = f.data
        elif f.name.startswith(f"{TEMPLATES_DIR}/"):
            chart.templates.append(f)
        elif f.name.startswith(f"{CHARTS_DIR}/"):
            rest = f.name[len(CHARTS_DIR) + 1:]
            if "/" not in rest:
                if is_archive_name(rest):
                    archives.append(f)
                else:
                    chart.files.append(f)
                continue
            sub_name, sub_path = rest.split("/", 1)
            subcharts.setdefault(sub_name, []).append(ChartFile(name=sub_path, data=f.data))
        else:
            chart.files.append(f)

    if chart_yaml is None:
        raise LoadError(f"{CHART_FILE} file is missing in {source}")
    metadata = _parse_yaml(chart_yaml, CHART_FILE, source)
    chart.metadata = _from_mapping(ChartMetadata.from_dict, metadata, CHART_FILE, source)
    if not chart.metadata.api_version:
        chart.metadata.api_version = API_VERSION_V1
    _validate(chart.metadata, source)

    for sub_name, sub_files in sorted(subcharts.items()):
        chart.dependencies.append(load_files(sub_files, source=f"{source}/{CHARTS_DIR}/{sub_name}"))
    for archive in sorted(archives, key=lambda a: a.name):
        chart.dependencies.append(load_archive_bytes(archive.data, source=f"{source}/{archive.name}"))

    logger.debug("Loaded chart %s-%s from %s", chart.name, chart.version, source)
    return chart


def _parse_yaml(data: bytes, name: str, source: str) -> dict:
    try:
        parsed = yaml.safe_load(data.decode("utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot load {name} in {source}: {e}") from e
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise LoadError(f"cannot load {name} in {source}: expected a mapping")
    return parsed


def _from_mapping(factory: Callable[[dict], T], data: dict, name: str, source: str) -> T:
    try:
        return factory(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise LoadError(f"cannot load {name} in {source}: {e}") from e


def _validate(metadata: ChartMetadata, source: str) -> None:
    if not metadata.name:
        raise LoadError(f"validation: chart.metadata.name is required in {source}")
    if "/" in metadata.name or "\\" in metadata.name or metadata.name in (".", ".."):
        raise LoadError(f"validation: chart.metadata.name {metadata.name!r} is invalid in {source}")
    if not metadata.version:
        raise LoadError(f"validation: chart.metadata.version is required in {source}")
    if metadata.chart_type not in ("", "application", "library"):
        raise LoadError(f"validation: chart.metadata.type {metadata.chart_type!r} is invalid in {source}")


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def chart_files(chart: Chart) -> list[ChartFile]:
    """Flatten a chart (without sub-charts) to the files helm would write."""
    out = [ChartFile(name=CHART_FILE, data=_dump_yaml(chart.metadata.to_dict()))]
    if chart.values is not None:
        out.append(ChartFile(name=VALUES_FILE, data=chart.values))
    if chart.schema is not None:
        out.append(ChartFile(name=SCHEMA_FILE, data=chart.schema))
    if chart.requirements:
        out.append(ChartFile(
            name=REQUIREMENTS_FILE,
            data=_dump_yaml({"dependencies": [d.to_dict() for d in chart.requirements]}),
        ))
    if chart.lock is not None:
        out.append(ChartFile(name=lock_file_name(chart.metadata), data=_dump_yaml(chart.lock.to_dict())))
    out.extend(chart.templates)
    out.extend(chart.files)
    return out


def lock_file_name(metadata: ChartMetadata) -> str:
    if metadata.api_version == API_VERSION_V1:
        return REQUIREMENTS_LOCK_FILE
    return LOCK_FILE


def save_dir(chart: Chart, dest: str | Path) -> Path:
    """Write ``chart`` as ``<dest>/<chart name>/`` and return that directory.

    Sub-charts are written as directories under ``charts/``.
    """
    outdir = Path(dest) / chart.name
    if outdir.exists() and not outdir.is_dir():
        raise LoadError(f"file {outdir} already exists and is not a directory")
    for f in chart_files(chart):
        target = _safe_join(outdir, f.name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(f.data)
    for dep in chart.dependencies:
        save_dir(dep, outdir / CHARTS_DIR)
    return outdir


def save_archive(chart: Chart, dest: str | Path) -> Path:
    """Package ``chart`` as ``<dest>/<name>-<version>.tgz`` and return its path."""
    dest_dir = Path(dest)
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / f"{chart.name}-{chart.version}.tgz"
    target.write_bytes(archive_bytes(chart))
    return target


def archive_bytes(chart: Chart) -> bytes:
    """Serialize a chart to gzip tar bytes with stable timestamps."""
    buf = io.BytesIO()
    with gzip.GzipFile(fileobj=buf, mode="wb", mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w") as tar:
            _add_chart_to_tar(tar, chart, chart.name)
    return buf.getvalue()


def _add_chart_to_tar(tar: tarfile.TarFile, chart: Chart, prefix: str) -> None:
    for f in chart_files(chart):
        info = tarfile.TarInfo(name=f"{prefix}/{f.name}")
        info.size = len(f.data)
        info.mode = 0o644
        tar.addfile(info, io.BytesIO(f.data))
    for dep in chart.dependencies:
        _add_chart_to_tar(tar, dep, f"{prefix}/{CHARTS_DIR}/{dep.name}")


def _safe_join(base: Path, name: str) -> Path:
    target = (base / name).resolve()
    if base.resolve() not in target.parents:
        raise LoadError(f"chart file {name!r} escapes {base}")
    return target


def _dump_yaml(data: dict) -> bytes:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False).encode("utf-8")


class _IgnoreRules:
    """Subset of .helmignore: globs, ``dir/`` patterns and ``!`` negation."""

    def __init__(self, patterns: list[str]) -> None:
        self.patterns = patterns

    @classmethod
    def from_dir(cls, path: Path) -> _IgnoreRules:
        # helm always skips hidden files under templates/
        patterns = ["templates/.?*"]
        ignore_file = path / HELMIGNORE_FILE
        if ignore_file.is_file():
            for line in ignore_file.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    patterns.append(line)
        return cls(patterns)

    def ignored(self, rel: str, is_dir: bool) -> bool:
        parts = rel.split("/")
        # A file under an ignored directory is ignored too.
        for depth in range(1, len(parts)):
            if self._match("/".join(parts[:depth]), True):
                return True
        return self._match(rel, is_dir)

    def _match(self, rel: str, is_dir: bool) -> bool:
        result = False
        base = rel.rsplit("/", 1)[-1]
        for pattern in self.patterns:
            negate = pattern.startswith("!")
            pat = pattern[1:] if negate else pattern
            if pat.endswith("/"):
                if not is_dir:
                    continue
                pat = pat.rstrip("/")
            pat = pat.lstrip("/")
            target = rel if "/" in pat else base
            if fnmatch.fnmatchcase(target, pat):
                result = not negate
        return result
