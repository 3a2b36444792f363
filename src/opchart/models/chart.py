"""Chart metadata models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _version_text(d: dict, key: str = "version") -> str:
    """Read a version field that YAML must give as a string.

    An unquoted ``version: 1.10`` parses as the float 1.1, so anything other
    than a string is rejected rather than silently rewritten.
    """
    value = d.get(key)
    if value is None or value == "":
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key} {value!r} must be a string; quote it in the YAML source")
    return value


@dataclass
class Maintainer:
    name: str = ""
    email: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> Maintainer:
        return cls(
            name=d.get("name", ""),
            email=d.get("email", ""),
            url=d.get("url", ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in (("name", self.name), ("email", self.email), ("url", self.url)) if v}


@dataclass
class ChartDependency:
    name: str = ""
    version: str = ""
    repository: str = ""
    condition: str = ""
    tags: list[str] = field(default_factory=list)
    enabled: bool = False
    import_values: list[Any] = field(default_factory=list)
    alias: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> ChartDependency:
        return cls(
            name=d.get("name", "") or "",
            version=_version_text(d),
            repository=d.get("repository", "") or "",
            condition=d.get("condition", "") or "",
            tags=list(d.get("tags") or []),
            enabled=bool(d.get("enabled", False)),
            import_values=list(d.get("import-values") or []),
            alias=d.get("alias", "") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize in Chart.yaml field order, omitting empty optional fields."""
        out: dict[str, Any] = {"name": self.name}
        if self.version:
            out["version"] = self.version
        out["repository"] = self.repository
        if self.condition:
            out["condition"] = self.condition
        if self.tags:
            out["tags"] = list(self.tags)
        if self.enabled:
            out["enabled"] = True
        if self.import_values:
            out["import-values"] = list(self.import_values)
        if self.alias:
            out["alias"] = self.alias
        return out


@dataclass
class ChartMetadata:
    name: str = ""
    version: str = ""
    app_version: str = ""
    description: str = ""
    api_version: str = ""
    chart_type: str = ""
    home: str = ""
    icon: str = ""
    condition: str = ""
    tags: str = ""
    kube_version: str = ""
    deprecated: bool = False
    keywords: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    maintainers: list[Maintainer] = field(default_factory=list)
    dependencies: list[ChartDependency] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> ChartMetadata:
        if not d:
            return cls()
        return cls(
            name=d.get("name", "") or "",
            version=_version_text(d),
            app_version=str(d.get("appVersion", "") or ""),
            description=d.get("description", "") or "",
            api_version=d.get("apiVersion", "") or "",
            chart_type=d.get("type", "") or "",
            home=d.get("home", "") or "",
            icon=d.get("icon", "") or "",
            condition=d.get("condition", "") or "",
            tags=d.get("tags", "") or "",
            kube_version=d.get("kubeVersion", "") or "",
            deprecated=bool(d.get("deprecated", False)),
            keywords=d.get("keywords") or [],
            sources=d.get("sources") or [],
            maintainers=[Maintainer.from_dict(m) for m in d.get("maintainers") or []],
            dependencies=[ChartDependency.from_dict(dep) for dep in d.get("dependencies") or []],
            annotations=d.get("annotations") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the Chart.yaml layout helm writes."""
        out: dict[str, Any] = {"name": self.name}
        if self.home:
            out["home"] = self.home
        if self.sources:
            out["sources"] = list(self.sources)
        out["version"] = self.version
        if self.description:
            out["description"] = self.description
        if self.keywords:
            out["keywords"] = list(self.keywords)
        if self.maintainers:
            out["maintainers"] = [m.to_dict() for m in self.maintainers]
        if self.icon:
            out["icon"] = self.icon
        out["apiVersion"] = self.api_version
        if self.condition:
            out["condition"] = self.condition
        if self.tags:
            out["tags"] = self.tags
        if self.app_version:
            out["appVersion"] = self.app_version
        if self.deprecated:
            out["deprecated"] = True
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.kube_version:
            out["kubeVersion"] = self.kube_version
        if self.dependencies:
            out["dependencies"] = [dep.to_dict() for dep in self.dependencies]
        if self.chart_type:
            out["type"] = self.chart_type
        return out


@dataclass
class ChartLock:
    """Exact dependency versions resolved for a chart (Chart.lock)."""

    generated: str = ""
    digest: str = ""
    dependencies: list[ChartDependency] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> ChartLock:
        if not d:
            return cls()
        return cls(
            generated=str(d.get("generated", "") or ""),
            digest=d.get("digest", "") or "",
            dependencies=[ChartDependency.from_dict(dep) for dep in d.get("dependencies") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "digest": self.digest,
            "generated": self.generated,
        }


@dataclass
class ChartFile:
    """A file inside a chart, addressed by its slash-separated relative name."""

    name: str
    data: bytes


@dataclass
class Chart:
    """In-memory chart tree as read from an archive or directory."""

    metadata: ChartMetadata = field(default_factory=ChartMetadata)
    lock: ChartLock | None = None
    values: bytes | None = None
    schema: bytes | None = None
    templates: list[ChartFile] = field(default_factory=list)
    files: list[ChartFile] = field(default_factory=list)
    dependencies: list[Chart] = field(default_factory=list)
    # Dependencies declared in requirements.yaml (apiVersion v1 charts).
    requirements: list[ChartDependency] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def declared_dependencies(self) -> list[ChartDependency]:
        return self.metadata.dependencies or self.requirements

    @property
    def template_names(self) -> list[str]:
        return sorted(t.name for t in self.templates)
