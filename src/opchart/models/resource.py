"""Resource identity and acquisition option models."""

from __future__ import annotations

from dataclasses import dataclass, field

from opchart.config.constants import DEFAULT_CRD_VERSION


@dataclass
class GroupVersionKind:
    group: str = ""
    version: str = ""
    kind: str = ""

    def __str__(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}, Kind={self.kind}"
        return f"{self.version}, Kind={self.kind}"


@dataclass
class CreateOptions:
    """How a chart is acquired for a new Helm operator project.

    ``chart`` is a local path, ``repoName/chartName``, a chart URL, or a bare
    chart name when ``repo`` names a custom repository. ``repo`` and
    ``version`` are ignored when ``chart`` is empty. ``gvk.kind`` must be set
    when ``chart`` is empty, since it names the scaffolded chart.
    """

    gvk: GroupVersionKind = field(default_factory=GroupVersionKind)
    chart: str = ""
    repo: str = ""
    version: str = ""
    crd_version: str = DEFAULT_CRD_VERSION
    domain: str = ""


@dataclass(frozen=True)
class ResourceIdentity:
    """Custom resource identity backed only by chart data, with no source path."""

    group: str
    version: str
    kind: str
    domain: str = ""
    plural: str = ""
    crd_version: str = DEFAULT_CRD_VERSION
    namespaced: bool = True
    path: str = ""

    @property
    def qualified_group(self) -> str:
        if not self.domain:
            return self.group
        if not self.group:
            return self.domain
        return f"{self.group}.{self.domain}"

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind(group=self.group, version=self.version, kind=self.kind)

    @property
    def api_version(self) -> str:
        return f"{self.qualified_group}/{self.version}"
