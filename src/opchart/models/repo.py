"""Repository and index models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Repository:
    """One entry of helm's repositories.yaml."""

    name: str
    url: str
    username: str = ""
    password: str = ""
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""
    insecure_skip_tls_verify: bool = False
    pass_credentials_all: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> Repository:
        return cls(
            name=d.get("name", ""),
            url=d.get("url", ""),
            username=d.get("username", "") or "",
            password=d.get("password", "") or "",
            cert_file=d.get("certFile", "") or "",
            key_file=d.get("keyFile", "") or "",
            ca_file=d.get("caFile", "") or "",
            insecure_skip_tls_verify=bool(d.get("insecure_skip_tls_verify", False)),
            pass_credentials_all=bool(d.get("pass_credentials_all", False)),
        )


@dataclass
class ChartVersion:
    """A single chart release listed in a repository index."""

    name: str
    version: str
    urls: list[str] = field(default_factory=list)
    digest: str = ""
    app_version: str = ""
    created: str = ""
    deprecated: bool = False

    @classmethod
    def from_dict(cls, name: str, d: dict) -> ChartVersion:
        return cls(
            name=d.get("name", name) or name,
            version=str(d.get("version", "") or ""),
            urls=list(d.get("urls") or []),
            digest=d.get("digest", "") or "",
            app_version=str(d.get("appVersion", "") or ""),
            created=str(d.get("created", "") or ""),
            deprecated=bool(d.get("deprecated", False)),
        )


@dataclass
class IndexFile:
    """A parsed repository index.yaml."""

    api_version: str = ""
    entries: dict[str, list[ChartVersion]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> IndexFile:
        entries: dict[str, list[ChartVersion]] = {}
        for chart_name, chart_entries in (d.get("entries") or {}).items():
            entries[chart_name] = [
                ChartVersion.from_dict(chart_name, e)
                for e in chart_entries or []
                if isinstance(e, dict) and "version" in e
            ]
        return cls(api_version=d.get("apiVersion", "") or "", entries=entries)

    def versions(self, chart_name: str) -> list[str]:
        return [cv.version for cv in self.entries.get(chart_name, [])]
