"""Helm client locations and pipeline defaults."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

# (XDG variable, fallback under $HOME, macOS location under $HOME)
_XDG_HOMES = {
    "cache": ("XDG_CACHE_HOME", Path(".cache"), Path("Library/Caches")),
    "config": ("XDG_CONFIG_HOME", Path(".config"), Path("Library/Preferences")),
}


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name, "")
    return Path(value) if value else None


def _helm_home(kind: str) -> Path:
    """Helm's cache or config home, following helm's lookup order."""
    explicit = _env_path(f"HELM_{kind.upper()}_HOME")
    if explicit is not None:
        return explicit

    xdg_var, linux_rel, darwin_rel = _XDG_HOMES[kind]
    system = platform.system()
    if system == "Windows":
        if kind == "cache":
            temp = _env_path("TEMP")
            if temp is not None:
                return temp / "helm"
        appdata = _env_path("APPDATA") or Path.home() / "AppData" / "Roaming"
        return appdata / "helm"
    if system == "Darwin":
        return Path.home() / darwin_rel / "helm"
    xdg = _env_path(xdg_var)
    return (xdg or Path.home() / linux_rel) / "helm"


def _default_helm_cache_dir() -> Path:
    """Directory holding cached ``<repo>-index.yaml`` files."""
    return _env_path("HELM_REPOSITORY_CACHE") or _helm_home("cache") / "repository"


def _default_helm_config_dir() -> Path:
    return _helm_home("config")


@dataclass
class Settings:
    """Helm client settings shared by the acquirer and the dependency manager.

    Passed explicitly through the pipeline; ``settings`` below is only the
    default used when a caller does not supply its own.
    """

    helm_cache_dir: Path = field(default_factory=_default_helm_cache_dir)
    helm_config_dir: Path = field(default_factory=_default_helm_config_dir)
    repository_config: Path | None = field(default_factory=lambda: _env_path("HELM_REPOSITORY_CONFIG"))
    # None means no deadline
    http_timeout: float | None = None
    workspace_prefix: str = "opchart-helm-chart"
    user_agent: str = "opchart"

    @property
    def repositories_file(self) -> Path:
        return self.repository_config or self.helm_config_dir / "repositories.yaml"

    def index_cache_file(self, repo_name: str) -> Path:
        return self.helm_cache_dir / f"{repo_name}-index.yaml"


settings = Settings()
