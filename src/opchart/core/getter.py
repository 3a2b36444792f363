"""Transports used to fetch repository indexes and chart archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import requests

from opchart.config.settings import Settings
from opchart.core.errors import FetchError
from opchart.models.repo import Repository

logger = logging.getLogger(__name__)


@dataclass
class GetterOptions:
    username: str = ""
    password: str = ""
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""
    insecure_skip_tls_verify: bool = False
    timeout: float | None = None
    user_agent: str = ""

    @classmethod
    def for_repository(cls, repo: Repository | None, settings: Settings) -> GetterOptions:
        if repo is None:
            return cls(timeout=settings.http_timeout, user_agent=settings.user_agent)
        return cls(
            username=repo.username,
            password=repo.password,
            cert_file=repo.cert_file,
            key_file=repo.key_file,
            ca_file=repo.ca_file,
            insecure_skip_tls_verify=repo.insecure_skip_tls_verify,
            timeout=settings.http_timeout,
            user_agent=settings.user_agent,
        )


class Getter(Protocol):
    def get(self, url: str, options: GetterOptions) -> bytes: ...


class HTTPGetter:
    """Fetch over HTTP(S) with optional basic auth and TLS client settings."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session or requests.Session()

    def get(self, url: str, options: GetterOptions) -> bytes:
        kwargs: dict = {"timeout": options.timeout}
        if options.username or options.password:
            kwargs["auth"] = (options.username, options.password)
        if options.insecure_skip_tls_verify:
            kwargs["verify"] = False
        elif options.ca_file:
            kwargs["verify"] = options.ca_file
        if options.cert_file and options.key_file:
            kwargs["cert"] = (options.cert_file, options.key_file)
        if options.user_agent:
            kwargs["headers"] = {"User-Agent": options.user_agent}

        logger.debug("GET %s", url)
        try:
            resp = self.session.get(url, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"failed to fetch {url}: {e}") from e
        return resp.content


class FileGetter:
    """Read ``file://`` URLs from the local filesystem."""

    def get(self, url: str, options: GetterOptions) -> bytes:
        path = Path(unquote(urlparse(url).path))
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchError(f"failed to fetch {url}: {e}") from e


class Getters:
    """Scheme to transport registry."""

    def __init__(self, getters: dict[str, Getter] | None = None) -> None:
        self._getters: dict[str, Getter] = dict(getters or {})

    @classmethod
    def default(cls, session: requests.Session | None = None) -> Getters:
        http = HTTPGetter(session)
        return cls({"http": http, "https": http, "file": FileGetter()})

    def by_scheme(self, scheme: str) -> Getter:
        try:
            return self._getters[scheme]
        except KeyError:
            raise FetchError(f"scheme {scheme!r} not supported") from None

    def get(self, url: str, options: GetterOptions) -> bytes:
        scheme = urlparse(url).scheme
        return self.by_scheme(scheme).get(url, options)
