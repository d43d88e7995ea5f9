"""Download attachment bytes from the source platform."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Final
from urllib.parse import urlsplit

import requests

from .exceptions import DownloadError
from .models import FetchedFile

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: Final[int] = 30
DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"


def host_matches(url: str, domains: Iterable[str]) -> bool:
    """Check whether the URL host is one of ``domains`` or a subdomain of one."""
    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


class BinaryFetcher:
    """Fetches attachments, authenticating only against the source platform's own hosts.

    Credentials are never sent to third-party hosts (image CDNs, external
    file hosts); those URLs are fetched anonymously.
    """

    _own_domains: tuple[str, ...]
    _auth_headers: dict[str, str]
    _timeout: int

    def __init__(
        self,
        own_domains: Iterable[str],
        auth_headers: Mapping[str, str] | None = None,
        *,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._own_domains = tuple(d.lower() for d in own_domains if d)
        self._auth_headers = dict(auth_headers or {})
        self._timeout = timeout

    def is_own_url(self, url: str) -> bool:
        return host_matches(url, self._own_domains)

    def headers_for(self, url: str) -> dict[str, str]:
        """Request headers for ``url``: credentials only for the platform's own hosts."""
        if self._auth_headers and self.is_own_url(url):
            return dict(self._auth_headers)
        return {}

    def fetch(self, url: str) -> FetchedFile:
        """Download ``url`` and return its bytes and content type.

        Raises:
            DownloadError: On transport failures and non-200 responses. Not retried.
        """
        headers = self.headers_for(url)
        if headers:
            logger.debug(f"Downloading {url} with source platform credentials")
        else:
            logger.debug(f"Downloading {url} anonymously")

        try:
            response = requests.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise DownloadError(url, detail=str(e)) from e

        if response.status_code != requests.codes.ok:
            raise DownloadError(url, status=response.status_code)

        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        logger.debug(f"Downloaded {len(response.content)} bytes from {url} (Content-Type: {content_type})")
        return FetchedFile(content=response.content, content_type=content_type)
