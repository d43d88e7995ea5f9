"""
Custom exception classes for the issue migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class FetchError(MigrationError):
    """Raised when a source issue or its comments cannot be retrieved."""


class DownloadError(MigrationError):
    """Raised when an attachment cannot be downloaded from the source platform."""

    url: str
    status: int | None

    def __init__(self, url: str, status: int | None = None, detail: str = "") -> None:
        self.url = url
        self.status = status
        if status is not None:
            msg = f"Failed to download {url}: status {status}"
        else:
            msg = f"Failed to download {url}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class UploadError(MigrationError):
    """Raised when an attachment cannot be uploaded to the destination platform."""


class UploadPermissionError(UploadError):
    """Raised when the destination rejects an upload with 403 Forbidden.

    Almost always a token without write scope on the destination project.
    """


class CreateError(MigrationError):
    """Raised when a destination issue or comment cannot be created."""
