"""
Issue Migrator

Migrates issues, comments, labels and inline attachments between GitHub
repositories and GitLab projects, in either direction.
"""

from __future__ import annotations

from .cli import main
from .exceptions import (
    CreateError,
    DownloadError,
    FetchError,
    MigrationError,
    UploadError,
    UploadPermissionError,
)
from .models import Direction, MigrationResult, MigrationStatus, PlatformConfig
from .orchestrator import Migrator, create_migrator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "CreateError",
    "Direction",
    "DownloadError",
    "FetchError",
    "MigrationError",
    "MigrationResult",
    "MigrationStatus",
    "Migrator",
    "PlatformConfig",
    "UploadError",
    "UploadPermissionError",
    "create_migrator",
    "main",
    "setup_logging",
]
