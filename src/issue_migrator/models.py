"""Data models for migration between source and target platforms.

These models represent the normalized data exchanged between the source
system, the target system, the attachment pipeline and the Migrator
orchestrator. They are intentionally simple and platform-agnostic.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal


class Direction(enum.StrEnum):
    """Which platform plays source and which plays target."""

    GITHUB_TO_GITLAB = "github-to-gitlab"
    GITLAB_TO_GITHUB = "gitlab-to-github"


@dataclass
class PlatformConfig:
    """Connection and credential material for one side of a migration.

    GitHub uses ``owner``/``repo``; GitLab uses ``project_id`` and ``base_url``.
    ``session`` is a browser session cookie value, only needed for GitHub
    attachment uploads and for downloading GitLab attachments of private
    projects without an API token.
    """

    type: str = ""
    owner: str = ""
    repo: str = ""
    project_id: int = 0
    base_url: str = ""
    token: str = ""
    session: str = ""


@dataclass(frozen=True)
class AttachmentReference:
    """An image or file embedded in a body of text."""

    source_url: str
    is_image: bool
    original_markup: str  # Exact matched substring (HTML tag or Markdown construct)


@dataclass(frozen=True)
class UploadedAsset:
    """A successfully migrated attachment."""

    source_url: str
    destination_url: str
    is_image: bool


@dataclass(frozen=True)
class FetchedFile:
    """Bytes downloaded from the source platform."""

    content: bytes
    content_type: str


@dataclass
class Issue:
    """An issue from the source platform.

    ``body_markdown`` still contains source-hosted attachment URLs; the
    attachment pipeline rewrites them before the issue is created on the target.
    """

    source_number: int
    title: str
    body_markdown: str
    state: Literal["open", "closed"]
    web_url: str = ""
    labels: list[str] = field(default_factory=list)
    author: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None


@dataclass
class Comment:
    """A comment (GitLab: note) on an issue."""

    body_markdown: str
    author: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    system: bool = False  # GitLab system note (label changes, mentions, ...)


@dataclass(frozen=True)
class CreatedIssue:
    """Identity of an issue created on the target platform."""

    number: int
    url: str


@dataclass
class IssueSummary:
    """Row returned when listing the issues of a repository or project."""

    id: int
    title: str
    description: str
    state: str
    labels: list[str]
    author: str
    created_at: datetime | None
    updated_at: datetime | None
    url: str


@dataclass
class MigrationStatus:
    """Outcome of migrating one requested issue."""

    original_id: int
    new_id: int | None = None
    new_url: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class MigrationResult:
    """Success/failure ledger of one migration request."""

    success: list[MigrationStatus] = field(default_factory=list)
    failed: list[MigrationStatus] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": [asdict(status) for status in self.success],
            "failed": [asdict(status) for status in self.failed],
        }
