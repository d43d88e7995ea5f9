"""Protocols defining the contracts for source and target systems.

The migration architecture separates concerns into three components:

1. SourceSystem: Reads issues, comments and attachment bytes from the source
2. TargetSystem: Creates issues and comments and stores attachments on the target
3. Migrator: Orchestrates the flow and keeps the success/failure ledger

GitHub and GitLab each implement both roles, so either can be the source
(see github_utils.py and gitlab_utils.py). The migration direction only
decides which pair is handed to the Migrator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .fetcher import BinaryFetcher
    from .models import Comment, CreatedIssue, Issue, IssueSummary


class Uploader(Protocol):
    """Stores attachment bytes on the destination platform.

    Attributes:
        relocatable_marker: Path marker from which destination URLs may be
            written relative to the project (GitLab: "/uploads/"), or None.
    """

    relocatable_marker: str | None

    @property
    def enabled(self) -> bool:
        """Whether uploads can be attempted at all (e.g. a session cookie is configured)."""
        ...

    def upload(self, filename: str, content: bytes) -> str:
        """Upload ``content`` under ``filename`` and return its destination URL.

        Raises:
            UploadError: If the upload fails; UploadPermissionError for 403 responses
        """
        ...


class SourceSystem(Protocol):
    """Protocol for reading issues from a source platform.

    Implementations translate SDK exceptions into FetchError so the Migrator
    can contain failures to a single issue.
    """

    platform_name: str

    def list_issues(self) -> list[IssueSummary]:
        """Return all issues (open and closed), pull/merge requests excluded."""
        ...

    def get_issue(self, number: int) -> Issue:
        """Get a single issue by its source number.

        The returned Issue.body_markdown is ready for attachment scanning:
        source-relative attachment URLs have already been made absolute.

        Raises:
            FetchError: If the issue cannot be retrieved
        """
        ...

    def get_comments(self, number: int) -> Iterator[Comment]:
        """Yield all comments for an issue in chronological order.

        Raises:
            FetchError: If the comments cannot be retrieved
        """
        ...

    def create_fetcher(self) -> BinaryFetcher:
        """Return a fetcher that downloads attachments with this source's credentials."""
        ...

    def annotate_description(self, content: str) -> str:
        """Add source-specific notices to a migrated description.

        GitLab prepends a note when attachments still point at the GitLab instance.
        """
        ...


class TargetSystem(Protocol):
    """Protocol for creating issues on a target platform.

    Implementations translate SDK exceptions into CreateError.
    """

    platform_name: str

    def create_issue(self, title: str, body: str, labels: list[str], state: str) -> CreatedIssue:
        """Create an issue, closing it right away if ``state`` is "closed".

        Raises:
            CreateError: If the issue cannot be created
        """
        ...

    def create_comment(self, issue_number: int, body: str) -> None:
        """Add a comment to an issue created by create_issue().

        Raises:
            CreateError: If the comment cannot be created
        """
        ...

    def create_uploader(self) -> Uploader:
        """Return the uploader that stores attachments on this target."""
        ...
