"""Migration orchestrator that coordinates source and target systems.

The Migrator class is the central coordinator for a migration request. It:
1. Walks the requested issue numbers in order
2. Pipes every issue and comment body through the attachment pipeline
3. Creates the translated issues and comments on the target
4. Records a per-issue success/failure ledger

Migration Flow
--------------
For each requested issue, strictly sequentially:

    a. Fetch the issue from the source
       (failure -> issue recorded as failed, continue with the next one)
    b. Migrate attachments in the description, let the source annotate it
       (GitLab notes attachments left on the instance) and prepend the
       provenance header
    c. Create the issue on the target with title, body, labels and state
       (failure -> issue recorded as failed)
    d. Fetch the comments; migrate attachments in each and post it with an
       author/timestamp line (failures are logged and skipped; the issue
       already exists on the target and counts as migrated)
    e. Record the issue as migrated

Attachment Flow Detail
----------------------
    body (with source URLs)
           │
           ▼
    ┌──────────────────┐
    │ scanner          │ ──► list[AttachmentReference]
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Source fetcher   │ ──► bytes (+ sniffed extension if needed)
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ Target uploader  │ ──► url_map: {source_url: target_url}
    └──────────────────┘
           │
           ▼
    ┌──────────────────┐
    │ rewriter         │ ──► body (with target URLs)
    └──────────────────┘

Error Handling
--------------
Failures never cross the issue boundary. Attachment failures leave the
original URL in place; comment failures are skipped; fetch and create
failures of the issue itself put it on the failed list. Nothing is retried,
and re-running a request creates the issues again.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from . import github_utils as ghu
from . import gitlab_utils as glu
from .attachments import AttachmentHandler
from .exceptions import CreateError, FetchError, MigrationError
from .issue_builder import build_comment_body, build_issue_body
from .models import Direction, MigrationResult, MigrationStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import PlatformConfig
    from .protocols import SourceSystem, TargetSystem

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Migration cancelled before this issue was processed"


class Migrator:
    """Orchestrates migration of selected issues from a source system to a target system.

    Usage:
        source = GitLabSource(gitlab_config)
        target = GitHubTarget(github_config)
        migrator = Migrator(source, target)
        result = migrator.migrate([1, 2, 3])

    A Migrator serves one request; its attachment upload cache is not shared.
    """

    _source: SourceSystem
    _target: TargetSystem
    _attachments: AttachmentHandler

    def __init__(self, source: SourceSystem, target: TargetSystem) -> None:
        """Initialize the migrator.

        Args:
            source: Source system to migrate from
            target: Target system to migrate to
        """
        self._source = source
        self._target = target
        self._attachments = AttachmentHandler(source.create_fetcher(), target.create_uploader())

    def migrate(
        self,
        issue_ids: Iterable[int],
        *,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> MigrationResult:
        """Migrate the given issues, one at a time, in order.

        Args:
            issue_ids: Source issue numbers
            cancel_event: When set, no further issues are started
            deadline: time.monotonic() value after which no further issues are started

        Returns:
            MigrationResult in which every requested id appears exactly once.
            Ids skipped because of cancellation are listed as failed.
        """
        ids = list(issue_ids)
        result = MigrationResult()
        logger.info(
            f"Starting migration of {len(ids)} issue(s) from {self._source.platform_name} "
            f"to {self._target.platform_name}"
        )

        for position, issue_id in enumerate(ids):
            if self._should_stop(cancel_event, deadline):
                remaining = ids[position:]
                logger.warning(f"Migration cancelled; {len(remaining)} issue(s) not processed")
                result.failed.extend(MigrationStatus(original_id=i, error=CANCELLED_ERROR) for i in remaining)
                break

            status = self._migrate_issue(issue_id)
            if status.error is None:
                result.success.append(status)
            else:
                result.failed.append(status)

        logger.info(f"Migration completed. Success: {len(result.success)}, Failed: {len(result.failed)}")
        return result

    @staticmethod
    def _should_stop(cancel_event: threading.Event | None, deadline: float | None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    def _migrate_issue(self, issue_id: int) -> MigrationStatus:
        """Migrate a single issue with its comments."""
        logger.info(f"Processing {self._source.platform_name} issue #{issue_id}")
        context = f"issue #{issue_id}"

        try:
            issue = self._source.get_issue(issue_id)
        except FetchError as e:
            logger.error(f"Failed to fetch issue #{issue_id}: {e}")  # noqa: TRY400
            return MigrationStatus(original_id=issue_id, error=str(e))

        processed = self._attachments.process_content(issue.body_markdown, context=context)
        warnings = list(processed.warnings)
        body = build_issue_body(
            issue,
            source_platform=self._source.platform_name,
            processed_description=self._source.annotate_description(processed.content),
        )

        try:
            created = self._target.create_issue(issue.title, body, issue.labels, issue.state)
        except CreateError as e:
            logger.error(f"Failed to create {self._target.platform_name} issue for #{issue_id}: {e}")  # noqa: TRY400
            return MigrationStatus(original_id=issue_id, error=str(e), warnings=warnings)

        logger.info(f"Created {self._target.platform_name} issue #{created.number} for issue #{issue_id}")
        warnings += self._migrate_comments(issue_id, created.number, context)

        return MigrationStatus(original_id=issue_id, new_id=created.number, new_url=created.url, warnings=warnings)

    def _migrate_comments(self, issue_id: int, target_number: int, context: str) -> list[str]:
        """Copy comments to the target issue. Returns warnings; never raises MigrationError."""
        warnings: list[str] = []
        try:
            comments = list(self._source.get_comments(issue_id))
        except FetchError as e:
            logger.warning(f"Comments of issue #{issue_id} not migrated: {e}")
            warnings.append(str(e))
            return warnings

        logger.info(f"Processing {len(comments)} comment(s) for issue #{issue_id}")
        for index, comment in enumerate(comments, start=1):
            processed = self._attachments.process_content(comment.body_markdown, context=f"{context} comment {index}")
            warnings += processed.warnings
            body = build_comment_body(comment, processed_body=processed.content)
            try:
                self._target.create_comment(target_number, body)
            except MigrationError as e:
                logger.warning(f"Failed to create comment {index} of issue #{issue_id}: {e}")
                warnings.append(str(e))
                continue
            logger.debug(f"Migrated comment by {comment.author}")

        return warnings


def create_systems(
    direction: Direction, source: PlatformConfig, target: PlatformConfig
) -> tuple[SourceSystem, TargetSystem]:
    """Resolve the migration direction into a (source, target) pair."""
    if direction is Direction.GITHUB_TO_GITLAB:
        return ghu.GitHubSource(source), glu.GitLabTarget(target)
    if direction is Direction.GITLAB_TO_GITHUB:
        return glu.GitLabSource(source), ghu.GitHubTarget(target)
    msg = f"Invalid migration direction: {direction}"
    raise MigrationError(msg)


def create_migrator(direction: Direction | str, source: PlatformConfig, target: PlatformConfig) -> Migrator:
    """Build a Migrator for one request from its direction and platform configurations.

    Raises:
        MigrationError: If the direction is unknown
    """
    try:
        direction = Direction(direction)
    except ValueError as e:
        msg = f"Invalid migration direction: {direction}"
        raise MigrationError(msg) from e
    source_system, target_system = create_systems(direction, source, target)
    return Migrator(source_system, target_system)
