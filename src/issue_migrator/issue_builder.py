"""Build target issue and comment bodies from source data."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Comment, Issue

# Minimum time difference (in seconds) to consider showing "edited" timestamp
LAST_EDITED_THRESHOLD_SECONDS = 60


def parse_timestamp(value: str | dt.datetime | None) -> dt.datetime | None:
    """Parse an ISO 8601 timestamp as returned by the GitLab API.

    Returns None if the value is empty or cannot be parsed.
    """
    if value is None or isinstance(value, dt.datetime):
        return value
    if not value:
        return None
    try:
        return dt.datetime.fromisoformat(value)
    except ValueError:
        return None


def format_timestamp(timestamp: dt.datetime | None) -> str:
    """Format a timestamp to human-readable form.

    Returns:
        Formatted timestamp (e.g., "2024-01-15 10:30:45Z"), or "" for None.
        Naive timestamps are assumed to be UTC.
    """
    if timestamp is None:
        return ""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=dt.UTC)
    formatted = timestamp.isoformat(sep=" ", timespec="seconds")
    return formatted.replace("+00:00", "Z")


def should_show_last_edited(created_at: dt.datetime | None, updated_at: dt.datetime | None) -> bool:
    """Check if the edited timestamp should be shown.

    Returns:
        True if updated_at is later than created_at by more than LAST_EDITED_THRESHOLD_SECONDS
    """
    if created_at is None or updated_at is None:
        return False
    try:
        diff = (updated_at - created_at).total_seconds()
    except TypeError:
        # Mixing naive and aware timestamps
        return False
    return diff > LAST_EDITED_THRESHOLD_SECONDS


def build_issue_body(issue: Issue, *, source_platform: str, processed_description: str | None = None) -> str:
    """Build the complete target issue body with migration header.

    Args:
        issue: Source issue
        source_platform: Display name of the source platform ("GitHub", "GitLab")
        processed_description: Description with attachments already migrated (if any)

    Returns:
        Complete issue body for the target
    """
    body = f"**Migrated from {source_platform} issue #{issue.source_number}**\n\n"
    body += f"**Original Issue:** {issue.web_url}\n"
    body += f"**Original Author:** @{issue.author}\n"
    body += f"**Created:** {format_timestamp(issue.created_at)}\n"
    body += f"**Last Updated:** {format_timestamp(issue.updated_at)}\n"
    if issue.state == "closed" and issue.closed_at is not None:
        body += f"**Closed:** {format_timestamp(issue.closed_at)}\n"
    body += f"**State:** {issue.state}\n\n"
    body += "---\n\n"
    body += processed_description if processed_description is not None else issue.body_markdown
    return body


def build_comment_body(comment: Comment, *, processed_body: str | None = None) -> str:
    """Build a target comment body with an author and timestamp line."""
    label = "System note" if comment.system else "Comment"
    header = f"**{label} by** @{comment.author} **on** {format_timestamp(comment.created_at)}"
    if should_show_last_edited(comment.created_at, comment.updated_at):
        header += f" _(edited {format_timestamp(comment.updated_at)})_"
    return f"{header}\n\n{processed_body if processed_body is not None else comment.body_markdown}"
