"""Tests for the migration orchestrator."""

from __future__ import annotations

import threading
import time
from unittest.mock import Mock, patch

import pytest

from issue_migrator.exceptions import CreateError, FetchError, MigrationError, UploadError
from issue_migrator.models import Comment, CreatedIssue, Direction, Issue, PlatformConfig
from issue_migrator.orchestrator import CANCELLED_ERROR, Migrator, create_migrator, create_systems
from issue_migrator.uploaders import GitHubSessionUploader


def _issue(number: int, body: str = "Description", state: str = "open") -> Issue:
    return Issue(
        source_number=number,
        title=f"Issue {number}",
        body_markdown=body,
        state=state,  # type: ignore[arg-type]
        web_url=f"https://github.com/owner/repo/issues/{number}",
        labels=["bug"],
        author="alice",
    )


@pytest.mark.unit
class TestMigrator:
    def setup_method(self) -> None:
        self.issues: dict[int, Issue] = {1: _issue(1), 3: _issue(3, state="closed")}
        self.comments: dict[int, list[Comment]] = {1: [Comment(body_markdown="First!", author="bob")]}

        self.mock_source: Mock = Mock()
        self.mock_source.platform_name = "GitHub"
        self.mock_source.annotate_description.side_effect = lambda content: content
        self.mock_source.get_issue.side_effect = self._get_issue
        self.mock_source.get_comments.side_effect = lambda number: iter(self.comments.get(number, []))

        self.mock_uploader: Mock = Mock()
        self.mock_uploader.enabled = True
        self.mock_uploader.relocatable_marker = None
        self.mock_uploader.upload.side_effect = lambda filename, _content: f"https://dest.test/u/{filename}"

        self.mock_target: Mock = Mock()
        self.mock_target.platform_name = "GitLab"
        self.mock_target.create_uploader.return_value = self.mock_uploader
        self.mock_target.create_issue.side_effect = lambda title, body, labels, state: CreatedIssue(
            number=100 + int(title.split()[-1]), url=f"https://gitlab.example.com/g/p/-/issues/{title.split()[-1]}"
        )

    def _get_issue(self, number: int) -> Issue:
        if number not in self.issues:
            msg = f"Issue #{number} not found"
            raise FetchError(msg)
        return self.issues[number]

    def test_every_requested_id_recorded_once(self) -> None:
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1, 2])

        success_ids = [status.original_id for status in result.success]
        failed_ids = [status.original_id for status in result.failed]
        assert success_ids == [1]
        assert failed_ids == [2]
        assert "not found" in (result.failed[0].error or "")
        assert result.success[0].new_id == 101
        assert result.success[0].new_url == "https://gitlab.example.com/g/p/-/issues/1"

    def test_issue_created_with_header_labels_and_state(self) -> None:
        migrator = Migrator(self.mock_source, self.mock_target)

        migrator.migrate([3])

        title, body, labels, state = self.mock_target.create_issue.call_args.args
        assert title == "Issue 3"
        assert body.startswith("**Migrated from GitHub issue #3**")
        assert body.endswith("---\n\nDescription")
        assert labels == ["bug"]
        assert state == "closed"

    def test_comments_migrated_with_header(self) -> None:
        migrator = Migrator(self.mock_source, self.mock_target)

        migrator.migrate([1])

        issue_number, body = self.mock_target.create_comment.call_args.args
        assert issue_number == 101
        assert body.startswith("**Comment by** @bob")
        assert body.endswith("\n\nFirst!")

    def test_comment_failure_does_not_fail_issue(self) -> None:
        self.comments[1].append(Comment(body_markdown="Second", author="carol"))
        self.mock_target.create_comment.side_effect = [CreateError("comment rejected"), None]
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1])

        assert [status.original_id for status in result.success] == [1]
        assert result.failed == []
        assert self.mock_target.create_comment.call_count == 2
        assert "comment rejected" in result.success[0].warnings

    def test_comment_fetch_failure_does_not_fail_issue(self) -> None:
        self.mock_source.get_comments.side_effect = FetchError("notes unavailable")
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1])

        assert len(result.success) == 1
        assert result.success[0].warnings == ["notes unavailable"]

    def test_create_failure_recorded(self) -> None:
        self.mock_target.create_issue.side_effect = CreateError("validation failed")
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1, 3])

        assert result.success == []
        assert [status.original_id for status in result.failed] == [1, 3]
        assert result.failed[0].error == "validation failed"
        self.mock_target.create_comment.assert_not_called()

    def test_attachments_rewritten_in_issue_and_comments(self) -> None:
        self.issues[1] = _issue(1, body="![shot](https://x.test/shot.png)")
        self.comments[1] = [Comment(body_markdown="Again ![shot](https://x.test/shot.png)", author="bob")]
        fetcher = self.mock_source.create_fetcher.return_value
        fetcher.fetch.return_value = Mock(content=b"\x89PNG\r\n\x1a\n", content_type="image/png")
        migrator = Migrator(self.mock_source, self.mock_target)

        migrator.migrate([1])

        issue_body = self.mock_target.create_issue.call_args.args[1]
        comment_body = self.mock_target.create_comment.call_args.args[1]
        assert issue_body.endswith("![shot](https://dest.test/u/shot.png)")
        assert comment_body.endswith("Again ![shot](https://dest.test/u/shot.png)")
        assert self.mock_uploader.upload.call_count == 1

    def test_attachment_failure_reported_as_warning(self) -> None:
        self.issues[1] = _issue(1, body="![shot](https://x.test/shot.png)")
        fetcher = self.mock_source.create_fetcher.return_value
        fetcher.fetch.return_value = Mock(content=b"\x89PNG\r\n\x1a\n", content_type="image/png")
        self.mock_uploader.upload.side_effect = UploadError("storage down")
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1])

        assert len(result.success) == 1
        assert result.success[0].warnings == ["storage down"]
        issue_body = self.mock_target.create_issue.call_args.args[1]
        assert issue_body.endswith("![shot](https://x.test/shot.png)")

    @patch("issue_migrator.uploaders.requests.post")
    def test_malformed_upload_policy_leaves_source_url(self, mock_post: Mock) -> None:
        self.issues[1] = _issue(1, body="![shot](https://x.test/shot.png)")
        self.issues[3] = _issue(3, body="![log](https://x.test/log.png)")
        fetcher = self.mock_source.create_fetcher.return_value
        fetcher.fetch.return_value = Mock(content=b"\x89PNG\r\n\x1a\n", content_type="image/png")
        mock_post.return_value = Mock(
            status_code=201,
            text="",
            json=Mock(return_value={"upload_url": "https://storage.test/upload", "asset": "gone"}),
        )
        self.mock_target.create_uploader.return_value = GitHubSessionUploader("cookie", 1)
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1, 3])

        assert [status.original_id for status in result.success] == [1, 3]
        assert result.failed == []
        assert len(result.success[0].warnings) == 1
        assert "malformed" in result.success[0].warnings[0]
        first_body = self.mock_target.create_issue.call_args_list[0].args[1]
        assert first_body.endswith("![shot](https://x.test/shot.png)")

    def test_source_annotation_applied_to_description(self) -> None:
        self.mock_source.annotate_description.side_effect = lambda content: f"NOTE\n\n{content}"
        migrator = Migrator(self.mock_source, self.mock_target)

        migrator.migrate([1])

        body = self.mock_target.create_issue.call_args.args[1]
        assert body.endswith("---\n\nNOTE\n\nDescription")
        self.mock_source.annotate_description.assert_called_once_with("Description")
        comment_body = self.mock_target.create_comment.call_args.args[1]
        assert "NOTE" not in comment_body

    def test_cancel_event_marks_remaining_as_failed(self) -> None:
        cancel = threading.Event()
        cancel.set()
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1, 3], cancel_event=cancel)

        assert result.success == []
        assert [status.original_id for status in result.failed] == [1, 3]
        assert all(status.error == CANCELLED_ERROR for status in result.failed)
        self.mock_source.get_issue.assert_not_called()

    def test_expired_deadline(self) -> None:
        migrator = Migrator(self.mock_source, self.mock_target)

        result = migrator.migrate([1], deadline=time.monotonic() - 1)

        assert [status.error for status in result.failed] == [CANCELLED_ERROR]


@pytest.mark.unit
class TestCreateMigrator:
    def test_invalid_direction(self) -> None:
        with pytest.raises(MigrationError, match="Invalid migration direction"):
            create_migrator("sideways", PlatformConfig(), PlatformConfig())

    @patch("issue_migrator.orchestrator.glu.GitLabTarget")
    @patch("issue_migrator.orchestrator.ghu.GitHubSource")
    def test_github_to_gitlab(self, mock_source_cls, mock_target_cls) -> None:
        source_config = PlatformConfig(type="github", owner="o", repo="r")
        target_config = PlatformConfig(type="gitlab", project_id=5)

        source, target = create_systems(Direction.GITHUB_TO_GITLAB, source_config, target_config)

        mock_source_cls.assert_called_once_with(source_config)
        mock_target_cls.assert_called_once_with(target_config)
        assert source is mock_source_cls.return_value
        assert target is mock_target_cls.return_value

    @patch("issue_migrator.orchestrator.ghu.GitHubTarget")
    @patch("issue_migrator.orchestrator.glu.GitLabSource")
    def test_gitlab_to_github_from_string(self, mock_source_cls, mock_target_cls) -> None:
        migrator = create_migrator("gitlab-to-github", PlatformConfig(), PlatformConfig())

        assert isinstance(migrator, Migrator)
        mock_source_cls.return_value.create_fetcher.assert_called_once()
        mock_target_cls.return_value.create_uploader.assert_called_once()
