"""GitLab as source and target of a migration, on top of python-gitlab."""

from __future__ import annotations

import logging
import os
import re
from typing import TYPE_CHECKING, Final, cast, override
from urllib.parse import urlsplit

import requests
from gitlab import Gitlab
from gitlab.exceptions import GitlabError

from . import utils
from .exceptions import CreateError, DownloadError, FetchError
from .fetcher import DEFAULT_CONTENT_TYPE, DEFAULT_TIMEOUT_SECONDS, BinaryFetcher
from .issue_builder import parse_timestamp
from .models import Comment, CreatedIssue, FetchedFile, Issue, IssueSummary
from .uploaders import GitLabUploader

if TYPE_CHECKING:
    from collections.abc import Iterator

    from gitlab.v4.objects import Project as GitlabProject
    from gitlab.v4.objects import ProjectIssue

    from .models import PlatformConfig

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

PLATFORM_NAME: Final[str] = "GitLab"
DEFAULT_BASE_URL: Final[str] = "https://gitlab.com"

_TOKEN_ENV_VAR: Final[str] = "GITLAB_TOKEN"  # noqa: S105
_SESSION_ENV_VAR: Final[str] = "GITLAB_SESSION"

# Upload path as it appears in attachment URLs: [/-/project/<id>]/uploads/<secret>/<filename>
_UPLOAD_PATH_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?:/-/project/(?P<project_id>\d+))?/uploads/(?P<secret>[a-f0-9]{32})/(?P<filename>[^/]+)$"
)
# Relative upload links inside Markdown "(...)" or HTML attributes
_RELATIVE_UPLOAD_PATTERN: Final[re.Pattern[str]] = re.compile(r"""(?P<prefix>\]\(|=["'])(?P<path>/(?:-/project/\d+/)?uploads/)""")

HOSTED_ATTACHMENTS_NOTE: Final[str] = (
    "_Note: This issue contains attachments hosted on GitLab ({base_url}). "
    "These files will remain accessible as long as the GitLab project exists._\n\n"
)


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitLab token from pass path or env var GITLAB_TOKEN."""
    if pass_path:
        return utils.get_pass_value(pass_path)
    token: str | None = os.environ.get(_TOKEN_ENV_VAR)
    if token:
        return token
    logger.warning("No GitLab token specified nor found")
    return None


def get_session() -> str:
    """Get the GitLab browser session cookie from env var GITLAB_SESSION."""
    return os.environ.get(_SESSION_ENV_VAR, "")


def get_client(token: str | None = None, base_url: str | None = None) -> Gitlab:
    """Get a GitLab client using the token. Anonymous if no token is given."""
    return Gitlab(url=(base_url or DEFAULT_BASE_URL).rstrip("/"), private_token=token or None)


def absolutize_upload_urls(content: str, base_url: str, project_id: int) -> str:
    """Turn project-relative upload links into absolute URLs.

    GitLab writes attachments as ``/uploads/<secret>/<name>``, relative to the
    project. They must be absolute both to be downloaded and to keep working
    on another platform when the attachment cannot be migrated.
    """
    if not content:
        return content
    base_url = base_url.rstrip("/")

    def replace(match: re.Match[str]) -> str:
        path = match.group("path")
        if not path.startswith("/-/project/"):
            path = f"/-/project/{project_id}{path}"
        return f"{match.group('prefix')}{base_url}{path}"

    return _RELATIVE_UPLOAD_PATTERN.sub(replace, content)


def add_hosted_attachments_note(content: str, base_url: str) -> str:
    """Prepend a note when ``content`` still links to uploads on this GitLab instance.

    The note is added at most once.
    """
    base_url = base_url.rstrip("/")
    note = HOSTED_ATTACHMENTS_NOTE.format(base_url=base_url)
    if not content or content.startswith(note):
        return content
    if not re.search(rf"{re.escape(base_url)}/(?:\S*/)?uploads/[a-f0-9]{{32}}/", content):
        return content
    return note + content


class GitLabFetcher(BinaryFetcher):
    """Downloads GitLab attachments.

    With an API token, project uploads go through the REST API endpoint
    ``GET /projects/:id/uploads/:secret/:filename`` (GitLab 17.4+), which,
    unlike the web URL, accepts the token and is not behind Cloudflare.
    Everything else is a plain GET, authenticated with the browser session
    cookie or the token when the URL is on the GitLab host.
    """

    _client: Gitlab
    _project_id: int
    _has_token: bool

    def __init__(self, client: Gitlab, config: PlatformConfig) -> None:
        base_url = config.base_url or DEFAULT_BASE_URL
        if config.session:
            headers = {"Cookie": f"_gitlab_session={config.session}"}
        elif config.token:
            headers = {"PRIVATE-TOKEN": config.token}
        else:
            headers = {}
        super().__init__([urlsplit(base_url).hostname or ""], headers)
        self._client = client
        self._project_id = config.project_id
        self._has_token = bool(config.token)

    @override
    def fetch(self, url: str) -> FetchedFile:
        match = _UPLOAD_PATH_PATTERN.search(urlsplit(url).path)
        if not (self._has_token and match and self.is_own_url(url)):
            return super().fetch(url)

        project_id = match.group("project_id") or self._project_id
        api_path = f"/projects/{project_id}/uploads/{match.group('secret')}/{match.group('filename')}"
        try:
            # http_get with raw=True returns requests.Response (type stubs are incorrect)
            response = cast(
                requests.Response,
                self._client.http_get(api_path, raw=True, timeout=DEFAULT_TIMEOUT_SECONDS),
            )
        except GitlabError as e:
            raise DownloadError(url, status=e.response_code, detail=e.error_message) from e
        except requests.RequestException as e:
            raise DownloadError(url, detail=str(e)) from e

        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        logger.debug(f"Downloaded {len(response.content)} bytes via API from {url} (Content-Type: {content_type})")
        return FetchedFile(content=response.content, content_type=content_type)


class _GitLabProject:
    """Lazily referenced project shared by the source and target roles."""

    platform_name: str = PLATFORM_NAME

    _config: PlatformConfig
    _client: Gitlab
    _project: GitlabProject

    def __init__(self, config: PlatformConfig, client: Gitlab | None = None) -> None:
        self._config = config
        self._client = client or get_client(config.token or None, config.base_url or None)
        # lazy: no request until the first issue call
        self._project = self._client.projects.get(config.project_id, lazy=True)

    @property
    def base_url(self) -> str:
        return (self._config.base_url or DEFAULT_BASE_URL).rstrip("/")


class GitLabSource(_GitLabProject):
    """Reads issues and notes from a GitLab project."""

    def list_issues(self) -> list[IssueSummary]:
        try:
            gl_issues = self._project.issues.list(get_all=True)
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to list issues of GitLab project {self._config.project_id}: {e}"
            raise FetchError(msg) from e

        return [
            IssueSummary(
                id=gl_issue.iid,
                title=gl_issue.title,
                description=gl_issue.description or "",
                state=gl_issue.state,
                labels=list(gl_issue.labels),
                author=gl_issue.author["username"],
                created_at=parse_timestamp(gl_issue.created_at),
                updated_at=parse_timestamp(gl_issue.updated_at),
                url=gl_issue.web_url,
            )
            for gl_issue in gl_issues
        ]

    def get_issue(self, number: int) -> Issue:
        try:
            gl_issue: ProjectIssue = self._project.issues.get(number)
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to fetch GitLab issue #{number} from project {self._config.project_id}: {e}"
            raise FetchError(msg) from e

        return Issue(
            source_number=gl_issue.iid,
            title=gl_issue.title,
            body_markdown=absolutize_upload_urls(gl_issue.description or "", self.base_url, self._config.project_id),
            state="closed" if gl_issue.state == "closed" else "open",
            web_url=gl_issue.web_url,
            labels=list(gl_issue.labels),
            author=gl_issue.author["username"],
            created_at=parse_timestamp(gl_issue.created_at),
            updated_at=parse_timestamp(gl_issue.updated_at),
            closed_at=parse_timestamp(getattr(gl_issue, "closed_at", None)),
        )

    def get_comments(self, number: int) -> Iterator[Comment]:
        try:
            notes = self._project.issues.get(number, lazy=True).notes.list(
                get_all=True, sort="asc", order_by="created_at"
            )
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to fetch notes of GitLab issue #{number}: {e}"
            raise FetchError(msg) from e

        for note in notes:
            yield Comment(
                body_markdown=absolutize_upload_urls(note.body or "", self.base_url, self._config.project_id),
                author=note.author["username"],
                created_at=parse_timestamp(note.created_at),
                updated_at=parse_timestamp(note.updated_at),
                system=bool(getattr(note, "system", False)),
            )

    def annotate_description(self, content: str) -> str:
        return add_hosted_attachments_note(content, self.base_url)

    def create_fetcher(self) -> GitLabFetcher:
        return GitLabFetcher(self._client, self._config)


class GitLabTarget(_GitLabProject):
    """Creates issues and notes in a GitLab project."""

    def create_issue(self, title: str, body: str, labels: list[str], state: str) -> CreatedIssue:
        try:
            gl_issue = self._project.issues.create({"title": title, "description": body, "labels": labels})
            if state == "closed":
                gl_issue.state_event = "close"
                gl_issue.save()
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to create GitLab issue in project {self._config.project_id}: {e}"
            raise CreateError(msg) from e

        return CreatedIssue(number=gl_issue.iid, url=gl_issue.web_url)

    def create_comment(self, issue_number: int, body: str) -> None:
        try:
            self._project.issues.get(issue_number, lazy=True).notes.create({"body": body})
        except (GitlabError, requests.RequestException) as e:
            msg = f"Failed to add note to GitLab issue #{issue_number}: {e}"
            raise CreateError(msg) from e

    def create_uploader(self) -> GitLabUploader:
        return GitLabUploader(self._project, self.base_url)
