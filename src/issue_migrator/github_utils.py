"""GitHub as source and target of a migration, on top of PyGithub."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Final
from urllib.parse import urlsplit

import requests
from github import Auth, Github, GithubException

from . import utils
from .exceptions import CreateError, FetchError, MigrationError
from .fetcher import BinaryFetcher
from .models import Comment, CreatedIssue, Issue, IssueSummary
from .uploaders import GitHubSessionUploader

if TYPE_CHECKING:
    from collections.abc import Iterator

    from github.Issue import Issue as GithubIssue
    from github.Repository import Repository

    from .models import PlatformConfig

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

PLATFORM_NAME: Final[str] = "GitHub"
GITHUB_API_URL: Final[str] = "https://api.github.com"
# Hosts serving GitHub attachments; only these receive the API token
GITHUB_DOMAINS: Final[tuple[str, ...]] = ("github.com", "githubusercontent.com")

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_SESSION_ENV_VAR: Final[str] = "GITHUB_SESSION"


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path or env var GITHUB_TOKEN."""
    if pass_path:
        return utils.get_pass_value(pass_path)
    return os.environ.get(_TOKEN_ENV_VAR) or None


def get_session() -> str:
    """Get the GitHub browser session cookie from env var GITHUB_SESSION."""
    return os.environ.get(_SESSION_ENV_VAR, "")


def get_client(token: str | None = None, base_url: str | None = None) -> Github:
    """Get a GitHub client using the token. Anonymous if no token is given."""
    auth = Auth.Token(token) if token else None
    if base_url:
        return Github(auth=auth, base_url=base_url.rstrip("/"))
    return Github(auth=auth)


def get_repo(client: Github, owner: str, repo: str) -> Repository:
    """Get the repository ``owner/repo``."""
    if not owner or not repo:
        msg = f"Invalid GitHub repository '{owner}/{repo}'. Both owner and repository name must be non-empty."
        raise MigrationError(msg)
    try:
        return client.get_repo(f"{owner}/{repo}")
    except GithubException as e:
        msg = f"Cannot access GitHub repository {owner}/{repo}: {e}"
        raise MigrationError(msg) from e


def _domains_for(base_url: str | None) -> tuple[str, ...]:
    """Attachment hosts of github.com, plus the host of a GitHub Enterprise instance."""
    host = urlsplit(base_url).hostname if base_url else None
    if host and host != urlsplit(GITHUB_API_URL).hostname:
        return (*GITHUB_DOMAINS, host.lower())
    return GITHUB_DOMAINS


class _GitHubRepository:
    """Lazily resolved repository shared by the source and target roles."""

    platform_name: str = PLATFORM_NAME

    _config: PlatformConfig
    _client: Github
    _repo: Repository | None

    def __init__(self, config: PlatformConfig, client: Github | None = None) -> None:
        self._config = config
        self._client = client or get_client(config.token or None, config.base_url or None)
        self._repo = None

    @property
    def full_name(self) -> str:
        return f"{self._config.owner}/{self._config.repo}"

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = get_repo(self._client, self._config.owner, self._config.repo)
        return self._repo


class GitHubSource(_GitHubRepository):
    """Reads issues and comments from a GitHub repository."""

    def list_issues(self) -> list[IssueSummary]:
        try:
            return [
                IssueSummary(
                    id=issue.number,
                    title=issue.title,
                    description=issue.body or "",
                    state=issue.state,
                    labels=[label.name for label in issue.labels],
                    author=issue.user.login if issue.user else "",
                    created_at=issue.created_at,
                    updated_at=issue.updated_at,
                    url=issue.html_url,
                )
                for issue in self.repo.get_issues(state="all")
                if issue.pull_request is None
            ]
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to list issues of {self.full_name}: {e}"
            raise FetchError(msg) from e

    def get_issue(self, number: int) -> Issue:
        try:
            gh_issue = self.repo.get_issue(number)
            labels = [label.name for label in gh_issue.labels]
        except MigrationError as e:
            raise FetchError(str(e)) from e
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to fetch GitHub issue #{number} from {self.full_name}: {e}"
            raise FetchError(msg) from e

        if gh_issue.pull_request is not None:
            msg = f"#{number} in {self.full_name} is a pull request, not an issue"
            raise FetchError(msg)

        return Issue(
            source_number=gh_issue.number,
            title=gh_issue.title,
            body_markdown=gh_issue.body or "",
            state="closed" if gh_issue.state == "closed" else "open",
            web_url=gh_issue.html_url,
            labels=labels,
            author=gh_issue.user.login if gh_issue.user else "",
            created_at=gh_issue.created_at,
            updated_at=gh_issue.updated_at,
            closed_at=gh_issue.closed_at,
        )

    def get_comments(self, number: int) -> Iterator[Comment]:
        try:
            gh_comments = list(self.repo.get_issue(number).get_comments())
        except MigrationError as e:
            raise FetchError(str(e)) from e
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to fetch comments of GitHub issue #{number}: {e}"
            raise FetchError(msg) from e

        for gh_comment in gh_comments:
            yield Comment(
                body_markdown=gh_comment.body or "",
                author=gh_comment.user.login if gh_comment.user else "",
                created_at=gh_comment.created_at,
                updated_at=gh_comment.updated_at,
            )

    def create_fetcher(self) -> BinaryFetcher:
        headers = {"Authorization": f"Bearer {self._config.token}"} if self._config.token else {}
        return BinaryFetcher(_domains_for(self._config.base_url), headers)

    def annotate_description(self, content: str) -> str:
        return content


class GitHubTarget(_GitHubRepository):
    """Creates issues and comments in a GitHub repository."""

    _created: dict[int, GithubIssue]

    def __init__(self, config: PlatformConfig, client: Github | None = None) -> None:
        super().__init__(config, client)
        self._created = {}

    def create_issue(self, title: str, body: str, labels: list[str], state: str) -> CreatedIssue:
        try:
            gh_issue = self.repo.create_issue(title=title, body=body, labels=labels)
            if state == "closed":
                gh_issue.edit(state="closed")
        except MigrationError as e:
            raise CreateError(str(e)) from e
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to create GitHub issue in {self.full_name}: {e}"
            raise CreateError(msg) from e

        self._created[gh_issue.number] = gh_issue
        return CreatedIssue(number=gh_issue.number, url=gh_issue.html_url)

    def create_comment(self, issue_number: int, body: str) -> None:
        try:
            gh_issue = self._created.get(issue_number) or self.repo.get_issue(issue_number)
            gh_issue.create_comment(body)
        except MigrationError as e:
            raise CreateError(str(e)) from e
        except (GithubException, requests.RequestException) as e:
            msg = f"Failed to comment on GitHub issue #{issue_number}: {e}"
            raise CreateError(msg) from e

    def create_uploader(self) -> GitHubSessionUploader:
        repository_id: int | None = None
        if self._config.session:
            # Optional: the upload policy is requested without repository scope when this fails
            try:
                repository_id = self.repo.id
            except (MigrationError, GithubException, requests.RequestException) as e:
                logger.warning(f"Could not resolve repository id of {self.full_name}: {e}")
        return GitHubSessionUploader(self._config.session, repository_id)
