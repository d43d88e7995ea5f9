"""Upload attachments to the destination platform.

Two destinations are supported:

GitLab
    Documented project uploads API (``POST /projects/:id/uploads``), driven
    through python-gitlab. Returns a project-relative ``/uploads/...`` URL.

GitHub
    GitHub has no API for issue attachments. The web UI uses an undocumented
    three-step protocol, authenticated by the browser session cookie rather
    than an API token:

    1. ``POST /upload/policies/assets`` returns an upload policy: a one-time
       storage URL with signed form fields, the pending asset and an
       authenticity token to confirm it.
    2. The file is posted to the storage URL together with the signed fields.
    3. ``PUT /upload/assets/:id`` confirms the asset; afterwards its href
       serves the file.

    This can break whenever GitHub changes its front end. Every failure is
    reported as UploadError so that callers leave the attachment on the
    source platform instead of failing the migration.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Final

import requests
from gitlab.exceptions import GitlabError

from .exceptions import UploadError, UploadPermissionError
from .sniffer import content_type_for

if TYPE_CHECKING:
    from gitlab.v4.objects import Project as GitlabProject

logger: logging.Logger = logging.getLogger(__name__)

GITHUB_WEB_URL: Final[str] = "https://github.com"
_POLICY_TIMEOUT_SECONDS: Final[int] = 30
_STORAGE_TIMEOUT_SECONDS: Final[int] = 60

# Order of the signed policy fields expected by the storage backend; the file goes last.
_STORAGE_FORM_FIELDS: Final[tuple[str, ...]] = (
    "key",
    "acl",
    "policy",
    "X-Amz-Algorithm",
    "X-Amz-Credential",
    "X-Amz-Date",
    "X-Amz-Signature",
    "Content-Type",
    "Cache-Control",
    "x-amz-meta-Surrogate-Control",
)

_BROWSER_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Github-Verified-Fetch": "true",
    "Origin": GITHUB_WEB_URL,
    "Referer": f"{GITHUB_WEB_URL}/",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-origin",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
    ),
    "X-Requested-With": "XMLHttpRequest",
}

_STORAGE_SUCCESS_CODES: Final[frozenset[int]] = frozenset({200, 201, 204, 302, 303})


def _mapping(value: Any, field: str, filename: str) -> dict[str, Any]:
    """Return a policy sub-object, treating an absent one as empty."""
    if value is None or value == "":
        return {}
    if not isinstance(value, dict):
        msg = f"GitHub upload policy for {filename} has a malformed '{field}' entry: {value!r}"
        raise UploadError(msg)
    return value


class GitLabUploader:
    """Uploads files to a GitLab project's uploads area."""

    relocatable_marker: str | None = "/uploads/"

    _project: GitlabProject
    _base_url: str

    def __init__(self, project: GitlabProject, base_url: str) -> None:
        self._project = project
        self._base_url = base_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return True

    def upload(self, filename: str, content: bytes) -> str:
        """Upload ``content`` and return the absolute URL of the new upload.

        Raises:
            UploadPermissionError: GitLab answered 403 (token lacks scope or project access)
            UploadError: Any other failure
        """
        project_id = self._project.id
        try:
            result: Any = self._project.upload(filename, filedata=content)
        except GitlabError as e:
            if e.response_code == 403:  # noqa: PLR2004
                msg = (
                    f"Upload failed with status 403 Forbidden - check that your GitLab token has 'api' scope "
                    f"and write access to project {project_id}: {e.error_message}"
                )
                raise UploadPermissionError(msg) from e
            msg = f"Upload of {filename} to GitLab project {project_id} failed with status {e.response_code}: {e.error_message}"
            raise UploadError(msg) from e
        except requests.RequestException as e:
            msg = f"Upload of {filename} to GitLab project {project_id} failed: {e}"
            raise UploadError(msg) from e

        url = result.get("url") if isinstance(result, dict) else None
        if not url:
            msg = f"GitLab upload response for {filename} contains no URL: {result!r}"
            raise UploadError(msg)

        if url.startswith("/"):
            return f"{self._base_url}{url}"
        return url


class GitHubSessionUploader:
    """Uploads files to GitHub the way the issue editor in the browser does."""

    relocatable_marker: str | None = None

    _session: str
    _repository_id: int | None
    _web_url: str

    def __init__(self, session: str, repository_id: int | None = None, *, web_url: str = GITHUB_WEB_URL) -> None:
        self._session = session
        self._repository_id = repository_id
        self._web_url = web_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        """Uploads are only attempted with a browser session cookie."""
        return bool(self._session)

    def upload(self, filename: str, content: bytes) -> str:
        """Upload ``content`` and return the public asset URL.

        Raises:
            UploadError: On any failure, including a missing or expired session
        """
        if not self._session:
            msg = "GitHub attachment upload needs a browser session cookie ('user_session'); none was provided"
            raise UploadError(msg)

        try:
            return self._upload(filename, content)
        except (AttributeError, KeyError, TypeError) as e:
            msg = f"Unexpected GitHub upload response for {filename}: {e!r}"
            raise UploadError(msg) from e

    def _upload(self, filename: str, content: bytes) -> str:
        content_type = content_type_for(filename)
        policy = self._request_policy(filename, len(content), content_type)

        asset = _mapping(policy.get("asset"), "asset", filename)
        asset_href: str = asset.get("href") or ""
        upload_url: str = policy.get("upload_url") or ""

        if asset_href and not upload_url:
            logger.debug(f"Upload policy for {filename} already references the final asset: {asset_href}")
            return asset_href
        if not upload_url:
            msg = f"GitHub upload policy for {filename} has neither an upload URL nor an asset reference"
            raise UploadError(msg)

        location = self._upload_to_storage(upload_url, policy, filename, content, content_type)
        confirmed_href = self._confirm_asset(policy, filename)

        url = confirmed_href or asset_href or location
        if not url:
            msg = f"GitHub accepted {filename} but returned no asset URL"
            raise UploadError(msg)
        return url

    def _session_headers(self) -> dict[str, str]:
        # A fresh nonce for every request, like the web client sends
        return _BROWSER_HEADERS | {
            "Cookie": f"user_session={self._session}; __Host-user_session_same_site={self._session}; logged_in=yes",
            "X-Fetch-Nonce": f"v2:{uuid.uuid4()}",
        }

    def _request_policy(self, filename: str, size: int, content_type: str) -> dict[str, Any]:
        fields: list[tuple[str, tuple[None, str]]] = []
        if self._repository_id is not None:
            fields.append(("repository_id", (None, str(self._repository_id))))
        fields += [
            ("name", (None, filename)),
            ("size", (None, str(size))),
            ("content_type", (None, content_type)),
        ]

        logger.debug(f"Requesting GitHub upload policy for {filename} ({size} bytes)")
        try:
            response = requests.post(
                f"{self._web_url}/upload/policies/assets",
                files=fields,
                headers=self._session_headers(),
                timeout=_POLICY_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            msg = f"GitHub upload policy request failed: {e}"
            raise UploadError(msg) from e

        if response.status_code == 422:  # noqa: PLR2004
            msg = "GitHub upload not available - the session cookie may be invalid or expired (status 422)"
            raise UploadError(msg)
        if response.status_code not in (200, 201):
            if "browser did something unexpected" in response.text:
                msg = "GitHub rejected the upload as non-browser traffic; provide a valid 'user_session' cookie"
                raise UploadError(msg)
            msg = f"GitHub upload policy request failed with status {response.status_code}"
            raise UploadError(msg)

        try:
            policy = response.json()
        except ValueError as e:
            msg = "GitHub upload policy response is not valid JSON"
            raise UploadError(msg) from e
        if not isinstance(policy, dict):
            msg = f"Unexpected GitHub upload policy response: {policy!r}"
            raise UploadError(msg)
        return policy

    def _upload_to_storage(
        self,
        upload_url: str,
        policy: dict[str, Any],
        filename: str,
        content: bytes,
        content_type: str,
    ) -> str:
        """Post the file to the one-time storage URL. Returns the redirect location, if any."""
        form = _mapping(policy.get("form"), "form", filename)
        ordered = [(key, str(form[key])) for key in _STORAGE_FORM_FIELDS if key in form]
        ordered += [(key, str(value)) for key, value in form.items() if key not in _STORAGE_FORM_FIELDS]
        extra_headers = {str(k): str(v) for k, v in _mapping(policy.get("header"), "header", filename).items()}

        logger.debug(f"Uploading {filename} to GitHub asset storage")
        try:
            response = requests.post(
                upload_url,
                data=ordered,
                files={"file": (filename, content, form.get("Content-Type") or content_type)},
                headers=extra_headers,
                allow_redirects=False,
                timeout=_STORAGE_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            msg = f"Upload of {filename} to GitHub asset storage failed: {e}"
            raise UploadError(msg) from e

        if response.status_code not in _STORAGE_SUCCESS_CODES:
            msg = f"Upload of {filename} to GitHub asset storage failed with status {response.status_code}"
            raise UploadError(msg)
        return response.headers.get("Location", "")

    def _confirm_asset(self, policy: dict[str, Any], filename: str) -> str:
        """Mark the uploaded asset as complete. Returns the confirmed href, if reported."""
        asset = _mapping(policy.get("asset"), "asset", filename)
        token: str = policy.get("asset_upload_authenticity_token") or ""
        confirm_path: str = policy.get("asset_upload_url") or (f"/upload/assets/{asset['id']}" if asset.get("id") else "")
        if not token or not confirm_path:
            logger.debug(f"No confirmation step offered for {filename}")
            return ""

        confirm_url = confirm_path if confirm_path.startswith("http") else f"{self._web_url}{confirm_path}"
        try:
            response = requests.put(
                confirm_url,
                files=[("authenticity_token", (None, token))],
                headers=self._session_headers(),
                timeout=_POLICY_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            msg = f"Confirmation of GitHub asset {filename} failed: {e}"
            raise UploadError(msg) from e

        if response.status_code in (204, 304):
            return ""
        if response.status_code == 422 and "already" in response.text.lower():  # noqa: PLR2004
            logger.debug(f"GitHub asset {filename} was already confirmed")
            return ""
        if response.status_code not in (200, 201):
            msg = f"Confirmation of GitHub asset {filename} failed with status {response.status_code}"
            raise UploadError(msg)

        try:
            body = response.json()
        except ValueError:
            return ""
        return body.get("href", "") if isinstance(body, dict) else ""
