"""Point attachment references in a body at their migrated copies."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from .scanner import HTML_IMG_PATTERN, HTML_LINK_PATTERN, MARKDOWN_IMAGE_PATTERN, MARKDOWN_LINK_PATTERN

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_IMAGE_ALT: Final[str] = "Image"
DEFAULT_LINK_TEXT: Final[str] = "Download"

_ALT_PATTERN: Final[re.Pattern[str]] = re.compile(r"""\salt=["']([^"']*)["']""", re.IGNORECASE)


def relocatable_url(url: str, marker: str | None) -> str:
    """Reduce ``url`` to its host-independent form starting at ``marker``.

    GitLab serves ``/uploads/<secret>/<name>`` relative to the project, so the
    link keeps working when the instance is proxied or renamed.
    """
    if not marker or marker not in url:
        return url
    return marker + url.split(marker, 1)[1]


def _replace_destination(match: re.Match[str], new_url: str) -> str:
    """Swap the URL (group 2) of a Markdown image or link, keeping text and title."""
    start = match.start(2) - match.start()
    end = match.end(2) - match.start()
    markup = match.group(0)
    return markup[:start] + new_url + markup[end:]


def rewrite_body(body: str, url_map: Mapping[str, str], *, relocatable_marker: str | None = None) -> str:
    """Replace migrated attachment URLs in ``body``.

    - HTML ``<img>`` tags become Markdown images, keeping the alt text.
    - Markdown images keep their form and title; only the URL changes.
    - HTML links become Markdown links, keeping the link text.
    - Markdown links keep their form and title; only the URL changes. A link
      wrapping an image is handled after the image itself.

    References whose URL has no entry in ``url_map`` (failed download or
    upload) are left exactly as they were, as is any text outside these
    markup forms.

    Args:
        body: Original issue or comment body
        url_map: Source URL -> destination URL for successfully uploaded attachments
        relocatable_marker: Path marker of a relocatable destination URL convention (GitLab: "/uploads/")

    Returns:
        The rewritten body
    """
    if not body or not url_map:
        return body

    def target(url: str) -> str | None:
        new_url = url_map.get(url.strip())
        if new_url is None:
            return None
        return relocatable_url(new_url, relocatable_marker)

    def replace_html_img(match: re.Match[str]) -> str:
        new_url = target(match.group(1))
        if new_url is None:
            return match.group(0)
        alt_match = _ALT_PATTERN.search(match.group(0))
        alt = alt_match.group(1) if alt_match and alt_match.group(1) else DEFAULT_IMAGE_ALT
        return f"![{alt}]({new_url})"

    def replace_markdown_image(match: re.Match[str]) -> str:
        new_url = target(match.group(2))
        if new_url is None:
            return match.group(0)
        return _replace_destination(match, new_url)

    def replace_html_link(match: re.Match[str]) -> str:
        new_url = target(match.group(1))
        if new_url is None:
            return match.group(0)
        text = match.group(2).strip() or DEFAULT_LINK_TEXT
        return f"[{text}]({new_url})"

    def replace_markdown_link(match: re.Match[str]) -> str:
        new_url = target(match.group(2))
        if new_url is None:
            return match.group(0)
        return _replace_destination(match, new_url)

    result = HTML_IMG_PATTERN.sub(replace_html_img, body)
    result = MARKDOWN_IMAGE_PATTERN.sub(replace_markdown_image, result)
    result = HTML_LINK_PATTERN.sub(replace_html_link, result)
    return MARKDOWN_LINK_PATTERN.sub(replace_markdown_link, result)
