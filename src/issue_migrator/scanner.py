"""Find image and file attachments referenced in issue and comment bodies."""

from __future__ import annotations

import logging
import re
from typing import Final

from .models import AttachmentReference

logger: logging.Logger = logging.getLogger(__name__)

HTML_IMG_PATTERN: Final[re.Pattern[str]] = re.compile(r"""<img[^>]*\ssrc=["']([^"']+)["'][^>]*>""", re.IGNORECASE)
# Markdown destinations: URL in group 2, optional "title" after it
MARKDOWN_IMAGE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""!\[([^\]]*)\]\(\s*([^\s)]+)(?:\s+["'][^"']*["'])?\s*\)"""
)
HTML_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""<a[^>]*\shref=["']([^"']+)["'][^>]*>([^<]*)</a>""", re.IGNORECASE
)
# Lookbehind keeps image syntax out; the image pattern owns those. Link text
# may wrap an image, as in [![shot](a.png)](a.png).
MARKDOWN_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""(?<!!)\[((?:!\[[^\]]*\]\([^)]*\)|[^\[\]])+)\]\(\s*([^\s)]+)(?:\s+["'][^"']*["'])?\s*\)"""
)

FILE_EXTENSIONS: Final[tuple[str, ...]] = (
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp", ".ico", ".tif", ".tiff", ".heic", ".avif",
    # Documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".rtf", ".odt", ".ods", ".odp", ".md",
    # Archives
    ".zip", ".tar", ".gz", ".tgz", ".rar", ".7z",
    # Code and config
    ".js", ".ts", ".py", ".go", ".java", ".c", ".cpp", ".h",
    ".json", ".xml", ".yaml", ".yml", ".toml", ".ini", ".conf",
    # Media
    ".mp4", ".mov", ".webm", ".avi", ".mp3", ".wav",
    # Other
    ".csv", ".log", ".sql", ".sh", ".bat", ".exe", ".dmg", ".deb", ".rpm",
)  # fmt: skip

FILE_HOSTING_PATTERNS: Final[tuple[str, ...]] = (
    "github.com/user-attachments/assets",
    "github.com/user-attachments/files",
    "githubusercontent.com",
    "gitlab.com/uploads",
)

# GitLab project uploads on any instance: /-/project/<id>/uploads/<secret>/<name>
_GITLAB_PROJECT_UPLOAD = re.compile(r"/-/project/\d+/uploads/[0-9a-f]+/")


def is_valid_url(url: str) -> bool:
    """Only absolute http(s) URLs can be downloaded and migrated."""
    return url.startswith(("http://", "https://"))


def is_file_url(url: str) -> bool:
    """Heuristic: does the URL point to a downloadable file rather than a web page?"""
    lower_url = url.lower()
    path = lower_url.split("?", 1)[0].split("#", 1)[0]
    if path.endswith(FILE_EXTENSIONS):
        return True
    # Extensions in the middle of the path still count (e.g. ".../file.pdf/raw")
    if any(f"{ext}/" in path for ext in FILE_EXTENSIONS):
        return True
    if any(pattern in lower_url for pattern in FILE_HOSTING_PATTERNS):
        return True
    return _GITLAB_PROJECT_UPLOAD.search(lower_url) is not None


def find_attachments(content: str) -> list[AttachmentReference]:
    """Return the attachments referenced in ``content``.

    Patterns are applied in order of precedence: HTML images, Markdown images,
    HTML file links, Markdown file links. A URL is reported only once; the
    first pattern that finds it decides whether it is an image.

    Args:
        content: Issue or comment body (Markdown, possibly with inline HTML)

    Returns:
        References in discovery order, one per distinct URL
    """
    if not content:
        return []

    references: list[AttachmentReference] = []
    seen: set[str] = set()

    def add(url: str, *, is_image: bool, markup: str) -> None:
        url = url.strip()
        if url in seen or not is_valid_url(url):
            return
        if not is_image and not is_file_url(url):
            return
        seen.add(url)
        references.append(AttachmentReference(source_url=url, is_image=is_image, original_markup=markup))
        logger.debug(f"Found {'image' if is_image else 'file'} attachment: {url}")

    for match in HTML_IMG_PATTERN.finditer(content):
        add(match.group(1), is_image=True, markup=match.group(0))

    for match in MARKDOWN_IMAGE_PATTERN.finditer(content):
        add(match.group(2), is_image=True, markup=match.group(0))

    for match in HTML_LINK_PATTERN.finditer(content):
        add(match.group(1), is_image=False, markup=match.group(0))

    for match in MARKDOWN_LINK_PATTERN.finditer(content):
        add(match.group(2), is_image=False, markup=match.group(0))

    return references
