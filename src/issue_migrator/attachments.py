"""Attachment migration between source and destination platforms.

One body at a time: scan for references, download each, upload it to the
destination and rewrite the body. Attachments are migrated best-effort; a
failed download or upload leaves that reference pointing at the source.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Final
from urllib.parse import unquote, urlsplit

from .exceptions import DownloadError, UploadError, UploadPermissionError
from .models import AttachmentReference, UploadedAsset
from .rewriter import rewrite_body
from .scanner import find_attachments
from .sniffer import detect_extension

if TYPE_CHECKING:
    from .fetcher import BinaryFetcher
    from .protocols import Uploader

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_FILENAME: Final[str] = "attachment"
_GENERIC_IMAGE_NAMES: Final[frozenset[str]] = frozenset({"image", "img"})
_GITHUB_ASSET_MARKER: Final[str] = "github.com/user-attachments/"
_ALT_PATTERN: Final[re.Pattern[str]] = re.compile(r"""alt=["']([^"']*)["']""", re.IGNORECASE)
_MARKDOWN_TEXT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^!?\[([^\]]*)\]")
_UNSAFE_FILENAME_CHARS: Final[re.Pattern[str]] = re.compile(r"[^\w\-.]")


def sanitize_filename(name: str) -> str:
    """Make ``name`` safe for use as an upload filename."""
    name = _UNSAFE_FILENAME_CHARS.sub("", name.replace(" ", "_"))
    return name.strip(".") or "file"


def _label_from_markup(markup: str) -> str:
    alt_match = _ALT_PATTERN.search(markup)
    if alt_match:
        return alt_match.group(1)
    text_match = _MARKDOWN_TEXT_PATTERN.match(markup)
    return text_match.group(1) if text_match else ""


def guess_filename(reference: AttachmentReference, content: bytes) -> str:
    """Choose an upload filename for an attachment.

    Uses the last URL path segment. GitHub asset URLs end in an opaque id, so
    the alt/link text is used there instead. When the chosen name has no
    extension, or is a generic name like GitLab's pasted ``Image``, the
    extension is detected from the content.
    """
    path = unquote(urlsplit(reference.source_url).path)
    name = PurePosixPath(path).name

    if _GITHUB_ASSET_MARKER in reference.source_url:
        name = _label_from_markup(reference.original_markup)

    name = sanitize_filename(name) if name else ""
    stem = PurePosixPath(name).stem
    suffix = PurePosixPath(name).suffix
    generic = stem.lower() in _GENERIC_IMAGE_NAMES

    if suffix and not generic:
        return name

    detected = detect_extension(content)
    if detected:
        logger.debug(f"Detected {detected} content for {reference.source_url}")
    if generic:
        return "image" + (detected or suffix)
    return (name or DEFAULT_FILENAME) + detected


@dataclass
class ProcessedContent:
    """Result of processing content with attachments."""

    content: str
    attachment_count: int
    uploaded: list[UploadedAsset] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def uploaded_count(self) -> int:
        return len(self.uploaded)


class AttachmentHandler:
    """Downloads attachments from the source and uploads them to the destination.

    One handler serves one migration request. Uploaded files are cached by
    source URL so an attachment quoted in several comments is uploaded once.
    """

    _fetcher: BinaryFetcher
    _uploader: Uploader
    _uploaded_cache: dict[str, UploadedAsset]
    _disabled_notice_shown: bool

    def __init__(self, fetcher: BinaryFetcher, uploader: Uploader) -> None:
        self._fetcher = fetcher
        self._uploader = uploader
        self._uploaded_cache = {}
        self._disabled_notice_shown = False

    def process_content(self, content: str, context: str = "") -> ProcessedContent:
        """Migrate the attachments referenced in ``content``.

        Args:
            content: Text content that may reference source-hosted attachments
            context: Context for log messages (e.g., "issue #5")

        Returns:
            ProcessedContent with the rewritten content and per-attachment outcomes
        """
        references = find_attachments(content)
        if not references:
            return ProcessedContent(content=content, attachment_count=0)

        ctx = f" in {context}" if context else ""
        if not self._uploader.enabled:
            if not self._disabled_notice_shown:
                logger.info("Attachment upload to the destination is not available; attachments stay on the source")
                self._disabled_notice_shown = True
            logger.debug(f"Keeping {len(references)} attachment(s){ctx} on the source platform")
            return ProcessedContent(content=content, attachment_count=len(references))

        logger.info(f"Processing {len(references)} attachment(s){ctx}")
        result = ProcessedContent(content=content, attachment_count=len(references))
        for reference in references:
            asset = self._migrate_reference(reference, ctx, result.warnings)
            if asset is not None:
                result.uploaded.append(asset)

        url_map = {asset.source_url: asset.destination_url for asset in result.uploaded}
        result.content = rewrite_body(content, url_map, relocatable_marker=self._uploader.relocatable_marker)
        return result

    def _migrate_reference(self, reference: AttachmentReference, ctx: str, warnings: list[str]) -> UploadedAsset | None:
        cached = self._uploaded_cache.get(reference.source_url)
        if cached is not None:
            logger.debug(f"Reusing uploaded attachment {reference.source_url}: {cached.destination_url}")
            return cached

        try:
            fetched = self._fetcher.fetch(reference.source_url)
        except DownloadError as e:
            logger.warning(f"Keeping original URL{ctx}: {e}")
            warnings.append(str(e))
            return None

        if not fetched.content:
            msg = f"Source returned empty content for {reference.source_url}"
            logger.warning(f"{msg}{ctx}")
            warnings.append(msg)
            return None

        filename = guess_filename(reference, fetched.content)
        try:
            destination_url = self._uploader.upload(filename, fetched.content)
        except UploadPermissionError as e:
            logger.error(f"Attachment {filename}{ctx} not uploaded: {e}")  # noqa: TRY400
            warnings.append(str(e))
            return None
        except UploadError as e:
            logger.warning(f"Attachment {filename}{ctx} not uploaded, keeping original URL: {e}")
            warnings.append(str(e))
            return None

        asset = UploadedAsset(
            source_url=reference.source_url, destination_url=destination_url, is_image=reference.is_image
        )
        self._uploaded_cache[reference.source_url] = asset
        logger.debug(f"Uploaded {filename}: {destination_url}")
        return asset
