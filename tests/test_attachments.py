"""Tests for attachment handling."""

from unittest.mock import Mock

import pytest

from issue_migrator.attachments import AttachmentHandler, ProcessedContent, guess_filename, sanitize_filename
from issue_migrator.exceptions import DownloadError, UploadError, UploadPermissionError
from issue_migrator.models import AttachmentReference, FetchedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


@pytest.mark.unit
class TestSanitizeFilename:
    def test_spaces_and_unsafe_characters(self) -> None:
        assert sanitize_filename("my screen shot (1).png") == "my_screen_shot_1.png"

    def test_nothing_left(self) -> None:
        assert sanitize_filename("...") == "file"


@pytest.mark.unit
class TestGuessFilename:
    def test_name_with_extension_kept(self) -> None:
        ref = AttachmentReference("https://x.test/files/report.pdf", False, "[r](https://x.test/files/report.pdf)")
        assert guess_filename(ref, b"%PDF-1.4") == "report.pdf"

    def test_gitlab_generic_image_name(self) -> None:
        url = "https://gitlab.example.com/-/project/5/uploads/0123456789abcdef0123456789abcdef/Image"
        ref = AttachmentReference(url, True, f"![Image]({url})")
        assert guess_filename(ref, PNG_BYTES) == "image.png"

    def test_github_asset_uses_alt_text(self) -> None:
        url = "https://github.com/user-attachments/assets/0b7c1a2e-1111-2222-3333-444455556666"
        ref = AttachmentReference(url, True, f'<img alt="login page" src="{url}">')
        assert guess_filename(ref, PNG_BYTES) == "login_page.png"

    def test_github_asset_without_label(self) -> None:
        url = "https://github.com/user-attachments/assets/0b7c1a2e-1111-2222-3333-444455556666"
        ref = AttachmentReference(url, True, f"![]({url})")
        assert guess_filename(ref, b"\xff\xd8\xff\xe0") == "attachment.jpg"

    def test_unknown_content_without_extension(self) -> None:
        ref = AttachmentReference("https://x.test/download/blob", False, "")
        assert guess_filename(ref, b"plain text") == "blob"

    def test_percent_encoded_name(self) -> None:
        ref = AttachmentReference("https://x.test/files/my%20notes.txt", False, "")
        assert guess_filename(ref, b"notes") == "my_notes.txt"


@pytest.mark.unit
class TestProcessedContent:
    def test_creation(self) -> None:
        result = ProcessedContent(content="text", attachment_count=2)
        assert result.uploaded_count == 0
        assert result.warnings == []


@pytest.mark.unit
class TestAttachmentHandler:
    def test_process_content_no_attachments(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        result = handler.process_content("No attachments here")

        assert result.content == "No attachments here"
        assert result.attachment_count == 0
        mock_fetcher.fetch.assert_not_called()

    def test_process_content_downloads_and_uploads(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        handler = AttachmentHandler(mock_fetcher, mock_uploader)
        content = "Screenshot: ![shot](https://x.test/shot.png)"

        result = handler.process_content(content, context="issue #1")

        assert result.content == "Screenshot: ![shot](https://dest.test/u/shot.png)"
        assert result.attachment_count == 1
        assert result.uploaded_count == 1
        assert result.uploaded[0].is_image
        mock_fetcher.fetch.assert_called_once_with("https://x.test/shot.png")
        mock_uploader.upload.assert_called_once_with("shot.png", PNG_BYTES)

    def test_cached_attachment_uploaded_once(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        first = handler.process_content("![a](https://x.test/a.png)")
        second = handler.process_content("Quoting: ![a](https://x.test/a.png)")

        assert first.content == "![a](https://dest.test/u/a.png)"
        assert second.content == "Quoting: ![a](https://dest.test/u/a.png)"
        assert mock_uploader.upload.call_count == 1
        assert mock_fetcher.fetch.call_count == 1

    def test_download_failure_keeps_original_url(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        def fetch(url: str) -> FetchedFile:
            if url.endswith("gone.png"):
                raise DownloadError(url, status=404)
            return FetchedFile(content=PNG_BYTES, content_type="image/png")

        mock_fetcher.fetch.side_effect = fetch
        handler = AttachmentHandler(mock_fetcher, mock_uploader)
        content = "![a](https://x.test/gone.png) ![b](https://x.test/ok.png)"

        result = handler.process_content(content)

        assert result.content == "![a](https://x.test/gone.png) ![b](https://dest.test/u/ok.png)"
        assert result.uploaded_count == 1
        assert len(result.warnings) == 1
        assert "status 404" in result.warnings[0]

    def test_upload_failure_keeps_original_url(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_uploader.upload.side_effect = UploadError("storage unavailable")
        handler = AttachmentHandler(mock_fetcher, mock_uploader)
        content = "See [logs](https://x.test/run.log)"

        result = handler.process_content(content)

        assert result.content == content
        assert result.warnings == ["storage unavailable"]

    def test_permission_error_recorded(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_uploader.upload.side_effect = UploadPermissionError(
            "Upload failed with status 403 Forbidden - check that your GitLab token has 'api' scope"
        )
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        result = handler.process_content("![a](https://x.test/a.png)")

        assert result.content == "![a](https://x.test/a.png)"
        assert "'api' scope" in result.warnings[0]

    def test_failed_upload_not_cached(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_uploader.upload.side_effect = [UploadError("flaky"), "https://dest.test/u/a.png"]
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        handler.process_content("![a](https://x.test/a.png)")
        result = handler.process_content("![a](https://x.test/a.png)")

        assert result.content == "![a](https://dest.test/u/a.png)"
        assert mock_uploader.upload.call_count == 2

    def test_empty_download_skipped(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_fetcher.fetch.return_value = FetchedFile(content=b"", content_type="image/png")
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        result = handler.process_content("![a](https://x.test/a.png)")

        assert result.content == "![a](https://x.test/a.png)"
        assert len(result.warnings) == 1
        mock_uploader.upload.assert_not_called()

    def test_disabled_uploader_leaves_content(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_uploader.enabled = False
        handler = AttachmentHandler(mock_fetcher, mock_uploader)
        content = "![a](https://x.test/a.png)"

        result = handler.process_content(content)

        assert result.content == content
        assert result.attachment_count == 1
        mock_fetcher.fetch.assert_not_called()
        mock_uploader.upload.assert_not_called()

    def test_relocatable_destination_urls(self, mock_fetcher: Mock, mock_uploader: Mock) -> None:
        mock_uploader.relocatable_marker = "/uploads/"
        mock_uploader.upload.side_effect = None
        mock_uploader.upload.return_value = "https://gitlab.example.com/uploads/0123456789abcdef0123456789abcdef/a.png"
        handler = AttachmentHandler(mock_fetcher, mock_uploader)

        result = handler.process_content("![a](https://github.com/user-attachments/assets/abc)")

        assert result.content == "![a](/uploads/0123456789abcdef0123456789abcdef/a.png)"
        assert result.uploaded[0].destination_url.startswith("https://gitlab.example.com/")
