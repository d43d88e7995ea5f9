"""Tests for attachment downloads."""

from unittest.mock import Mock, patch

import pytest
import requests

from issue_migrator.exceptions import DownloadError
from issue_migrator.fetcher import BinaryFetcher, host_matches


def _response(status_code: int = 200, content: bytes = b"data", headers: dict[str, str] | None = None) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.content = content
    response.headers = headers if headers is not None else {"Content-Type": "image/png"}
    return response


@pytest.mark.unit
class TestHostMatches:
    def test_exact_and_subdomain(self) -> None:
        domains = ("github.com", "githubusercontent.com")
        assert host_matches("https://github.com/user-attachments/assets/x", domains)
        assert host_matches("https://private-user-images.githubusercontent.com/1/2.png", domains)

    def test_other_hosts(self) -> None:
        domains = ("github.com",)
        assert not host_matches("https://notgithub.com/a.png", domains)
        assert not host_matches("https://cdn.example.com/a.png", domains)
        assert not host_matches("/relative/path.png", domains)


@pytest.mark.unit
class TestBinaryFetcher:
    def setup_method(self) -> None:
        self.fetcher = BinaryFetcher(["github.com", "githubusercontent.com"], {"Authorization": "Bearer tok"})

    @patch("issue_migrator.fetcher.requests.get")
    def test_credentials_sent_to_own_host(self, mock_get) -> None:
        mock_get.return_value = _response()

        fetched = self.fetcher.fetch("https://github.com/user-attachments/assets/abc")

        assert fetched.content == b"data"
        assert fetched.content_type == "image/png"
        assert mock_get.call_args.kwargs["headers"] == {"Authorization": "Bearer tok"}

    @patch("issue_migrator.fetcher.requests.get")
    def test_no_credentials_for_third_party_host(self, mock_get) -> None:
        mock_get.return_value = _response()

        self.fetcher.fetch("https://cdn.example.com/a.png")

        assert mock_get.call_args.kwargs["headers"] == {}

    @patch("issue_migrator.fetcher.requests.get")
    def test_non_200_raises_with_status(self, mock_get) -> None:
        mock_get.return_value = _response(status_code=404)

        with pytest.raises(DownloadError) as exc_info:
            self.fetcher.fetch("https://github.com/user-attachments/assets/missing")

        assert exc_info.value.status == 404
        assert exc_info.value.url == "https://github.com/user-attachments/assets/missing"
        assert "status 404" in str(exc_info.value)

    @patch("issue_migrator.fetcher.requests.get")
    def test_transport_error_raises(self, mock_get) -> None:
        mock_get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(DownloadError) as exc_info:
            self.fetcher.fetch("https://cdn.example.com/a.png")

        assert exc_info.value.status is None
        assert "connection refused" in str(exc_info.value)

    @patch("issue_migrator.fetcher.requests.get")
    def test_missing_content_type(self, mock_get) -> None:
        mock_get.return_value = _response(headers={})

        fetched = self.fetcher.fetch("https://cdn.example.com/blob")

        assert fetched.content_type == "application/octet-stream"

    @patch("issue_migrator.fetcher.requests.get")
    def test_timeout_passed(self, mock_get) -> None:
        mock_get.return_value = _response()
        fetcher = BinaryFetcher([], timeout=5)

        fetcher.fetch("https://cdn.example.com/a.png")

        assert mock_get.call_args.kwargs["timeout"] == 5
