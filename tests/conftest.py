"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from issue_migrator.models import FetchedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


@pytest.fixture(autouse=True)
def no_log_file(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests from appending to migration.log in the working directory."""
    monkeypatch.setenv("MIGRATION_LOG_FILE", "")


@pytest.fixture
def mock_fetcher() -> Mock:
    """Fetcher returning a small PNG for every URL."""
    fetcher = Mock()
    fetcher.fetch.return_value = FetchedFile(content=PNG_BYTES, content_type="image/png")
    return fetcher


@pytest.fixture
def mock_uploader() -> Mock:
    """Enabled uploader answering with https://dest.test/u/<filename>."""
    uploader = Mock()
    uploader.enabled = True
    uploader.relocatable_marker = None
    uploader.upload.side_effect = lambda filename, _content: f"https://dest.test/u/{filename}"
    return uploader
