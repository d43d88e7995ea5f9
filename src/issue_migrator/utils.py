"""
Utility functions for the issue migration tool.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from subprocess import CompletedProcess
from typing import Final

DEFAULT_LOG_FILE: Final[str] = "migration.log"
_LOG_FILE_ENV_VAR: Final[str] = "MIGRATION_LOG_FILE"


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path does not exist in the password store."""


def setup_logging(*, verbose: bool = False, log_file: str | None = None) -> None:
    """Configure logging for the migration process.

    Logs go to stderr and are appended to ``log_file`` (default: $MIGRATION_LOG_FILE
    or migration.log). An empty log file name disables the file handler.
    """
    level = logging.DEBUG if verbose else logging.INFO
    if log_file is None:
        log_file = os.environ.get(_LOG_FILE_ENV_VAR, DEFAULT_LOG_FILE)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    # Request-level noise from the HTTP stack hides the migration log
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _validate_pass_path(pass_path: str) -> None:
    """Validate the pass path format."""
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise ValueError(msg)


def get_pass_value(pass_path: str) -> str:
    """Get a secret (token, session cookie) from the pass utility at the specified path."""
    _validate_pass_path(pass_path)

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", pass_path], capture_output=True, text=True, check=True  # noqa: S607
        )
    except FileNotFoundError as e:
        msg = "The 'pass' utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        if e.returncode == 1 and "not in the password store" in e.stderr.lower():
            msg = f"Pass path '{pass_path}' not found or invalid."
            raise InvalidPassPathError(msg) from e
        msg = (
            f"Failed to get value from pass at '{pass_path}'.\n"
            f"Error: {e.stderr.strip()}\n"
            f"Return code: {e.returncode}"
        )
        raise PassError(msg) from e

    return result.stdout.strip()
