"""Settings of the HTTP service, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final

_DEFAULT_CORS_ORIGINS: Final[str] = "http://localhost:3000"


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass(frozen=True)
class ServerSettings:
    """Process-wide settings. Credentials are never part of these; they come with each request."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    cors_origins: list[str] = field(default_factory=lambda: [_DEFAULT_CORS_ORIGINS])

    @classmethod
    def from_env(cls) -> ServerSettings:
        """Read HOST, PORT and CORS_ORIGINS (comma-separated)."""
        port = os.environ.get("PORT", "")
        try:
            port_number = int(port) if port else cls.port
        except ValueError as e:
            msg = f"Invalid PORT value: {port!r}"
            raise ValueError(msg) from e
        return cls(
            host=os.environ.get("HOST") or cls.host,
            port=port_number,
            cors_origins=_split_origins(os.environ.get("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS)),
        )
