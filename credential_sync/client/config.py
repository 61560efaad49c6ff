"""Configuration for the credentials backend HTTP client.

Environment variables:
    CREDENTIAL_SYNC_API_ENDPOINT   dashboard base URL (default http://localhost:8080)
    CREDENTIAL_SYNC_TOKEN          Bearer token sent on every request
    CREDENTIAL_SYNC_TIMEOUT        request timeout in seconds (default 30)
    CREDENTIAL_SYNC_LOG_LEVEL      root log level for the CLI (default WARNING)

Invalid values raise ValueError when Settings is built, not on first request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlsplit

_DEFAULT_ENDPOINT = "http://localhost:8080"
_DEFAULT_TIMEOUT = 30
_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


@dataclass(frozen=True)
class Settings:
    """Connection settings for the dashboard credentials API."""

    token: str = field(default="", repr=False)
    api_endpoint: str = _DEFAULT_ENDPOINT
    timeout: int = _DEFAULT_TIMEOUT
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        parts = urlsplit(self.api_endpoint)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(
                f"CREDENTIAL_SYNC_API_ENDPOINT must be an http(s) URL, got {self.api_endpoint!r}"
            )
        if parts.query or parts.fragment:
            raise ValueError(
                f"CREDENTIAL_SYNC_API_ENDPOINT must not carry a query or fragment: {self.api_endpoint!r}"
            )
        if self.timeout <= 0:
            raise ValueError(f"CREDENTIAL_SYNC_TIMEOUT must be positive, got {self.timeout}")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"CREDENTIAL_SYNC_LOG_LEVEL is not a log level: {self.log_level!r}")

    @classmethod
    def from_env(cls) -> Settings:
        raw_timeout = os.getenv("CREDENTIAL_SYNC_TIMEOUT", str(_DEFAULT_TIMEOUT))
        try:
            timeout = int(raw_timeout)
        except ValueError:
            raise ValueError(
                f"CREDENTIAL_SYNC_TIMEOUT must be an integer, got {raw_timeout!r}"
            ) from None
        return cls(
            token=os.getenv("CREDENTIAL_SYNC_TOKEN", ""),
            api_endpoint=os.getenv("CREDENTIAL_SYNC_API_ENDPOINT", _DEFAULT_ENDPOINT).rstrip("/"),
            timeout=timeout,
            log_level=os.getenv("CREDENTIAL_SYNC_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def base_url(self) -> str:
        """Root of the dashboard API; resource paths are appended to it."""
        return f"{self.api_endpoint}/api"

    @property
    def headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h
