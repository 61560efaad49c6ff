"""Error taxonomy for credential synchronisation.

The core reacts to exactly two failure kinds and treats them identically:

  TransportError  — the backend was unreachable or rejected the request
                    (connection failure, timeout, 4xx/5xx response).
  ValidationError — the backend answered, but the body could not be decoded
                    or did not have the expected shape.

Neither is retried here. ``CredentialService.fetch_all`` resets its store
before re-raising; create/update/delete re-raise with the store untouched.
"""

from __future__ import annotations


class CredentialSyncError(Exception):
    """Base class for all errors raised by credential_sync."""


class TransportError(CredentialSyncError):
    """Backend unreachable, timed out, or answered with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ValidationError(CredentialSyncError):
    """Backend response body is malformed or has an unexpected shape."""
