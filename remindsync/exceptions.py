"""
Errors raised by the scheduling and synchronisation core.
"""

from __future__ import annotations


class RemindSyncError(Exception):
    """Base class for all RemindSync errors."""


class ValidationError(RemindSyncError):
    """Raised when an entity or a parameter is invalid, e.g. a reminder with an empty title."""


class StoreError(RemindSyncError):
    """Raised when the local SQLite store cannot be read or written."""


class TransportError(RemindSyncError):
    """Raised when the remote API could not be reached (network failure, timeout)."""


class AuthError(RemindSyncError):
    """Raised when the credential is invalid, expired, or could not be refreshed. The user must sign in again."""


class RemoteError(RemindSyncError):
    """Raised when the remote API answers with an error status."""

    def __init__(self, status_code: int, message: str, code: str | None = None, field: str | None = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.field = field
        super().__init__("Remote API request failed ({}): {}".format(status_code, message))


class UnauthorizedResponse(RemoteError):
    """Raised by a request when the remote API answers 401. Consumed by the token refresh gate."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(401, message, code="unauthorized")


class AlertIssuanceError(RemindSyncError):
    """Raised when the alert collaborator rejects a single alert request."""
