"""
Exception hierarchy for the GitHub push sync service.

Only the signature check halts a request by design. Transfer and
filesystem failures are raised per change and caught by the sync loop,
which logs them and moves on to the next change.
"""

from typing import Optional


SIGNATURE_MISMATCH_MESSAGE = (
    "Correct signature was not provided. "
    "Check the SECRET in your repository Webhook settings."
)


class PushSyncError(Exception):
    """Base class for all push sync errors."""


class PayloadParseError(PushSyncError):
    """Raised when the webhook body is not valid JSON or not a push payload."""

    def __init__(self, message: str, raw_length: Optional[int] = None):
        self.raw_length = raw_length
        super().__init__(message)


class RequestHalted(PushSyncError):
    """
    Raised to stop processing of the current delivery.

    The HTTP layer turns this into a plain-text response carrying
    ``status_code`` and ``message``; nothing after the raise executes.
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class TransferError(PushSyncError):
    """Raised when a file could not be downloaded from the raw content endpoint."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Download of {url} failed: {reason}")


class SyncConfigurationError(PushSyncError):
    """Raised when the service is asked to sync without the settings it needs."""
