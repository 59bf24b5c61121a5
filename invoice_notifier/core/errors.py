"""Notifier error hierarchy."""

from typing import Any


class NotifierError(Exception):
    """Base exception for notifier errors."""

    code = "NOTIFIER_INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details
        super().__init__(message)


class PostSettledInvoiceError(NotifierError):
    """A required argument to post a settled invoice is missing.

    The reason is a stable token meant for logs and alerts, one per field.
    """

    code = "NOTIFIER_INVALID_REQUEST"
    status_code = 400

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(reason, details={**(details or {}), "reason": reason})
        self.reason = reason

    def as_tuple(self) -> tuple[int, str]:
        """Return the (status code, reason token) pair."""
        return self.status_code, self.reason


class ChannelLookupError(NotifierError):
    """The node does not know the requested channel."""

    code = "NOTIFIER_CHANNEL_NOT_FOUND"
    status_code = 404

    def __init__(self, channel_id: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Channel {channel_id} not found",
            details={**(details or {}), "channel_id": channel_id},
        )
        self.channel_id = channel_id


class NodeApiError(NotifierError):
    """Node REST API failure."""

    code = "NOTIFIER_NODE_API_FAILURE"
    status_code = 502


class ComposeError(NotifierError):
    """A message composer produced an invalid descriptor."""

    code = "NOTIFIER_COMPOSE_ERROR"
    status_code = 500


class DispatchError(NotifierError):
    """Sending a notification or quiz failed."""

    code = "NOTIFIER_DISPATCH_FAILURE"
    status_code = 502


ERROR_STATUS_MAP: dict[type[NotifierError], int] = {
    PostSettledInvoiceError: 400,
    ChannelLookupError: 404,
    NodeApiError: 502,
    ComposeError: 500,
    DispatchError: 502,
}


def get_status_code(error: NotifierError) -> int:
    """Get HTTP-like status code for error."""
    return ERROR_STATUS_MAP.get(type(error), 500)
