"""
Domain exceptions for content generation and delivery.

The scheduled pass catches these per user so one failure never aborts
the batch; the manual path lets them reach the HTTP layer.
"""


class DeliveryError(Exception):
    """Base exception for every delivery-engine failure."""


class ValidationError(DeliveryError):
    """
    Raised when an operation's input is incomplete or malformed.

    Example: a manual send for a user with no stored industry and none in
    the request.
    """


class GenerationError(DeliveryError):
    """
    Raised when the text-generation provider fails.

    Covers provider exceptions, malformed payloads and empty results. The
    upstream message is kept so callers can surface it.
    """


class TransportError(DeliveryError):
    """Raised when the mail transport rejects or fails to deliver a message."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StoreError(DeliveryError):
    """Raised when a preference or history read/write fails."""
