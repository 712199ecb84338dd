"""
Error taxonomy for the Retail Assistant.

Checkout failures are plain values (one model per failure kind) so callers
can decide between retrying, aborting and surfacing the problem to the user.
Chat-completion failures are an exception because the chat path absorbs them
into a fallback reply.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class ModelInvocationFailed(Exception):
    """The chat-completion call failed (auth, rate limit, bad request, network)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class CheckoutError(BaseModel):
    """Base for typed checkout failures."""
    model_config = ConfigDict(frozen=True)

    message: str = ""

    @property
    def retryable(self) -> bool:
        return False


class ValidationFailed(CheckoutError):
    """The order service rejected the input (HTTP 400). Do not retry unchanged."""
    kind: Literal["validation_failed"] = "validation_failed"
    details: str = ""


class UpstreamUnavailable(CheckoutError):
    """The order service reported overload or maintenance (HTTP 503)."""
    kind: Literal["upstream_unavailable"] = "upstream_unavailable"

    @property
    def retryable(self) -> bool:
        return True


class UpstreamError(CheckoutError):
    """Unexpected status, or a success response whose body could not be read."""
    kind: Literal["upstream_error"] = "upstream_error"
    status: int
    body: str = ""


class TransportError(CheckoutError):
    """No response was received (connection refused, DNS, reset)."""
    kind: Literal["transport_error"] = "transport_error"

    @property
    def retryable(self) -> bool:
        return True


class Timeout(CheckoutError):
    """The deadline expired before the order service answered."""
    kind: Literal["timeout"] = "timeout"

    @property
    def retryable(self) -> bool:
        return True
