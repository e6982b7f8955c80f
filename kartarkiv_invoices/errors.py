"""Error types raised by the invoice pipeline."""

from __future__ import annotations

from typing import Any, Dict, Optional

PROVIDER_CHANNELS = {"resend": "http", "smtp": "smtp"}


class InvoiceError(Exception):
    """Base class for invoice pipeline failures."""


class InvalidArgument(InvoiceError, ValueError):
    kind = "invalid-argument"


class RenderError(InvoiceError):
    """Raised when the PDF toolkit fails. Rendering is deterministic, so never retried."""


class DeliveryError(InvoiceError):
    """A failed email delivery, classified once where the transport error is caught.

    ``kind`` is the discriminant: ``http-transient``, ``http-terminal``,
    ``smtp-transient``, ``smtp-terminal`` or ``timeout``.
    """

    retryable = False
    outcome = "terminal"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        attempts: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.code = code
        self.status = status
        self.attempts = attempts

    @property
    def kind(self) -> str:
        channel = PROVIDER_CHANNELS.get(self.provider, self.provider)
        return f"{channel}-{self.outcome}"

    def __str__(self) -> str:
        message = super().__str__()
        if self.attempts:
            return f"{message} (attempts={self.attempts})"
        return message


class DeliveryTransientError(DeliveryError):
    retryable = True
    outcome = "transient"


class DeliveryTerminalError(DeliveryError):
    pass


class OverallTimeoutError(DeliveryError):
    """The overall delivery deadline ran out at ``context``.

    A timeout that cut a single attempt short is retryable while the deadline
    still leaves room for another attempt.
    """

    def __init__(
        self,
        context: str,
        *,
        provider: str = "",
        attempts: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(
            "Email delivery overall timeout exceeded",
            provider=provider,
            code="ETIMEDOUT",
            attempts=attempts,
        )
        self.retryable = retryable
        self.context = context
        self.details = dict(details or {})

    @property
    def kind(self) -> str:
        return "timeout"
