"""Email delivery with provider selection, bounded retries and an overall deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Awaitable, Callable, Optional, Sequence, Union

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from .backoff import SAFETY_BUFFER, attempt_budget, next_delay
from .config import EmailSettings
from .diagnostics import SmtpDiagnostics
from .errors import DeliveryError, DeliveryTerminalError, OverallTimeoutError
from .transports import (
    Attachment,
    DeliveryReceipt,
    EmailTransport,
    OutgoingEmail,
    ResendTransport,
    SmtpTransport,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class _Route:
    transport: Optional[EmailTransport]


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, DeliveryError) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Attempt %d failed (%s). Retrying in %.0fms",
        retry_state.attempt_number,
        getattr(exc, "code", None) or exc,
        delay * 1000,
    )


class EmailDeliveryOrchestrator:
    """Delivers one email per call, preferring Resend and falling back to SMTP.

    Provider choice: Resend when an API key is configured, else SMTP, else a
    logged mock success. A permanent Resend failure switches the rest of the
    call to SMTP without spending an attempt. Every wait and attempt budget is
    derived from a deadline fixed when the call starts.
    """

    def __init__(
        self,
        settings: Optional[EmailSettings] = None,
        *,
        http_transport: Optional[EmailTransport] = None,
        smtp_transport: Optional[EmailTransport] = None,
        diagnostics: Optional[SmtpDiagnostics] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or EmailSettings.from_env()
        if http_transport is None and self.settings.resend_api_key:
            http_transport = ResendTransport(
                self.settings.resend_api_key,
                base_url=self.settings.resend_base_url,
            )
        if self.settings.smtp is not None:
            if smtp_transport is None:
                smtp_transport = SmtpTransport(self.settings.smtp)
            if diagnostics is None:
                diagnostics = SmtpDiagnostics(self.settings.smtp)
        self._http = http_transport
        self._smtp = smtp_transport
        self._diagnostics = diagnostics
        self._sleep = sleep
        self._clock = clock

    async def send_invoice_email(
        self,
        *,
        to: Union[str, Sequence[str]],
        subject: str,
        text: str,
        html: Optional[str] = None,
        pdf_bytes: Optional[bytes] = None,
        filename: str = "invoice.pdf",
        sender: Optional[str] = None,
    ) -> DeliveryReceipt:
        recipients = (to,) if isinstance(to, str) else tuple(to)
        attachments = (Attachment(filename=filename, content=pdf_bytes),) if pdf_bytes else ()
        message = OutgoingEmail(
            to=recipients,
            sender=sender or self.settings.sender,
            subject=subject,
            text=text,
            html=html,
            attachments=attachments,
        )
        return await self.deliver(message)

    async def deliver(self, message: OutgoingEmail) -> DeliveryReceipt:
        max_attempts = max(1, self.settings.max_attempts)
        overall = self.settings.overall_timeout_ms / 1000.0
        deadline = self._clock() + overall
        route = _Route(self._http or self._smtp)

        if route.transport is None:
            logger.warning("Email transport not configured; pretending to send email to %s", ", ".join(message.to))
            return DeliveryReceipt(
                accepted=list(message.to),
                message_id="mock-email",
                provider="mock",
                preview=True,
            )

        logger.info(
            "Starting email send. to=%s subject=%r provider=%s attempts=%d overall_timeout_ms=%.0f",
            ", ".join(message.to),
            message.subject,
            route.transport.name,
            max_attempts,
            overall * 1000,
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=partial(self._retry_delay, deadline, max_attempts),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        attempt_number = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    receipt = await self._attempt(message, route, attempt_number, max_attempts, deadline)
        except DeliveryError as exc:
            if exc.attempts is None:
                exc.attempts = attempt_number
            logger.error(
                "Email delivery to %s failed. kind=%s attempts=%s: %s",
                ", ".join(message.to),
                exc.kind,
                exc.attempts,
                exc,
            )
            raise

        if attempt_number > 1:
            logger.info("Email send succeeded on retry attempt %d via %s", attempt_number, receipt.provider)
        return replace(receipt, attempts=attempt_number)

    def _retry_delay(self, deadline: float, max_attempts: int, retry_state: RetryCallState) -> float:
        if retry_state.attempt_number >= max_attempts:
            # no further attempt follows; let the stop condition re-raise the last error
            return 0.0
        remaining = deadline - self._clock()
        delay = next_delay(retry_state.attempt_number, remaining)
        if delay is None:
            logger.error("Not enough time remaining for another attempt. remaining_ms=%.0f", remaining * 1000)
            raise OverallTimeoutError(
                "retry-budget",
                provider=self._provider_name(retry_state),
                attempts=retry_state.attempt_number,
                details={"remaining": remaining},
            )
        return delay

    @staticmethod
    def _provider_name(retry_state: RetryCallState) -> str:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return getattr(exc, "provider", "")

    async def _attempt(
        self,
        message: OutgoingEmail,
        route: _Route,
        attempt: int,
        max_attempts: int,
        deadline: float,
    ) -> DeliveryReceipt:
        transport = route.transport
        remaining = deadline - self._clock()
        if remaining <= SAFETY_BUFFER:
            logger.error("Overall timeout hit before attempt %d. remaining_ms=%.0f", attempt, remaining * 1000)
            raise OverallTimeoutError(
                "pre-attempt",
                provider=transport.name,
                attempts=attempt - 1,
                details={"remaining": remaining},
            )

        if transport is self._smtp and self._diagnostics is not None:
            self._diagnostics.schedule()

        budget = attempt_budget(remaining)
        logger.info(
            "Attempt %d/%d via %s starting. remaining_ms=%.0f budget_ms=%.0f",
            attempt,
            max_attempts,
            transport.name,
            remaining * 1000,
            budget * 1000,
        )
        try:
            return await transport.send(message, budget)
        except DeliveryError as exc:
            logger.error(
                "Attempt %d via %s failed. kind=%s code=%s: %s",
                attempt,
                transport.name,
                exc.kind,
                exc.code,
                exc,
            )
            if not isinstance(exc, DeliveryTerminalError) or self._smtp is None or transport is self._smtp:
                raise

        logger.warning("Falling back to SMTP for the remaining attempts")
        route.transport = self._smtp
        return await self._attempt(message, route, attempt, max_attempts, deadline)
