"""Email transports: Resend over HTTP and plain SMTP.

Each transport performs exactly one delivery attempt within a time budget and
classifies any failure into a ``DeliveryError`` at the point it is caught.
Network resources are opened and closed inside the attempt.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid, parseaddr
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import httpx

from .config import SmtpSettings
from .errors import DeliveryError, DeliveryTerminalError, DeliveryTransientError, OverallTimeoutError
from .net import error_code, is_transient_network_error

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUSES = {408, 409, 425, 429}

RETRYABLE_SMTP_CODES = {
    "ETIMEDOUT",
    "ESOCKET",
    "ECONNECTION",
    "ECONNRESET",
    "ECONNREFUSED",
    "EPIPE",
    "EAI_AGAIN",
}
RETRYABLE_SMTP_PHASES = {"CONN", "EHLO", "HELO", "STARTTLS"}


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class OutgoingEmail:
    to: Tuple[str, ...]
    sender: str
    subject: str
    text: str
    html: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()

    def to_mime(self) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(self.to)
        message["Subject"] = self.subject
        domain = parseaddr(self.sender)[1].rpartition("@")[2] or None
        message["Message-ID"] = make_msgid(domain=domain)
        message.set_content(self.text)
        if self.html:
            message.add_alternative(self.html, subtype="html")
        for attachment in self.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            message.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return message

    def to_resend_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": list(self.to),
            "subject": self.subject,
            "text": self.text,
        }
        if self.html:
            payload["html"] = self.html
        if self.attachments:
            payload["attachments"] = [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                    "content_type": attachment.content_type,
                }
                for attachment in self.attachments
            ]
        return payload


@dataclass(frozen=True)
class DeliveryReceipt:
    accepted: List[str]
    message_id: str
    provider: str
    attempts: int = 1
    preview: bool = False
    rejected: List[str] = field(default_factory=list)


class EmailTransport(Protocol):
    name: str

    async def send(self, message: OutgoingEmail, budget: float) -> DeliveryReceipt:
        ...


def is_timeout_message(message: Optional[str]) -> bool:
    text = str(message or "").lower()
    return "timeout" in text or "timed out" in text


def is_retryable_http_failure(
    status: Optional[int],
    message: Optional[str] = None,
    retryable: Optional[bool] = None,
) -> bool:
    if retryable is not None:
        return retryable
    if status is not None and (status >= 500 or status in RETRYABLE_HTTP_STATUSES):
        return True
    return is_timeout_message(message)


def is_retryable_smtp_failure(code: Optional[str], phase: Optional[str], message: Optional[str]) -> bool:
    if code in RETRYABLE_SMTP_CODES:
        return True
    if phase in RETRYABLE_SMTP_PHASES:
        return True
    return is_timeout_message(message)


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class ResendTransport:
    name = "resend"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.resend.com",
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http_transport = http_transport

    async def send(self, message: OutgoingEmail, budget: float) -> DeliveryReceipt:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=budget,
                transport=self._http_transport,
            ) as client:
                response = await asyncio.wait_for(
                    client.post("/emails", json=message.to_resend_payload(), headers=headers),
                    timeout=budget,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise OverallTimeoutError(
                "resend-attempt", provider=self.name, details={"budget": budget}, retryable=True
            ) from exc
        except httpx.HTTPError as exc:
            raise DeliveryTransientError(
                f"Resend request failed: {exc}",
                provider=self.name,
                code=type(exc).__name__,
            ) from exc

        if response.is_error:
            raise self._classify_response(response)

        data = _json_or_empty(response)
        return DeliveryReceipt(
            accepted=list(message.to),
            message_id=str(data.get("id") or ""),
            provider=self.name,
        )

    def _classify_response(self, response: httpx.Response) -> DeliveryError:
        body = _json_or_empty(response)
        message = str(body.get("message") or response.text or response.reason_phrase)
        flag = body.get("retryable")
        retryable = is_retryable_http_failure(
            response.status_code,
            message,
            flag if isinstance(flag, bool) else None,
        )
        error_cls = DeliveryTransientError if retryable else DeliveryTerminalError
        return error_cls(
            f"Resend rejected email ({response.status_code}): {message}",
            provider=self.name,
            status=response.status_code,
            code=str(body.get("name") or "") or None,
        )


SmtpFactory = Callable[[SmtpSettings], smtplib.SMTP]


def open_smtp_connection(settings: SmtpSettings) -> smtplib.SMTP:
    # The connection timeout also bounds reading the server greeting.
    timeout = settings.connection_timeout_ms / 1000.0
    if settings.implicit_tls:
        return smtplib.SMTP_SSL(
            settings.host,
            settings.port,
            timeout=timeout,
            context=ssl.create_default_context(),
        )
    return smtplib.SMTP(settings.host, settings.port, timeout=timeout)


def classify_smtp_error(exc: BaseException, phase: Optional[str]) -> DeliveryError:
    code = error_code(exc)
    if code is None and isinstance(exc, smtplib.SMTPServerDisconnected):
        code = "ECONNECTION"
    if isinstance(exc, smtplib.SMTPConnectError):
        phase = "CONN"
    elif isinstance(exc, smtplib.SMTPHeloError):
        phase = "EHLO"
    message = str(exc) or type(exc).__name__
    retryable = is_transient_network_error(exc) or is_retryable_smtp_failure(code, phase, message)
    error_cls = DeliveryTransientError if retryable else DeliveryTerminalError
    return error_cls(
        f"SMTP delivery failed during {phase or 'send'}: {message}",
        provider="smtp",
        code=code,
        status=getattr(exc, "smtp_code", None),
    )


class _SmtpSession:
    """One SMTP conversation, closable from another thread to cut it short."""

    def __init__(self, settings: SmtpSettings, factory: SmtpFactory) -> None:
        self.settings = settings
        self.phase = "CONN"
        self._factory = factory
        self._client: Optional[smtplib.SMTP] = None
        self._closed = False

    def deliver(self, message: EmailMessage) -> Dict[str, Tuple[int, bytes]]:
        settings = self.settings
        try:
            client = self._factory(settings)
            self._client = client
            if self._closed:
                client.close()
                raise smtplib.SMTPServerDisconnected("connection closed before greeting")
            sock = getattr(client, "sock", None)
            if sock is not None:
                sock.settimeout(settings.socket_timeout_ms / 1000.0)

            self.phase = "EHLO"
            client.ehlo()
            if not settings.implicit_tls and client.has_extn("starttls"):
                self.phase = "STARTTLS"
                client.starttls(context=ssl.create_default_context())
                self.phase = "EHLO"
                client.ehlo()

            self.phase = "AUTH"
            client.login(settings.user, settings.password)
            self.phase = "DATA"
            refused = client.send_message(message)
            self.phase = "QUIT"
            client.quit()
            return refused
        except (smtplib.SMTPException, OSError) as exc:
            raise classify_smtp_error(exc, self.phase) from exc

    def close(self) -> None:
        self._closed = True
        client = self._client
        if client is None:
            return
        try:
            client.close()
        except OSError as exc:
            logger.warning("Failed to close SMTP connection cleanly: %s", exc)


class SmtpTransport:
    name = "smtp"

    def __init__(self, settings: SmtpSettings, *, factory: SmtpFactory = open_smtp_connection) -> None:
        self._settings = settings
        self._factory = factory

    async def send(self, message: OutgoingEmail, budget: float) -> DeliveryReceipt:
        mime = message.to_mime()
        session = _SmtpSession(self._settings, self._factory)
        try:
            refused = await asyncio.wait_for(asyncio.to_thread(session.deliver, mime), timeout=budget)
        except asyncio.TimeoutError as exc:
            # smtplib cannot be interrupted mid-command; closing the socket ends it.
            raise OverallTimeoutError(
                "smtp-attempt",
                provider=self.name,
                details={"budget": budget, "phase": session.phase},
                retryable=True,
            ) from exc
        finally:
            session.close()

        rejected = [address for address in message.to if address in (refused or {})]
        return DeliveryReceipt(
            accepted=[address for address in message.to if address not in rejected],
            message_id=str(mime["Message-ID"]),
            provider=self.name,
            rejected=rejected,
        )
