"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def env_int(name: str, default: int, minimum: int = 1) -> int:
    """Whole-number setting; blank, malformed or below ``minimum`` keeps ``default``."""
    raw = env_str(name)
    if raw is None:
        return default
    digits = raw[1:] if raw[0] in "+-" else raw
    if not digits.isdecimal():
        return default
    value = int(raw)
    return default if value < minimum else value


SELLER_NAME = "Kartarkiv"
SELLER_ORG = "EOK"
SELLER_ADDRESS_LINES = ("Søaveien 23C", "0459 OSLO")
DEFAULT_SENDER = "Kartarkiv <noreply@kartarkiv.co>"
FALLBACK_ACCOUNT_NUMBER = "00000000000"
DUE_DAYS = 14
KID_BASE_WIDTH = 7


def resolve_account_number(explicit: Optional[str] = None) -> str:
    """Explicit override, then environment defaults, then the hard fallback."""
    if explicit and str(explicit).strip():
        return str(explicit).strip()
    return (
        env_str("INVOICE_ACCOUNT_NUMBER")
        or env_str("SB1_ACCOUNT_NUMBER")
        or FALLBACK_ACCOUNT_NUMBER
    )


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    user: str
    password: str
    connection_timeout_ms: int = 20000
    socket_timeout_ms: int = 45000
    dns_timeout_ms: int = 3000
    connect_check_timeout_ms: int = 3000

    @property
    def implicit_tls(self) -> bool:
        return self.port == 465

    @classmethod
    def from_env(cls) -> Optional["SmtpSettings"]:
        host = env_str("SMTP_HOST")
        port = env_str("SMTP_PORT")
        user = env_str("SMTP_USER")
        password = os.getenv("SMTP_PASS")
        if not (host and port and user and password):
            return None
        return cls(
            host=host,
            port=env_int("SMTP_PORT", 587),
            user=user,
            password=password,
            connection_timeout_ms=env_int("SMTP_CONNECTION_TIMEOUT", 20000),
            socket_timeout_ms=env_int("SMTP_SOCKET_TIMEOUT", 45000),
            dns_timeout_ms=env_int("SMTP_DNS_TIMEOUT", 3000),
            connect_check_timeout_ms=env_int("SMTP_CONNECT_CHECK_TIMEOUT", 3000),
        )


@dataclass(frozen=True)
class EmailSettings:
    sender: str = DEFAULT_SENDER
    max_attempts: int = 3
    overall_timeout_ms: int = 25000
    resend_api_key: Optional[str] = None
    resend_base_url: str = "https://api.resend.com"
    smtp: Optional[SmtpSettings] = None

    @classmethod
    def from_env(cls) -> "EmailSettings":
        return cls(
            sender=env_str("EMAIL_FROM", DEFAULT_SENDER) or DEFAULT_SENDER,
            max_attempts=env_int("INVOICE_EMAIL_MAX_ATTEMPTS", 3),
            overall_timeout_ms=env_int("SMTP_OVERALL_TIMEOUT", 25000),
            resend_api_key=env_str("RESEND_API_KEY"),
            resend_base_url=env_str("RESEND_BASE_URL", "https://api.resend.com")
            or "https://api.resend.com",
            smtp=SmtpSettings.from_env(),
        )


DATABASE_URL = env_str("DATABASE_URL")
BASE_URL = env_str("BASE_URL")
LOG_LEVEL = env_str("INVOICE_LOG_LEVEL", "INFO") or "INFO"
