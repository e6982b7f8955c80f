"""Network-related helpers."""

from __future__ import annotations

import errno
import socket
from typing import Optional

RETRYABLE_ERRNOS = {
    errno.ETIMEDOUT,
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.EPIPE,
}
if hasattr(errno, "WSAECONNRESET"):
    RETRYABLE_ERRNOS.add(errno.WSAECONNRESET)  # pragma: no cover

ERRNO_CODES = {
    errno.ETIMEDOUT: "ETIMEDOUT",
    errno.ECONNRESET: "ECONNRESET",
    errno.ECONNREFUSED: "ECONNREFUSED",
    errno.EPIPE: "EPIPE",
}

EAI_AGAIN = getattr(socket, "EAI_AGAIN", None)


def error_code(exc: BaseException) -> Optional[str]:
    """Symbolic code for a socket-level failure, e.g. ``ECONNRESET``."""
    if isinstance(exc, socket.gaierror):
        if EAI_AGAIN is not None and exc.errno == EAI_AGAIN:
            return "EAI_AGAIN"
        return "EAI_FAIL"
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return "ETIMEDOUT"
    if isinstance(exc, OSError) and exc.errno in ERRNO_CODES:
        return ERRNO_CODES[exc.errno]
    return None


def is_transient_network_error(exc: BaseException) -> bool:
    if isinstance(exc, socket.gaierror):
        return EAI_AGAIN is not None and exc.errno == EAI_AGAIN
    if isinstance(exc, (BrokenPipeError, ConnectionError, TimeoutError, socket.timeout)):
        return True
    return isinstance(exc, OSError) and exc.errno in RETRYABLE_ERRNOS
