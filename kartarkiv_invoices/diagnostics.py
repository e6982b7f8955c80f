"""Advisory SMTP preflight: DNS resolution and a raw TCP connect check, logged only."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from dataclasses import dataclass, field
from typing import List, Optional

from .config import SmtpSettings

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticsReport:
    host: str
    port: int
    addresses: List[str] = field(default_factory=list)
    dns_error: Optional[str] = None
    tcp_connect: str = "skipped"


class SmtpDiagnostics:
    """Runs at most once per instance; later calls share the first run's task."""

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings
        self._task: Optional["asyncio.Task[Optional[DiagnosticsReport]]"] = None

    def schedule(self) -> "asyncio.Task[Optional[DiagnosticsReport]]":
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run_logged())
        return self._task

    async def _run_logged(self) -> Optional[DiagnosticsReport]:
        # nobody awaits the scheduled task, so nothing may escape it
        try:
            return await self.run()
        except Exception:
            logger.warning("SMTP diagnostics for %s failed", self._settings.host, exc_info=True)
            return None

    async def run(self) -> DiagnosticsReport:
        settings = self._settings
        report = DiagnosticsReport(host=settings.host, port=settings.port)
        await self._resolve(report)
        await self._check_tcp_connect(report)
        return report

    async def _resolve(self, report: DiagnosticsReport) -> None:
        timeout = self._settings.dns_timeout_ms / 1000.0
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(report.host, report.port, type=socket.SOCK_STREAM),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            report.dns_error = "timeout"
            logger.warning("SMTP DNS lookup for %s timed out after %.0fms", report.host, timeout * 1000)
            return
        except OSError as exc:
            report.dns_error = str(exc)
            logger.warning("SMTP DNS lookup for %s failed: %s", report.host, exc)
            return
        report.addresses = sorted({info[4][0] for info in infos})
        logger.info("SMTP host %s resolved to %s", report.host, ", ".join(report.addresses))

    async def _check_tcp_connect(self, report: DiagnosticsReport) -> None:
        timeout = self._settings.connect_check_timeout_ms / 1000.0
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(report.host, report.port),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            report.tcp_connect = "timeout"
            logger.warning(
                "SMTP TCP connect to %s:%d timed out after %.0fms", report.host, report.port, timeout * 1000
            )
            return
        except OSError as exc:
            report.tcp_connect = f"failed: {exc}"
            logger.warning("SMTP TCP connect to %s:%d failed: %s", report.host, report.port, exc)
            return

        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        report.tcp_connect = "ok"
        logger.info("SMTP TCP connect to %s:%d succeeded", report.host, report.port)
