import unittest
from typing import List

from kartarkiv_invoices.config import EmailSettings
from kartarkiv_invoices.delivery import EmailDeliveryOrchestrator
from kartarkiv_invoices.errors import (
    DeliveryTerminalError,
    DeliveryTransientError,
    OverallTimeoutError,
)
from kartarkiv_invoices.transports import DeliveryReceipt


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class FakeTransport:
    def __init__(self, name: str, outcomes, clock=None, cost: float = 0.0) -> None:
        self.name = name
        self.outcomes = list(outcomes)
        self.clock = clock
        self.cost = cost
        self.budgets: List[float] = []
        self.messages = []

    async def send(self, message, budget: float) -> DeliveryReceipt:
        self.budgets.append(budget)
        self.messages.append(message)
        if self.clock is not None:
            self.clock.now += self.cost
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeDiagnostics:
    def __init__(self) -> None:
        self.scheduled = 0

    def schedule(self) -> None:
        self.scheduled += 1


def ok(provider: str) -> DeliveryReceipt:
    return DeliveryReceipt(accepted=["kasserer@example.no"], message_id=f"{provider}-id", provider=provider)


def unavailable() -> DeliveryTransientError:
    return DeliveryTransientError("Resend rejected email (503)", provider="resend", status=503)


def rejected() -> DeliveryTerminalError:
    return DeliveryTerminalError("Resend rejected email (422)", provider="resend", status=422)


class DeliveryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()

    def orchestrator(self, http=None, smtp=None, diagnostics=None, **settings) -> EmailDeliveryOrchestrator:
        values = dict(max_attempts=3, overall_timeout_ms=25000)
        values.update(settings)
        return EmailDeliveryOrchestrator(
            EmailSettings(**values),
            http_transport=http,
            smtp_transport=smtp,
            diagnostics=diagnostics,
            sleep=self.clock.sleep,
            clock=self.clock,
        )

    async def send(self, orchestrator: EmailDeliveryOrchestrator) -> DeliveryReceipt:
        return await orchestrator.send_invoice_email(
            to="kasserer@example.no",
            subject="Faktura #42 – Kartarkiv",
            text="Hei",
            pdf_bytes=b"%PDF-1.4",
            filename="invoice-42.pdf",
        )

    async def test_first_attempt_success(self) -> None:
        http = FakeTransport("resend", [ok("resend")])

        receipt = await self.send(self.orchestrator(http))

        self.assertEqual(receipt.provider, "resend")
        self.assertEqual(receipt.attempts, 1)
        self.assertEqual(http.budgets, [24.5])
        message = http.messages[0]
        self.assertEqual(message.sender, "Kartarkiv <noreply@kartarkiv.co>")
        self.assertEqual(message.attachments[0].filename, "invoice-42.pdf")

    async def test_retry_exhaustion_reports_attempts(self) -> None:
        http = FakeTransport("resend", [unavailable])

        with self.assertRaises(DeliveryTransientError) as ctx:
            await self.send(self.orchestrator(http))

        self.assertEqual(len(http.budgets), 3)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertIn("attempts=3", str(ctx.exception))
        self.assertEqual(self.clock.sleeps, [2.0, 4.0])

    async def test_success_after_retry(self) -> None:
        http = FakeTransport("resend", [unavailable, ok("resend")])

        receipt = await self.send(self.orchestrator(http))

        self.assertEqual(receipt.attempts, 2)
        self.assertEqual(self.clock.sleeps, [2.0])

    async def test_terminal_error_is_not_retried_without_smtp(self) -> None:
        http = FakeTransport("resend", [rejected])

        with self.assertRaises(DeliveryTerminalError) as ctx:
            await self.send(self.orchestrator(http))

        self.assertEqual(ctx.exception.kind, "http-terminal")
        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(len(http.budgets), 1)
        self.assertEqual(self.clock.sleeps, [])

    async def test_terminal_resend_error_falls_back_to_smtp_on_same_attempt(self) -> None:
        http = FakeTransport("resend", [rejected])
        smtp = FakeTransport("smtp", [ok("smtp")])

        receipt = await self.send(self.orchestrator(http, smtp))

        self.assertEqual(receipt.provider, "smtp")
        self.assertEqual(receipt.attempts, 1)
        self.assertEqual(len(http.budgets), 1)
        self.assertEqual(len(smtp.budgets), 1)
        self.assertEqual(self.clock.sleeps, [])

    async def test_fallback_sticks_for_remaining_attempts(self) -> None:
        http = FakeTransport("resend", [rejected])
        smtp_error = lambda: DeliveryTransientError("SMTP delivery failed", provider="smtp", code="ECONNRESET")
        smtp = FakeTransport("smtp", [smtp_error, ok("smtp")])

        receipt = await self.send(self.orchestrator(http, smtp))

        self.assertEqual(receipt.provider, "smtp")
        self.assertEqual(receipt.attempts, 2)
        self.assertEqual(len(http.budgets), 1)
        self.assertEqual(len(smtp.budgets), 2)

    async def test_smtp_only_schedules_diagnostics(self) -> None:
        diagnostics = FakeDiagnostics()
        smtp = FakeTransport("smtp", [ok("smtp")])

        receipt = await self.send(self.orchestrator(smtp=smtp, diagnostics=diagnostics))

        self.assertEqual(receipt.provider, "smtp")
        self.assertEqual(diagnostics.scheduled, 1)

    async def test_tiny_deadline_fails_before_attempting(self) -> None:
        http = FakeTransport("resend", [ok("resend")])

        with self.assertRaises(OverallTimeoutError) as ctx:
            await self.send(self.orchestrator(http, overall_timeout_ms=100))

        self.assertEqual(ctx.exception.context, "pre-attempt")
        self.assertEqual(ctx.exception.attempts, 0)
        self.assertEqual(http.budgets, [])

    async def test_slow_attempt_exhausts_deadline(self) -> None:
        timeout = lambda: OverallTimeoutError("resend-attempt", provider="resend", retryable=True)
        http = FakeTransport("resend", [timeout], clock=self.clock, cost=2.5)

        with self.assertRaises(OverallTimeoutError) as ctx:
            await self.send(self.orchestrator(http, overall_timeout_ms=3000, max_attempts=5))

        self.assertEqual(ctx.exception.kind, "timeout")
        self.assertEqual(ctx.exception.context, "retry-budget")
        self.assertEqual(ctx.exception.attempts, 1)
        self.assertEqual(http.budgets, [2.5])
        self.assertEqual(self.clock.sleeps, [])

    async def test_backoff_is_clamped_to_remaining_time(self) -> None:
        http = FakeTransport("resend", [unavailable, ok("resend")], clock=self.clock, cost=1.0)

        receipt = await self.send(self.orchestrator(http, overall_timeout_ms=4000))

        self.assertEqual(receipt.attempts, 2)
        self.assertEqual(self.clock.sleeps, [1.0])

    async def test_missing_transport_returns_mock_receipt(self) -> None:
        receipt = await self.send(self.orchestrator())

        self.assertTrue(receipt.preview)
        self.assertEqual(receipt.provider, "mock")
        self.assertEqual(receipt.message_id, "mock-email")


if __name__ == "__main__":
    unittest.main()
