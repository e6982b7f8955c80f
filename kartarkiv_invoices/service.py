"""Invoice send pipeline: KID, PDF, email, then status update."""

from __future__ import annotations

import html
import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from . import config
from .config import SELLER_NAME, SELLER_ORG, resolve_account_number
from .delivery import EmailDeliveryOrchestrator
from .formatting import fmt_date, fmt_nok
from .kid import kid_for_invoice
from .models import Amount, InvoiceDocument, InvoiceRequest
from .rendering import render_invoice_pdf
from .store import InvoiceStore, SqlInvoiceStore
from .transports import DeliveryReceipt

logger = logging.getLogger(__name__)


def invoice_subject(invoice_id: int) -> str:
    return f"Faktura #{invoice_id} – {SELLER_NAME}"


def build_invoice_bodies(
    *,
    invoice_id: int,
    name: Optional[str],
    amount_nok: Amount,
    account_number: str,
    kid: str,
    due_date: Union[date, datetime],
) -> Tuple[str, str]:
    """Plain text and HTML versions of the invoice email."""
    paragraphs = [
        f"Hei {name or ''}".strip(),
        f"Vedlagt finner du faktura #{invoice_id} på {fmt_nok(amount_nok)}.",
        f"Betal til konto {account_number} og oppgi KID {kid} innen {fmt_date(due_date)}.",
        "Takk!",
    ]
    text = "\n\n".join(paragraphs)
    body = "".join(f"<p>{html.escape(paragraph)}</p>" for paragraph in paragraphs)
    return text, f"<!DOCTYPE html><html><body>{body}</body></html>"


class InvoiceService:
    def __init__(
        self,
        store: InvoiceStore,
        mailer: Optional[EmailDeliveryOrchestrator] = None,
        *,
        base_url: Optional[str] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.mailer = mailer or default_mailer()
        self.base_url = base_url if base_url is not None else config.BASE_URL
        self._now = now

    async def create_and_send_invoice(
        self,
        *,
        invoice_id: int,
        email: str,
        name: Optional[str],
        amount_nok: Amount,
        line_items: Optional[Iterable[Any]] = None,
        account_number: Optional[str] = None,
        due_date: Optional[Union[date, datetime]] = None,
    ) -> Dict[str, str]:
        request = InvoiceRequest.build(
            invoice_id=invoice_id,
            email=email,
            name=name,
            amount_nok=amount_nok,
            line_items=line_items,
            account_number=account_number,
            due_date=due_date,
        )
        kid = kid_for_invoice(request.invoice_id)
        account = resolve_account_number(request.account_number)
        created_at = self._now()
        due = request.resolved_due_date(created_at)

        try:
            pdf_bytes = render_invoice_pdf(
                InvoiceDocument(
                    invoice_id=request.invoice_id,
                    amount_nok=request.amount_nok,
                    kid=kid,
                    account_number=account,
                    due_date=due,
                    buyer_name=request.name,
                    buyer_email=request.email,
                    created_at=created_at,
                    line_items=request.line_items,
                    seller_name=SELLER_NAME,
                    seller_org=SELLER_ORG,
                    base_url=self.base_url,
                )
            )
            text, html_body = build_invoice_bodies(
                invoice_id=request.invoice_id,
                name=request.name,
                amount_nok=request.amount_nok,
                account_number=account,
                kid=kid,
                due_date=due,
            )
            receipt = await self.mailer.send_invoice_email(
                to=request.email,
                subject=invoice_subject(request.invoice_id),
                text=text,
                html=html_body,
                pdf_bytes=pdf_bytes,
                filename=f"invoice-{request.invoice_id}.pdf",
            )
            # Only a delivered invoice may be marked as requested.
            await self.store.mark_invoice_requested(request.invoice_id, kid, account)
        except Exception:
            logger.exception("Failed to create and send invoice %s to %s", request.invoice_id, request.email)
            raise

        logger.info(
            "Invoice %s sent to %s via %s (kid=%s, message_id=%s)",
            request.invoice_id,
            request.email,
            receipt.provider,
            kid,
            receipt.message_id,
        )
        return {"kid": kid}

    async def send_receipt_email(self, *, to: str, invoice_id: int) -> DeliveryReceipt:
        subject = f"Betaling registrert – Faktura #{invoice_id}"
        text = f"Betalingen for faktura #{invoice_id} er registrert som mottatt. Takk for innbetalingen."
        return await self.mailer.send_invoice_email(
            to=to,
            subject=subject,
            text=text,
            html=f"<p>{html.escape(text)}</p>",
        )


@lru_cache(maxsize=None)
def default_mailer() -> EmailDeliveryOrchestrator:
    """Process-wide orchestrator, so SMTP diagnostics run once per process."""
    return EmailDeliveryOrchestrator()


@lru_cache(maxsize=None)
def default_store() -> SqlInvoiceStore:
    return SqlInvoiceStore.from_url(config.DATABASE_URL)


async def close_defaults() -> None:
    if default_store.cache_info().currsize:
        await default_store().dispose()
    default_store.cache_clear()
    default_mailer.cache_clear()


async def create_and_send_invoice(
    *,
    store: Optional[InvoiceStore] = None,
    mailer: Optional[EmailDeliveryOrchestrator] = None,
    **invoice: Any,
) -> Dict[str, str]:
    service = InvoiceService(store or default_store(), mailer or default_mailer())
    return await service.create_and_send_invoice(**invoice)
