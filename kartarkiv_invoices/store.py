"""Persistence of invoice status after a successful send."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import Boolean, Column, DateTime, Integer, MetaData, String, Table, Text, func, update
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .errors import InvoiceError

logger = logging.getLogger(__name__)

INVOICE_REQUESTED = "invoice_requested"

metadata = MetaData()

club_invoices = Table(
    "club_invoices",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("status", String(32)),
    Column("invoice_requested_at", DateTime(timezone=True)),
    Column("kid", String(32)),
    Column("account_number", String(32)),
    Column("pdf_url", Text),
    Column("paid", Boolean, default=False),
    Column("updated_at", DateTime(timezone=True)),
)


class InvoiceNotFound(InvoiceError):
    pass


class InvoiceStore(Protocol):
    async def mark_invoice_requested(self, invoice_id: int, kid: str, account_number: str) -> None:
        ...


def async_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class SqlInvoiceStore:
    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, url: Optional[str]) -> "SqlInvoiceStore":
        if not url:
            raise InvoiceError("DATABASE_URL is not configured")
        return cls(create_async_engine(async_database_url(url), pool_pre_ping=True))

    async def mark_invoice_requested(self, invoice_id: int, kid: str, account_number: str) -> None:
        statement = (
            update(club_invoices)
            .where(club_invoices.c.id == invoice_id)
            .values(
                status=INVOICE_REQUESTED,
                invoice_requested_at=func.now(),
                kid=kid,
                account_number=account_number,
                paid=func.coalesce(club_invoices.c.paid, False),
                updated_at=func.now(),
            )
        )
        async with self.engine.begin() as conn:
            result = await conn.execute(statement)
            updated = result.rowcount
        if updated == 0:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found")
        logger.info("Invoice %s marked as %s (kid=%s)", invoice_id, INVOICE_REQUESTED, kid)

    async def dispose(self) -> None:
        await self.engine.dispose()
