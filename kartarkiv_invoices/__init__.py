"""Public package API for Kartarkiv invoices."""

from __future__ import annotations

from typing import Any, Dict


def generate_kid(numeric_base: Any) -> str:
    from .kid import generate_kid as _generate_kid

    return _generate_kid(numeric_base)


def render_invoice_pdf(document: Any) -> bytes:
    from .rendering import render_invoice_pdf as _render_invoice_pdf

    return _render_invoice_pdf(document)


async def create_and_send_invoice(**invoice: Any) -> Dict[str, str]:
    from .service import create_and_send_invoice as _create_and_send_invoice

    return await _create_and_send_invoice(**invoice)


__all__ = ["create_and_send_invoice", "generate_kid", "render_invoice_pdf"]
