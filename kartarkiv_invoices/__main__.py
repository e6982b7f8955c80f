"""Command line entrypoint: KID lookup, PDF preview and invoice sending."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from . import config
from .errors import InvoiceError
from .formatting import to_decimal


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kartarkiv-invoices")
    commands = parser.add_subparsers(dest="command", required=True)

    kid = commands.add_parser("kid", help="print the KID for an invoice id")
    kid.add_argument("invoice_id", type=int)

    preview = commands.add_parser("preview", help="render an invoice PDF to a file")
    preview.add_argument("invoice_id", type=int)
    preview.add_argument("amount", help="amount in NOK")
    preview.add_argument("--name")
    preview.add_argument("--email")
    preview.add_argument("--account")
    preview.add_argument("--output", "-o", default="invoice.pdf")

    send = commands.add_parser("send", help="render, email and mark an invoice as requested")
    send.add_argument("invoice_id", type=int)
    send.add_argument("email")
    send.add_argument("amount", help="amount in NOK")
    send.add_argument("--name")
    send.add_argument("--account")
    return parser


def _preview(args: argparse.Namespace) -> None:
    from .kid import kid_for_invoice
    from .models import InvoiceDocument
    from .rendering import render_invoice_pdf

    now = datetime.now()
    document = InvoiceDocument(
        invoice_id=args.invoice_id,
        amount_nok=_amount(args.amount),
        kid=kid_for_invoice(args.invoice_id),
        account_number=config.resolve_account_number(args.account),
        due_date=now + timedelta(days=config.DUE_DAYS),
        buyer_name=args.name,
        buyer_email=args.email,
        created_at=now,
        base_url=config.BASE_URL,
    )
    with open(args.output, "wb") as handle:
        handle.write(render_invoice_pdf(document))
    logging.getLogger(__name__).info("Wrote %s (kid=%s)", args.output, document.kid)


def _amount(raw: str) -> Decimal:
    return to_decimal(raw.replace(",", "."))


async def _send(args: argparse.Namespace) -> None:
    from .service import close_defaults, create_and_send_invoice

    try:
        result = await create_and_send_invoice(
            invoice_id=args.invoice_id,
            email=args.email,
            name=args.name,
            amount_nok=_amount(args.amount),
            account_number=args.account,
        )
    finally:
        await close_defaults()
    print(result["kid"])


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        if args.command == "kid":
            from .kid import kid_for_invoice

            print(kid_for_invoice(args.invoice_id))
        elif args.command == "preview":
            _preview(args)
        else:
            asyncio.run(_send(args))
    except InvoiceError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
