"""Invoice PDF rendering: header, item table, payment panel and giro slip on one A4 page."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.errors import FPDFException

from .config import SELLER_ADDRESS_LINES, env_str
from .errors import RenderError
from .fonts import FontManager
from .formatting import DASH, fmt_date, fmt_nok, fmt_qty, wrap_text
from .models import InvoiceDocument, LineItem
from .pdf_constants import (
    CELL_PAD,
    COLOR_BRAND,
    COLOR_BRAND_DARK,
    COLOR_BRAND_SOFT,
    COLOR_GIRO,
    COLOR_SLATE,
    COLOR_TABLE_BORDER,
    COLOR_TEXT,
    COLOR_WHITE,
    COLUMN_SHARES,
    CONTENT_LIMIT_Y,
    CONTENT_W,
    DEFAULT_DESCRIPTION,
    FONT_SIZE_BODY,
    FONT_SIZE_BRAND,
    FONT_SIZE_HEADING,
    FONT_SIZE_NORMAL,
    FONT_SIZE_SMALL,
    FONT_SIZE_TITLE,
    HEADER_H,
    HEADER_STRIP_H,
    HEADING_GAP,
    INFO_BOTTOM_PAD,
    INFO_FIRST_LINE_Y,
    INFO_LINE_H,
    INFO_TOP_GAP,
    INVOICE_NUMBER_OFFSET,
    INVOICE_TITLE_Y,
    KID_BOX_GAP,
    KID_BOX_H,
    KID_BOX_W,
    KID_MIN_BOXES,
    LOGO_H,
    LOGO_Y,
    MARGIN,
    META_FIRST_LABEL_Y,
    META_H,
    META_PAD_X,
    META_ROW_H,
    META_TOP,
    META_VALUE_OFFSET,
    META_W,
    META_X,
    PAGE_FORMAT,
    PAGE_W,
    PLACEHOLDER_DESCRIPTION,
    RECIPIENT_AFTER_GAP,
    RECIPIENT_H,
    RECIPIENT_H_WITH_EMAIL,
    RECIPIENT_TOP_GAP,
    ROW_LINE_H,
    ROW_MIN_H,
    ROW_PAD,
    SELLER_NAME_Y,
    SELLER_ORG_Y,
    SLIP_FIELD_H,
    SLIP_FIELD_OFFSET,
    SLIP_FIRST_LABEL_Y,
    SLIP_H,
    SLIP_HEADER_H,
    SLIP_LEFT_W,
    SLIP_PAD_X,
    SLIP_ROW_SPACING,
    SLIP_Y,
    TABLE_HEADER_H,
    TABLE_TOTAL_H,
)

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class InvoiceRow:
    description_lines: List[str]
    quantity: int
    unit_text: str
    total_text: str
    height: float


class InvoiceRenderer:
    def __init__(self, document: InvoiceDocument) -> None:
        self.doc = document
        self.pdf = FPDF(orientation="portrait", unit="pt", format=PAGE_FORMAT)
        self.pdf.set_auto_page_break(False)
        self.pdf.set_title(f"Faktura #{document.invoice_id}")
        self.pdf.set_creator(document.seller_name)
        self.pdf.add_page()

        self.fonts = FontManager(self.pdf)
        self.widths = [CONTENT_W * share for share in COLUMN_SHARES]
        self.columns = [MARGIN + sum(self.widths[:i]) for i in range(len(self.widths))]
        self.rows = self._prepare_rows(document.line_items)
        self.payment_panel_drawn = False
        self.table_bottom = 0.0
        self.y = HEADER_H + RECIPIENT_TOP_GAP

    def _prepare_rows(self, items: Sequence[LineItem]) -> List[InvoiceRow]:
        if not items:
            items = [LineItem(description=PLACEHOLDER_DESCRIPTION, amount=Decimal("0"), quantity=0)]

        rows: List[InvoiceRow] = []
        for item in items:
            lines = wrap_text(
                self.fonts,
                item.description or DEFAULT_DESCRIPTION,
                self.widths[0] - 2 * CELL_PAD,
                FONT_SIZE_BODY,
            )
            # zero quantity means "not applicable", not a priced zero line
            if item.quantity > 0:
                unit_text, total_text = fmt_nok(item.amount), fmt_nok(item.amount * item.quantity)
            else:
                unit_text = total_text = DASH
            rows.append(
                InvoiceRow(
                    description_lines=lines,
                    quantity=item.quantity,
                    unit_text=unit_text,
                    total_text=total_text,
                    height=max(ROW_MIN_H, len(lines) * ROW_LINE_H + ROW_PAD),
                )
            )
        return rows

    def _ensure_space(self, required: float) -> None:
        # Never spill into the giro slip region; move the cursor up instead.
        if self.y + required > CONTENT_LIMIT_Y:
            self.y = CONTENT_LIMIT_Y - required

    def _fill_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: Color,
        border: Optional[Color] = None,
        line_width: float = 1.0,
    ) -> None:
        self.pdf.set_fill_color(*fill)
        if border is None:
            self.pdf.rect(x, y, width, height, style="F")
            return
        self.pdf.set_draw_color(*border)
        self.pdf.set_line_width(line_width)
        self.pdf.rect(x, y, width, height, style="DF")

    def _hline(self, x1: float, x2: float, y: float, color: Color, thickness: float) -> None:
        self.pdf.set_draw_color(*color)
        self.pdf.set_line_width(thickness)
        self.pdf.line(x1, y, x2, y)

    def _draw_logo(self) -> bool:
        logo_path = env_str("INVOICE_LOGO_PATH")
        if not logo_path or not os.path.exists(logo_path):
            return False
        try:
            self.pdf.image(logo_path, x=MARGIN, y=LOGO_Y, h=LOGO_H)
        except (OSError, FPDFException, ValueError) as exc:
            logger.warning("Failed to embed logo %s in invoice PDF: %s", logo_path, exc)
            return False
        return True

    def _draw_header(self) -> None:
        doc = self.doc
        self._fill_rect(0, 0, PAGE_W, HEADER_H, COLOR_BRAND)
        self._fill_rect(0, HEADER_H - HEADER_STRIP_H, PAGE_W, HEADER_STRIP_H, COLOR_BRAND_DARK)

        if not self._draw_logo():
            self.fonts.draw_text(MARGIN, SELLER_NAME_Y, doc.seller_name, FONT_SIZE_BRAND, COLOR_WHITE, bold=True)

        self.fonts.draw_text(MARGIN, SELLER_ORG_Y, doc.seller_org, FONT_SIZE_HEADING, COLOR_WHITE)
        self.fonts.draw_text(MARGIN, INVOICE_TITLE_Y, "Faktura", FONT_SIZE_TITLE, COLOR_WHITE, bold=True)
        self.fonts.draw_text(
            MARGIN + INVOICE_NUMBER_OFFSET,
            INVOICE_TITLE_Y,
            f"#{doc.invoice_id}",
            FONT_SIZE_TITLE,
            COLOR_WHITE,
            bold=True,
        )

        self._fill_rect(META_X, META_TOP, META_W, META_H, COLOR_WHITE, border=COLOR_BRAND_DARK, line_width=1.2)
        entries = [
            ("Fakturanr.", f"#{doc.invoice_id}"),
            ("Dato", fmt_date(doc.created_at)),
            ("Forfallsdato", fmt_date(doc.due_date)),
            ("Konto", doc.account_number),
            ("KID", doc.kid),
        ]
        label_y = META_FIRST_LABEL_Y
        for label, value in entries:
            self.fonts.draw_text(META_X + META_PAD_X, label_y, label, FONT_SIZE_SMALL, COLOR_SLATE)
            self.fonts.draw_text(
                META_X + META_PAD_X,
                label_y + META_VALUE_OFFSET,
                str(value or ""),
                FONT_SIZE_NORMAL,
                COLOR_BRAND_DARK,
                bold=True,
            )
            label_y += META_ROW_H

    def _draw_parties(self) -> None:
        doc = self.doc
        box_h = RECIPIENT_H_WITH_EMAIL if doc.buyer_email else RECIPIENT_H
        self._ensure_space(box_h + RECIPIENT_AFTER_GAP)
        top = self.y
        self._fill_rect(MARGIN, top, CONTENT_W, box_h, COLOR_BRAND_SOFT, border=COLOR_TABLE_BORDER)

        left_x = MARGIN + 16
        self.fonts.draw_text(left_x, top + 18, "Fakturamottaker", FONT_SIZE_NORMAL, COLOR_BRAND_DARK, bold=True)
        recipient = doc.buyer_name or doc.buyer_email or "Ukjent mottaker"
        self.fonts.draw_text(left_x, top + 34, recipient, FONT_SIZE_BODY, COLOR_TEXT)
        if doc.buyer_email:
            self.fonts.draw_text(left_x, top + 48, doc.buyer_email, FONT_SIZE_SMALL + 1, COLOR_SLATE)

        issuer_x = MARGIN + CONTENT_W / 2 + 12
        self.fonts.draw_text(issuer_x, top + 18, "Fakturautsteder", FONT_SIZE_NORMAL, COLOR_BRAND_DARK, bold=True)
        self.fonts.draw_text(issuer_x, top + 34, doc.issuer_line, FONT_SIZE_BODY, COLOR_TEXT)
        if doc.base_url:
            self.fonts.draw_text(issuer_x, top + 48, doc.base_url.rstrip("/"), FONT_SIZE_SMALL + 1, COLOR_SLATE)

        self.y = top + box_h + RECIPIENT_AFTER_GAP

    def _draw_heading(self, text: str) -> None:
        self._ensure_space(HEADING_GAP)
        self.fonts.draw_text(MARGIN, self.y, text, FONT_SIZE_HEADING, COLOR_BRAND_DARK, bold=True)
        self.y += HEADING_GAP

    def _cell_right(self, index: int) -> float:
        return self.columns[index] + self.widths[index] - CELL_PAD

    def _draw_table(self) -> None:
        table_h = TABLE_HEADER_H + sum(row.height for row in self.rows) + TABLE_TOTAL_H
        self._ensure_space(table_h)
        top = self.y
        bottom = top + table_h

        self._fill_rect(MARGIN, top, CONTENT_W, table_h, COLOR_WHITE)
        self._fill_rect(MARGIN, top, CONTENT_W, TABLE_HEADER_H, COLOR_BRAND_DARK)
        header_baseline = top + 18
        for index, label in enumerate(("Beskrivelse", "Antall", "Pris", "Sum")):
            if index == 0:
                self.fonts.draw_text(self.columns[0] + 10, header_baseline, label, FONT_SIZE_BODY, COLOR_WHITE, bold=True)
            else:
                self.fonts.draw_right(self._cell_right(index), header_baseline, label, FONT_SIZE_BODY, COLOR_WHITE, bold=True)

        row_top = top + TABLE_HEADER_H
        for row_index, row in enumerate(self.rows):
            fill = COLOR_BRAND_SOFT if row_index % 2 == 0 else COLOR_WHITE
            self._fill_rect(MARGIN, row_top, CONTENT_W, row.height, fill)
            self._hline(MARGIN, MARGIN + CONTENT_W, row_top + row.height, COLOR_TABLE_BORDER, 0.5)

            for line_index, line in enumerate(row.description_lines):
                self.fonts.draw_text(
                    MARGIN + CELL_PAD,
                    row_top + 16 + line_index * ROW_LINE_H,
                    line,
                    FONT_SIZE_BODY,
                    COLOR_TEXT,
                )

            value_y = row_top + row.height / 2 + 4
            self.fonts.draw_right(self._cell_right(1), value_y, fmt_qty(row.quantity), FONT_SIZE_BODY, COLOR_TEXT)
            self.fonts.draw_right(self._cell_right(2), value_y, row.unit_text, FONT_SIZE_BODY, COLOR_TEXT)
            self.fonts.draw_right(self._cell_right(3), value_y, row.total_text, FONT_SIZE_BODY, COLOR_BRAND_DARK, bold=True)
            row_top += row.height

        total_top = bottom - TABLE_TOTAL_H
        self._fill_rect(MARGIN, total_top, CONTENT_W, TABLE_TOTAL_H, COLOR_BRAND_SOFT)
        self._hline(MARGIN, MARGIN + CONTENT_W, bottom, COLOR_TABLE_BORDER, 0.75)
        self.fonts.draw_right(
            self.columns[3] - CELL_PAD,
            total_top + 20,
            "Totalt å betale",
            FONT_SIZE_NORMAL,
            COLOR_TEXT,
            bold=True,
        )
        self.fonts.draw_right(
            self._cell_right(3),
            total_top + 20,
            fmt_nok(self.doc.amount_nok),
            FONT_SIZE_HEADING,
            COLOR_BRAND_DARK,
            bold=True,
        )

        self.y = self.table_bottom = bottom

    def _payment_lines(self) -> List[str]:
        doc = self.doc
        lines = [
            f"Beløp: {fmt_nok(doc.amount_nok)}",
            f"Forfallsdato: {fmt_date(doc.due_date)}",
            f"Kontonummer: {doc.account_number}",
            f"KID: {doc.kid}",
        ]
        if doc.base_url:
            lines.append(f"Mer informasjon: {doc.base_url}")
        return lines

    def _draw_payment_info(self) -> None:
        lines = self._payment_lines()
        panel_h = INFO_FIRST_LINE_Y + (len(lines) - 1) * INFO_LINE_H + INFO_BOTTOM_PAD
        top = self.y + INFO_TOP_GAP
        if top + panel_h > CONTENT_LIMIT_Y:
            # the giro slip repeats every field; never draw over the item table
            logger.debug("Payment panel skipped for invoice %s: %d rows leave no room", self.doc.invoice_id, len(self.rows))
            return

        self._fill_rect(MARGIN, top, CONTENT_W, panel_h, COLOR_BRAND_SOFT)
        self._fill_rect(MARGIN, top + panel_h - 2, CONTENT_W, 2, COLOR_BRAND)
        self.fonts.draw_text(MARGIN + 16, top + 20, "Betalingsinformasjon", FONT_SIZE_NORMAL, COLOR_BRAND_DARK, bold=True)
        line_y = top + INFO_FIRST_LINE_Y
        for line in lines:
            self.fonts.draw_text(MARGIN + 16, line_y, line, FONT_SIZE_BODY - 1, COLOR_TEXT)
            line_y += INFO_LINE_H
        self.y = top + panel_h
        self.payment_panel_drawn = True

    def _slip_label(self, text: str, x: float, y: float) -> None:
        self.fonts.draw_text(x, y, text, FONT_SIZE_SMALL, COLOR_BRAND_DARK)

    def _slip_field(
        self,
        value: str,
        x: float,
        top: float,
        width: float,
        height: float = SLIP_FIELD_H,
        align: str = "left",
        size: float = FONT_SIZE_NORMAL,
        bold: bool = True,
    ) -> None:
        self._fill_rect(x, top, width, height, COLOR_WHITE, border=COLOR_BRAND_DARK, line_width=0.8)
        text = str(value or "")
        if not text:
            return
        baseline = top + height - 6
        if align == "right":
            self.fonts.draw_right(x + width - 6, baseline, text, size, COLOR_TEXT, bold=bold)
        elif align == "center":
            text_w = self.fonts.text_width(text, size, bold=bold)
            self.fonts.draw_text(x + (width - text_w) / 2.0, baseline, text, size, COLOR_TEXT, bold=bold)
        else:
            self.fonts.draw_text(x + 6, baseline, text, size, COLOR_TEXT, bold=bold)

    def _draw_giro_slip(self) -> None:
        doc = self.doc
        amount = fmt_nok(doc.amount_nok)
        slip_x = MARGIN
        slip_w = CONTENT_W
        right_w = slip_w - SLIP_LEFT_W

        self._fill_rect(slip_x, SLIP_Y, slip_w, SLIP_H, COLOR_GIRO, border=COLOR_BRAND_DARK, line_width=1.1)
        self.pdf.set_draw_color(*COLOR_BRAND_DARK)
        self.pdf.set_line_width(1)
        self.pdf.line(slip_x + SLIP_LEFT_W, SLIP_Y, slip_x + SLIP_LEFT_W, SLIP_Y + SLIP_H)
        self.pdf.line(slip_x, SLIP_Y + SLIP_HEADER_H, slip_x + slip_w, SLIP_Y + SLIP_HEADER_H)
        self.fonts.draw_text(slip_x + 14, SLIP_Y + 19, "KVITTERING", FONT_SIZE_BODY, COLOR_BRAND_DARK, bold=True)
        self.fonts.draw_text(slip_x + SLIP_LEFT_W + 16, SLIP_Y + 19, "GIRO", FONT_SIZE_BODY, COLOR_BRAND_DARK, bold=True)

        # Payer's receipt copy
        left_x = slip_x + SLIP_PAD_X
        left_w = SLIP_LEFT_W - 2 * SLIP_PAD_X
        receipt_fields = [
            ("Konto", doc.account_number, FONT_SIZE_NORMAL, True),
            ("Beløp", amount, FONT_SIZE_NORMAL, True),
            ("Kundenummer", doc.buyer_email or doc.buyer_name or DASH, FONT_SIZE_BODY - 1, False),
            ("Fakturanummer", f"#{doc.invoice_id}", FONT_SIZE_BODY, False),
            ("KID", doc.kid or DASH, FONT_SIZE_BODY, False),
        ]
        label_y = SLIP_Y + SLIP_FIRST_LABEL_Y
        for label, value, size, bold in receipt_fields:
            self._slip_label(label, left_x, label_y)
            self._slip_field(value, left_x, label_y + SLIP_FIELD_OFFSET, left_w, size=size, bold=bold)
            label_y += SLIP_ROW_SPACING

        # Bank-processed slip
        right_x = slip_x + SLIP_LEFT_W + SLIP_PAD_X
        field_w = right_w - 2 * SLIP_PAD_X
        half_w = right_w / 2.0
        label_y = SLIP_Y + SLIP_FIRST_LABEL_Y

        self._slip_label("Betales til konto", right_x, label_y)
        self._slip_field(doc.account_number, right_x, label_y + SLIP_FIELD_OFFSET, field_w)
        label_y += SLIP_ROW_SPACING

        self._slip_label("Beløp", right_x, label_y)
        self._slip_field(amount, right_x, label_y + SLIP_FIELD_OFFSET, field_w, align="right")
        label_y += SLIP_ROW_SPACING

        self._slip_label("Betales innen", right_x, label_y)
        self._slip_field(
            fmt_date(doc.due_date), right_x, label_y + SLIP_FIELD_OFFSET, half_w - 18, size=FONT_SIZE_BODY, bold=False
        )
        self._slip_label("Dato", right_x + half_w, label_y)
        self._slip_field(
            fmt_date(doc.created_at),
            right_x + half_w,
            label_y + SLIP_FIELD_OFFSET,
            half_w - 30,
            size=FONT_SIZE_BODY,
            bold=False,
        )
        label_y += SLIP_ROW_SPACING

        self._slip_label("KID", right_x, label_y)
        for index, char in enumerate(self._kid_cells(right_w)):
            box_x = right_x + index * (KID_BOX_W + KID_BOX_GAP)
            self._slip_field(char, box_x, label_y + SLIP_FIELD_OFFSET, KID_BOX_W, KID_BOX_H, align="center", size=11.5)
        label_y += SLIP_ROW_SPACING

        self._slip_label("Til", right_x, label_y)
        self.fonts.draw_text(right_x + 6, label_y + 14, doc.issuer_line, FONT_SIZE_BODY - 1, COLOR_TEXT)
        self.fonts.draw_text(
            right_x + 6, label_y + 27, ", ".join(SELLER_ADDRESS_LINES), FONT_SIZE_SMALL, COLOR_BRAND_DARK
        )

    def _kid_cells(self, right_w: float) -> List[str]:
        digits = "".join(str(self.doc.kid or "").split())
        capacity = int((right_w - 40) // (KID_BOX_W + KID_BOX_GAP))
        count = min(max(len(digits), KID_MIN_BOXES), capacity)
        return [digits[i] if i < len(digits) else "" for i in range(count)]

    def render(self) -> bytes:
        self._draw_header()
        self._draw_parties()
        self._draw_heading("Fakturadetaljer")
        self._draw_table()
        self._draw_payment_info()
        self._draw_giro_slip()

        pdf_blob = self.pdf.output()
        if isinstance(pdf_blob, (bytes, bytearray)):
            return bytes(pdf_blob)
        raise RenderError(f"Unexpected PDF output type: {type(pdf_blob).__name__}")


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    try:
        return InvoiceRenderer(document).render()
    except (FPDFException, OSError) as exc:
        raise RenderError(f"Invoice PDF rendering failed: {exc}") from exc
