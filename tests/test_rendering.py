import unittest
from datetime import datetime
from decimal import Decimal
from importlib import util as importlib_util

FPDF_AVAILABLE = importlib_util.find_spec("fpdf") is not None
if FPDF_AVAILABLE:
    from kartarkiv_invoices.models import InvoiceDocument, LineItem, coerce_line_items
    from kartarkiv_invoices.formatting import fmt_nok
    from kartarkiv_invoices.pdf_constants import CONTENT_LIMIT_Y, PLACEHOLDER_DESCRIPTION
    from kartarkiv_invoices.rendering import InvoiceRenderer, render_invoice_pdf


def make_document(**overrides):
    values = dict(
        invoice_id=42,
        amount_nok=Decimal("1250.50"),
        kid="00000426",
        account_number="12345678903",
        due_date=datetime(2026, 2, 1),
        buyer_name="Oslo Orientering",
        buyer_email="kasserer@example.no",
        created_at=datetime(2026, 1, 18),
    )
    values.update(overrides)
    return InvoiceDocument(**values)


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf is not installed")
class RenderingTests(unittest.TestCase):
    def test_render_invoice_returns_pdf_bytes(self) -> None:
        document = make_document(
            line_items=[LineItem(description="Kartarkiv lisens 2026", amount=Decimal("1250.50"))]
        )

        pdf = render_invoice_pdf(document)

        self.assertIsInstance(pdf, bytes)
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertGreater(len(pdf), 100)

    def test_empty_items_render_one_placeholder_row(self) -> None:
        renderer = InvoiceRenderer(make_document())

        self.assertEqual(len(renderer.rows), 1)
        self.assertEqual(renderer.rows[0].description_lines, [PLACEHOLDER_DESCRIPTION])
        self.assertEqual(renderer.rows[0].total_text, "-")
        self.assertTrue(renderer.render().startswith(b"%PDF"))

    def test_zero_quantity_is_not_priced(self) -> None:
        items = coerce_line_items(
            [
                {"description": "Kart", "amount": "500", "quantity": 2},
                {"description": "Frakt", "amount": "99", "quantity": 0},
                {"description": "Tillegg", "amount": "10"},
            ]
        )
        renderer = InvoiceRenderer(make_document(line_items=items))

        self.assertEqual([row.quantity for row in renderer.rows], [2, 0, 1])
        self.assertEqual(
            [(row.unit_text, row.total_text) for row in renderer.rows],
            [(fmt_nok(500), fmt_nok(1000)), ("-", "-"), (fmt_nok(10), fmt_nok(10))],
        )

    def test_long_descriptions_wrap(self) -> None:
        items = [LineItem(description="Orienteringskart " * 20, amount=Decimal("1"))]
        renderer = InvoiceRenderer(make_document(line_items=items))

        self.assertGreater(len(renderer.rows[0].description_lines), 1)
        self.assertTrue(renderer.render().startswith(b"%PDF"))

    def test_non_latin_text_renders(self) -> None:
        document = make_document(buyer_name="Ærlig Øystein Åsheim – “Klubb”")

        self.assertTrue(render_invoice_pdf(document).startswith(b"%PDF"))

    def test_kid_cells_pad_to_minimum(self) -> None:
        renderer = InvoiceRenderer(make_document(kid="123"))

        cells = renderer._kid_cells(300)

        self.assertEqual(cells[:3], ["1", "2", "3"])
        self.assertEqual(len(cells), 10)

    def test_payment_panel_never_overlaps_the_table(self) -> None:
        for count in range(9):
            items = [LineItem(description=f"Kart {n}", amount=Decimal("100")) for n in range(count)]
            with self.subTest(items=count):
                renderer = InvoiceRenderer(make_document(line_items=items, base_url="https://kartarkiv.co"))
                renderer.render()

                self.assertLessEqual(renderer.table_bottom, CONTENT_LIMIT_Y + 1e-6)
                self.assertLessEqual(renderer.y, CONTENT_LIMIT_Y + 1e-6)
                if renderer.payment_panel_drawn:
                    self.assertGreater(renderer.y, renderer.table_bottom)

    def test_payment_panel_kept_for_short_invoices_and_dropped_for_long_ones(self) -> None:
        short = InvoiceRenderer(make_document(line_items=[LineItem(description="Kart", amount=Decimal("100"))]))
        long = InvoiceRenderer(
            make_document(line_items=[LineItem(description=f"Kart {n}", amount=Decimal("100")) for n in range(5)])
        )
        short.render()
        long.render()

        self.assertTrue(short.payment_panel_drawn)
        self.assertFalse(long.payment_panel_drawn)


if __name__ == "__main__":
    unittest.main()
