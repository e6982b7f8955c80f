"""Font discovery and text drawing helpers."""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from fpdf import FPDF

logger = logging.getLogger(__name__)

# Searched in order after the env override; the first directory is a checkout-local fonts/ folder.
FONT_DIRS = (
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "fonts"),
    "/usr/share/fonts/truetype/dejavu",
    "/usr/share/fonts/dejavu",
    "/Library/Fonts",
)
REGULAR_FONT_FILE = "DejaVuSans.ttf"
BOLD_FONT_FILE = "DejaVuSans-Bold.ttf"

# Core PDF fonts only cover Latin-1; these are the characters formatting may emit beyond it.
CORE_FONT_REPLACEMENTS = {
    "\u2013": "-",
    "\u2014": "-",
    "\u2212": "-",
    "\u202f": "\u00a0",
    "\u2019": "'",
}


def find_font_path(env_var: str, filename: str) -> Optional[str]:
    """Explicit path from ``env_var`` if it exists, else ``filename`` from the first font dir holding it."""
    override = os.getenv(env_var)
    paths = [override] if override else []
    paths += [os.path.join(directory, filename) for directory in FONT_DIRS]
    return next((path for path in paths if os.path.isfile(path)), None)


class FontManager:
    FAMILY = "InvoiceFont"
    CORE_FAMILY = "helvetica"

    def __init__(self, pdf: FPDF) -> None:
        self.pdf = pdf
        self.family = self.FAMILY
        self.has_bold = False
        self.unicode = True

        regular_path = find_font_path("INVOICE_FONT_PATH", REGULAR_FONT_FILE)
        if not regular_path:
            logger.debug("No Unicode TTF font found, using core %s", self.CORE_FAMILY)
            self.family = self.CORE_FAMILY
            self.has_bold = True
            self.unicode = False
            return

        self.pdf.add_font(self.FAMILY, "", regular_path)
        bold_path = find_font_path("INVOICE_FONT_BOLD_PATH", BOLD_FONT_FILE)
        if bold_path:
            self.pdf.add_font(self.FAMILY, "B", bold_path)
            self.has_bold = True
        logger.debug("Using TTF fonts %s (bold: %s)", regular_path, bold_path or "synthetic")

    def clean(self, text: str) -> str:
        if self.unicode:
            return text
        for char, replacement in CORE_FONT_REPLACEMENTS.items():
            text = text.replace(char, replacement)
        return text.encode("latin-1", "replace").decode("latin-1")

    def _select(self, size: float, bold: bool) -> None:
        style = "B" if bold and self.has_bold else ""
        self.pdf.set_font(self.family, style, size)

    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        self._select(size, bold)
        return self.pdf.get_string_width(self.clean(text))

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        text = self.clean(str(text))
        self.pdf.set_text_color(*color)
        self._select(size, bold)
        if bold and not self.has_bold:
            self.pdf.text(x, y, text)
            self.pdf.text(x + 0.4, y, text)
        else:
            self.pdf.text(x, y, text)

    def draw_right(
        self,
        right: float,
        y: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        self.draw_text(right - self.text_width(str(text), size, bold=bold), y, text, size, color, bold=bold)
