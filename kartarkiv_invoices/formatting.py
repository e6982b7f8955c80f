"""Formatting and text layout helpers."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Protocol, Union

from dateutil import parser as dateutil_parser

NBSP = "\u00a0"
DASH = "-"


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        ...


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def fmt_nok(amount: Any) -> str:
    """Format an amount as Norwegian kroner, e.g. ``kr 1 250,50``."""
    value = to_decimal(amount or 0).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,.2f}"
    whole, _, cents = grouped.partition(".")
    return f"{sign}kr{NBSP}{whole.replace(',', NBSP)},{cents}"


def fmt_qty(qty: int) -> str:
    return str(qty) if qty > 0 else DASH


def fmt_date(raw: Union[str, date, datetime, None]) -> str:
    """Return ``raw`` as ``DD.MM.YYYY``; unparseable strings pass through."""
    if raw is None:
        return ""
    if isinstance(raw, (date, datetime)):
        return raw.strftime("%d.%m.%Y")
    raw = raw.strip()
    if not raw:
        return raw
    try:
        return dateutil_parser.parse(raw).strftime("%d.%m.%Y")
    except (ValueError, OverflowError):
        return raw


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: float,
    bold: bool = False,
) -> List[str]:
    """Greedily pack words into lines no wider than ``max_width`` points."""

    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size, bold=bold)

    words = str(text or "").split()
    if not words:
        return [""]

    lines: List[str] = []
    current = ""
    for word in words:
        candidate = word if not current else f"{current} {word}"
        if line_width(candidate) <= max_width:
            current = candidate
            continue

        if current:
            lines.append(current)
        current = word
        if line_width(word) <= max_width:
            continue

        # single word wider than the column
        chunk = ""
        for char in current:
            candidate_chunk = chunk + char
            if chunk and line_width(candidate_chunk) > max_width:
                lines.append(chunk)
                chunk = char
            else:
                chunk = candidate_chunk
        current = chunk

    if current:
        lines.append(current)
    return lines
