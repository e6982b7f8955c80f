"""Norwegian KID (customer identification number) generation.

Mod11 with weights 2..7 cycling from the rightmost digit. When Mod11 yields
10 the number cannot carry a single Mod11 digit, and Mod10 (Luhn) is used
instead.
"""

from __future__ import annotations

import re
from typing import List, Optional, Union

from .config import KID_BASE_WIDTH
from .errors import InvalidArgument

MOD11_INVALID = 10

_NON_DIGITS = re.compile(r"\D")


def _digits(base: Union[str, int]) -> List[int]:
    return [int(char) for char in _NON_DIGITS.sub("", str(base))]


def mod11_check_digit(base: Union[str, int]) -> Optional[int]:
    digits = _digits(base)
    if not digits:
        return None
    weight = 2
    total = 0
    for digit in reversed(digits):
        total += digit * weight
        weight = 2 if weight == 7 else weight + 1
    check = 11 - total % 11
    if check == 11:
        return 0
    return check


def mod10_check_digit(base: Union[str, int]) -> int:
    total = 0
    double = True
    for digit in reversed(_digits(base)):
        value = digit
        if double:
            value *= 2
            if value > 9:
                value -= 9
        total += value
        double = not double
    return (10 - total % 10) % 10


def generate_kid(numeric_base: Union[str, int]) -> str:
    base = _NON_DIGITS.sub("", str(numeric_base))
    if not base:
        raise InvalidArgument("generate_kid: base must contain digits")
    check = mod11_check_digit(base)
    if check is not None and check != MOD11_INVALID:
        return f"{base}{check}"
    return f"{base}{mod10_check_digit(base)}"


def kid_for_invoice(invoice_id: int) -> str:
    return generate_kid(str(invoice_id).zfill(KID_BASE_WIDTH))
