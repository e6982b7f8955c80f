"""Value types shared by the renderer and the invoice service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Union

from .config import DUE_DAYS, SELLER_NAME, SELLER_ORG
from .errors import InvalidArgument
from .formatting import to_decimal

Amount = Union[Decimal, float, int, str]


def parse_quantity(raw: Any) -> int:
    """Whole, non-negative quantity. Missing means 1; 0 marks a line as not applicable."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return 1
    if isinstance(raw, bool):
        raise InvalidArgument(f"quantity must be a whole number, got {raw!r}")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidArgument(f"quantity must be a whole number, got {raw!r}") from None
    if not value.is_finite() or value < 0 or value != value.to_integral_value():
        raise InvalidArgument(f"quantity must be a whole number of at least 0, got {raw!r}")
    return int(value)


@dataclass(frozen=True)
class LineItem:
    description: str
    amount: Decimal
    quantity: int = 1

    @classmethod
    def coerce(cls, item: Union["LineItem", Mapping[str, Any]]) -> "LineItem":
        if isinstance(item, LineItem):
            return item
        amount = to_decimal(item.get("amount"))
        if not amount.is_finite():
            raise InvalidArgument(f"line item amount must be a finite number, got {item.get('amount')!r}")
        return cls(
            description=str(item.get("description") or ""),
            amount=amount,
            quantity=parse_quantity(item.get("quantity")),
        )


def coerce_line_items(items: Optional[Iterable[Any]]) -> List[LineItem]:
    return [LineItem.coerce(item) for item in (items or [])]


@dataclass(frozen=True)
class InvoiceDocument:
    invoice_id: int
    amount_nok: Decimal
    kid: str
    account_number: str
    due_date: Union[date, datetime]
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    created_at: Union[date, datetime] = field(default_factory=datetime.now)
    line_items: List[LineItem] = field(default_factory=list)
    seller_name: str = SELLER_NAME
    seller_org: str = SELLER_ORG
    base_url: Optional[str] = None

    @property
    def issuer_line(self) -> str:
        return f"{self.seller_name} – {self.seller_org}" if self.seller_org else self.seller_name


@dataclass(frozen=True)
class InvoiceRequest:
    invoice_id: int
    email: str
    name: Optional[str]
    amount_nok: Decimal
    line_items: List[LineItem] = field(default_factory=list)
    account_number: Optional[str] = None
    due_date: Optional[Union[date, datetime]] = None

    @classmethod
    def build(
        cls,
        *,
        invoice_id: Any,
        email: str,
        name: Optional[str],
        amount_nok: Amount,
        line_items: Optional[Iterable[Any]] = None,
        account_number: Optional[str] = None,
        due_date: Optional[Union[date, datetime]] = None,
    ) -> "InvoiceRequest":
        try:
            parsed_id = int(invoice_id)
        except (TypeError, ValueError):
            raise InvalidArgument(f"invoice_id must be an integer, got {invoice_id!r}") from None
        if parsed_id <= 0:
            raise InvalidArgument("invoice_id required")
        amount = to_decimal(amount_nok)
        if not amount.is_finite() or amount <= 0:
            raise InvalidArgument(f"amount_nok must be positive, got {amount_nok!r}")
        if not email:
            raise InvalidArgument("email required")
        return cls(
            invoice_id=parsed_id,
            email=email,
            name=name,
            amount_nok=amount,
            line_items=coerce_line_items(line_items),
            account_number=account_number,
            due_date=due_date,
        )

    def resolved_due_date(self, now: datetime) -> Union[date, datetime]:
        return self.due_date or now + timedelta(days=DUE_DAYS)
