"""Receipt assembly from raw payload text.

Builds an immutable Receipt field by field from the extracted record
tree. Every missing or mistyped field falls back to its default; only
a structurally broken payload fails.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from posprint.models import ZERO, Customer, Item, Payment, Receipt
from posprint.parsing.extractor import Record, parse, parse_bool, parse_decimal

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Cash"


def _text(value: Optional[str]) -> str:
    return value if value is not None else ""


def _money(value: Optional[Decimal]) -> Decimal:
    return value if value is not None else ZERO


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, tolerating a trailing Z."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Ignoring unparsable orderDate '{value}'")
        return None


class _SubRecord:
    """Fields of a sub-record given either nested or as dotted keys.

    ``"customer": {"phone": ...}`` and ``"customer.phone": ...`` both
    resolve here; the nested object wins when both are present.
    """

    def __init__(self, root: Record, name: str) -> None:
        self._root = root
        self._name = name
        self._nested = root.record(name)

    @property
    def present(self) -> bool:
        if self._nested is not None:
            return True
        prefix = f"{self._name}."
        return any(key.startswith(prefix) for key in self._root.keys())

    def get(self, field_name: str) -> Optional[str]:
        if self._nested is not None:
            value = self._nested.get(field_name)
            if value is not None:
                return value
        return self._root.get(f"{self._name}.{field_name}")


def _assemble_customer(root: Record) -> Optional[Customer]:
    source = _SubRecord(root, "customer")
    name = source.get("name")
    if not name:
        return None

    customer = Customer(
        name=name,
        phone=_text(source.get("phone")),
        address=_text(source.get("address")),
    )
    logger.debug(f"Customer = {customer.name}, Phone = {customer.phone}")
    return customer


def _assemble_payment(root: Record) -> Optional[Payment]:
    source = _SubRecord(root, "payment")
    if not source.present:
        return None

    return Payment(
        method=source.get("method") or DEFAULT_PAYMENT_METHOD,
        amount_paid=_money(parse_decimal(source.get("amountPaid"))),
        change=_money(parse_decimal(source.get("change"))),
    )


def _assemble_items(root: Record) -> List[Item]:
    items: List[Item] = []

    for index, entry in enumerate(root.records("items")):
        name = entry.get("name")
        if not name:
            logger.debug(f"Skipping item {index}: no name")
            continue

        quantity = entry.get_int("quantity")
        items.append(Item(
            name=name,
            description=_text(entry.get("description")),
            quantity=quantity if quantity is not None else 1,
            price=_money(entry.get_decimal("price")),
            # None lets Item derive quantity * price
            total=entry.get_decimal("total"),
        ))

    return items


def assemble_record(root: Record) -> Receipt:
    """Build a Receipt from an already parsed record tree."""
    open_drawer = parse_bool(root.get("openCashDrawer"))

    receipt = Receipt(
        order_id=_text(root.get("orderId")),
        order_date=_parse_timestamp(root.get("orderDate")),
        customer=_assemble_customer(root),
        items=tuple(_assemble_items(root)),
        subtotal=_money(root.get_decimal("subtotal")),
        tax=_money(root.get_decimal("tax")),
        discount=_money(root.get_decimal("discount")),
        total=_money(root.get_decimal("total")),
        payment=_assemble_payment(root),
        notes=_text(root.get("notes")),
        open_cash_drawer=open_drawer if open_drawer is not None else True,
    )

    logger.debug(
        f"Assembled receipt: OrderId = {receipt.order_id}, "
        f"{len(receipt.items)} items, Total = {receipt.total}"
    )
    return receipt


def assemble(raw_text: str) -> Receipt:
    """Assemble a Receipt from raw payload text.

    Args:
        raw_text: JSON-like transaction payload

    Returns:
        The assembled receipt

    Raises:
        StructuralParseFailure: If the payload is too malformed to read
    """
    return assemble_record(parse(raw_text))
