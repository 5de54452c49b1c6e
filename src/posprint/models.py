"""Data models for receipt printing.

All records are frozen: a Receipt is built once per print request and
a StoreProfile is a snapshot, so neither can change while a layout is
in progress.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

ZERO = Decimal("0")


@dataclass(frozen=True)
class Customer:
    """Customer details attached to an order."""

    name: str = ""
    phone: str = ""
    address: str = ""


@dataclass(frozen=True)
class Payment:
    """How the order was paid."""

    method: str = "Cash"
    amount_paid: Decimal = ZERO
    change: Decimal = ZERO


@dataclass(frozen=True)
class Item:
    """A single receipt line."""

    name: str
    description: str = ""
    quantity: int = 1
    price: Decimal = ZERO
    total: Optional[Decimal] = None

    def __post_init__(self) -> None:
        # Derived totals stay in Decimal so money never drifts
        if self.total is None:
            object.__setattr__(self, "total", self.price * self.quantity)

    @property
    def display_name(self) -> str:
        if self.description:
            return f"{self.name} - {self.description}"
        return self.name


@dataclass(frozen=True)
class Receipt:
    """Assembled, renderable record of one transaction."""

    order_id: str = ""
    order_date: Optional[datetime] = None
    customer: Optional[Customer] = None
    items: Tuple[Item, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    payment: Optional[Payment] = None
    notes: str = ""
    open_cash_drawer: bool = True


@dataclass(frozen=True)
class StoreProfile:
    """Read-only description of the selling business.

    ``page_width`` is in printer dots (576 = 80mm paper at 203 DPI).
    ``printer_name`` is the serial device of the printer; empty means
    the default port from settings.
    """

    store_name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    currency: str = "$"
    logo_path: str = ""
    printer_name: str = ""
    page_width: int = 576
    enable_cash_drawer: bool = True
