"""Shared fixtures for POSPRINT tests."""

from datetime import datetime
from typing import Tuple

import pytest

from posprint.config.settings import PrinterSettings, Settings
from posprint.config.store import ProfileStore
from posprint.hardware.printer import ThermalPrinter
from posprint.models import StoreProfile
from posprint.printing.layout import FontStyle, LayoutEngine
from posprint.printing.service import PrintService


class FixedPitchMeasurer:
    """Deterministic text measurement: every character is 0.6em wide."""

    def measure_text(
        self,
        text: str,
        font_size: float,
        style: FontStyle = FontStyle.REGULAR,
    ) -> Tuple[float, float]:
        return len(text) * font_size * 0.6, font_size * 1.2


PIZZA_PAYLOAD = """{
  "orderId": "ORD-1001",
  "orderDate": "2025-01-02T12:30:00Z",
  "customer": {"name": "Jane Doe", "phone": "555-0100"},
  "items": [{"name": "Pizza", "quantity": 1, "price": 18.99}],
  "subtotal": 18.99,
  "tax": 1.52,
  "total": 20.51,
  "payment": {"method": "Cash", "amountPaid": 25, "change": 4.49},
  "notes": "Extra napkins",
  "openCashDrawer": true
}"""


@pytest.fixture
def pizza_payload() -> str:
    return PIZZA_PAYLOAD


@pytest.fixture
def measurer() -> FixedPitchMeasurer:
    return FixedPitchMeasurer()


@pytest.fixture
def engine(measurer) -> LayoutEngine:
    return LayoutEngine(measurer)


@pytest.fixture
def profile() -> StoreProfile:
    return StoreProfile(
        store_name="Luigi's Pizzeria",
        address="1 Harbour Rd",
        phone="(555) 010-2000",
        currency="$",
    )


@pytest.fixture
def printed_at() -> datetime:
    return datetime(2025, 1, 2, 3, 4, 5)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        profile_path=tmp_path / "store-config.txt",
        printer=PrinterSettings(port="/dev/ttyTEST0", mock=True),
    )


@pytest.fixture
def store(settings) -> ProfileStore:
    store = ProfileStore(settings.profile_path)
    store.load()
    store.update_fields(store_name="Luigi's Pizzeria", logo_path="")
    return store


@pytest.fixture
def printer(settings) -> ThermalPrinter:
    return ThermalPrinter(port=settings.printer.port, mock=True)


@pytest.fixture
def service(store, settings, printer) -> PrintService:
    return PrintService(store, settings, printer=printer)
