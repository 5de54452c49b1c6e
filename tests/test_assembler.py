"""
Tests for receipt assembly.
"""

import dataclasses
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from posprint.errors import StructuralParseFailure
from posprint.models import Item
from posprint.parsing.assembler import assemble


def test_assembles_full_payload(pizza_payload):
    receipt = assemble(pizza_payload)

    assert receipt.order_id == "ORD-1001"
    assert receipt.order_date == datetime(2025, 1, 2, 12, 30, tzinfo=timezone.utc)
    assert receipt.customer.name == "Jane Doe"
    assert receipt.customer.phone == "555-0100"
    assert receipt.subtotal == Decimal("18.99")
    assert receipt.tax == Decimal("1.52")
    assert receipt.total == Decimal("20.51")
    assert receipt.payment.method == "Cash"
    assert receipt.payment.amount_paid == Decimal("25")
    assert receipt.payment.change == Decimal("4.49")
    assert receipt.notes == "Extra napkins"
    assert receipt.open_cash_drawer is True

    assert len(receipt.items) == 1
    pizza = receipt.items[0]
    assert (pizza.name, pizza.quantity, pizza.price, pizza.total) == (
        "Pizza", 1, Decimal("18.99"), Decimal("18.99"),
    )


def test_empty_object_gives_defaults():
    receipt = assemble("{}")

    assert receipt.order_id == ""
    assert receipt.order_date is None
    assert receipt.customer is None
    assert receipt.items == ()
    assert receipt.subtotal == Decimal("0")
    assert receipt.total == Decimal("0")
    assert receipt.payment is None
    assert receipt.notes == ""
    assert receipt.open_cash_drawer is True


def test_invalid_fields_fall_back_to_defaults():
    receipt = assemble(
        '{"orderId": 7, "orderDate": "yesterday", "subtotal": "lots",'
        ' "openCashDrawer": "maybe", "items": [{"name": "Tea", "quantity": "two", "price": "?"}]}'
    )

    assert receipt.order_id == "7"
    assert receipt.order_date is None
    assert receipt.subtotal == Decimal("0")
    assert receipt.open_cash_drawer is True
    tea = receipt.items[0]
    assert tea.quantity == 1
    assert tea.price == Decimal("0")
    assert tea.total == Decimal("0")


def test_derived_item_total_is_exact():
    receipt = assemble('{"items": [{"name": "Gum", "quantity": 3, "price": "0.10"}]}')
    gum = receipt.items[0]

    assert gum.total == Decimal("0.30")
    assert gum.total == gum.quantity * gum.price


def test_explicit_item_total_is_kept():
    receipt = assemble('{"items": [{"name": "Combo", "quantity": 2, "price": 5, "total": 9.00}]}')
    assert receipt.items[0].total == Decimal("9.00")


def test_unparsable_item_total_is_derived():
    receipt = assemble('{"items": [{"name": "Combo", "quantity": 2, "price": 5, "total": "n/a"}]}')
    assert receipt.items[0].total == Decimal("10")


def test_items_keep_order_and_skip_nameless_entries():
    receipt = assemble(
        '{"items": [{"name": "Soup", "description": "Tomato"}, {"price": 3}, {"name": "Bread"}]}'
    )

    assert [item.name for item in receipt.items] == ["Soup", "Bread"]
    assert receipt.items[0].description == "Tomato"


def test_payment_method_defaults_to_cash():
    receipt = assemble('{"payment": {"amountPaid": 10}}')
    assert receipt.payment.method == "Cash"
    assert receipt.payment.amount_paid == Decimal("10")


def test_payment_from_dotted_keys():
    receipt = assemble('{"payment.method": "Card", "payment.amountPaid": "12.50"}')
    assert receipt.payment.method == "Card"
    assert receipt.payment.amount_paid == Decimal("12.50")


def test_nested_customer_takes_precedence_over_dotted_keys():
    receipt = assemble(
        '{"customer.name": "Flat", "customer.phone": "111",'
        ' "customer": {"name": "Nested"}}'
    )

    assert receipt.customer.name == "Nested"
    # Fields missing from the nested object still come from dotted keys
    assert receipt.customer.phone == "111"


def test_customer_requires_a_name():
    assert assemble('{"customer": {"phone": "555"}}').customer is None


def test_open_cash_drawer_false():
    assert assemble('{"openCashDrawer": false}').open_cash_drawer is False


def test_structural_failure_has_no_partial_receipt():
    with pytest.raises(StructuralParseFailure):
        assemble('{"orderId": "1", "notes": "unterminated')


def test_receipt_is_immutable(pizza_payload):
    receipt = assemble(pizza_payload)
    with pytest.raises(dataclasses.FrozenInstanceError):
        receipt.notes = "changed"


def test_item_display_name():
    assert Item(name="Burger", description="No onions").display_name == "Burger - No onions"
    assert Item(name="Fries").display_name == "Fries"


@pytest.mark.parametrize("value, expected", [
    ("1e30", Decimal("0")),
    ('"1e27"', Decimal("0")),
    ('"1_000"', Decimal("0")),
    ("-0", Decimal("0")),
    ("1e3", Decimal("1000")),
    ('"12.50"', Decimal("12.50")),
])
def test_total_number_forms(value, expected):
    assert assemble(f'{{"total": {value}}}').total == expected


def test_out_of_range_price_falls_back_to_zero():
    receipt = assemble('{"items": [{"name": "Gold", "price": "1e27", "quantity": "1_000"}]}')

    item = receipt.items[0]
    assert item.price == Decimal("0")
    assert item.quantity == 1
    assert item.total == Decimal("0")
