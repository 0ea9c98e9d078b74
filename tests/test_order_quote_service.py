from __future__ import annotations

import re

import pytest

from src.observability.metrics import get_counter_value
from src.services.order_quote_service import OrderQuoteService, generate_order_id


class _StubPricing:
    currency = "ARS"

    def __init__(self, price: float = 2000.0):
        self.price = price
        self.calls = 0

    def get_unit_price(self) -> float:
        self.calls += 1
        return self.price


def test_quote_prices_each_photo():
    pricing = _StubPricing(2150.5)
    service = OrderQuoteService(pricing, min_photos=4, max_photos=15)

    success, message, quote = service.quote("Ana", "ana@example.com", "4")

    assert success is True
    assert message == "Order quoted successfully"
    assert quote.photo_count == 4
    assert quote.total == 8602.0
    assert pricing.calls == 1
    assert get_counter_value("order_quotes_total", {"outcome": "accepted"}) == 1


@pytest.mark.parametrize("photo_count", [None, True, 4.5, "4.5", [], float("inf"), float("nan")])
def test_non_integer_photo_counts_are_rejected(photo_count):
    pricing = _StubPricing()
    success, message, quote = OrderQuoteService(pricing).quote("Ana", "ana@example.com", photo_count)
    assert success is False
    assert quote is None
    assert message == "Photo count must be a whole number"
    assert pricing.calls == 0


def test_whole_float_photo_count_is_accepted():
    success, _, quote = OrderQuoteService(_StubPricing()).quote("Ana", "ana@example.com", 5.0)
    assert success is True
    assert quote.photo_count == 5


def test_rejection_is_counted():
    OrderQuoteService(_StubPricing()).quote("  ", "ana@example.com", 5)
    assert get_counter_value("order_quotes_total", {"outcome": "rejected"}) == 1


def test_order_ids_are_unique_and_readable():
    ids = {generate_order_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r"ORD-[0-9A-Z]+-[0-9A-F]{6}", order_id) for order_id in ids)
