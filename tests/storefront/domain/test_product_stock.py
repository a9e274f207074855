"""Tests for the Product aggregate — conditional stock decrement and repricing."""

import pytest
from protean.exceptions import ValidationError
from storefront.catalogue.events import ProductRepriced, StockReleased, StockReserved
from storefront.catalogue.product import Product
from storefront.errors import StockUnavailableError


def _product(stock=5, track_inventory=True, price=10.0):
    product = Product.register(name="Tea", sku="TEA-1", price=price, stock=stock, track_inventory=track_inventory)
    product._events.clear()
    return product


class TestReserveStock:
    def test_decrements_when_enough_on_hand(self):
        product = _product(stock=5)
        product.reserve_stock(3)
        assert product.stock == 2

    def test_last_unit_can_be_reserved(self):
        product = _product(stock=1)
        product.reserve_stock(1)
        assert product.stock == 0

    def test_rejects_when_short_and_leaves_stock(self):
        product = _product(stock=1)
        with pytest.raises(StockUnavailableError):
            product.reserve_stock(2)
        assert product.stock == 1

    def test_untracked_product_never_runs_out(self):
        product = _product(stock=0, track_inventory=False)
        product.reserve_stock(50)
        assert product.stock == 0
        assert product._events == []

    def test_raises_reserved_event(self):
        product = _product(stock=3)
        product.reserve_stock(2)
        event = product._events[-1]
        assert isinstance(event, StockReserved)
        assert event.remaining == 1

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            _product().reserve_stock(0)


class TestReleaseStock:
    def test_increments_stock(self):
        product = _product(stock=0)
        product.release_stock(2)
        assert product.stock == 2
        assert isinstance(product._events[-1], StockReleased)

    def test_untracked_release_is_noop(self):
        product = _product(stock=0, track_inventory=False)
        product.release_stock(2)
        assert product.stock == 0


class TestSupply:
    def test_can_supply(self):
        product = _product(stock=2)
        assert product.can_supply(2)
        assert not product.can_supply(3)

    def test_inactive_product_cannot_be_added(self):
        product = _product()
        product.is_active = False
        with pytest.raises(ValidationError):
            product.assert_can_supply(1)


class TestReprice:
    def test_reprice_records_previous_price(self):
        product = _product(price=10.0)
        product.reprice(12.5)
        assert product.price == 12.5
        event = product._events[-1]
        assert isinstance(event, ProductRepriced)
        assert event.previous_price == 10.0

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            _product().reprice(-1.0)

    def test_subscription_price_falls_back_to_price(self):
        product = _product(price=8.0)
        assert product.unit_price_for_subscription() == 8.0
        product.subscription_price = 7.0
        assert product.unit_price_for_subscription() == 7.0
