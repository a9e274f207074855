"""Application tests for checkout: snapshots, stock reservation and failure modes."""

import json
import re

import pytest
from protean import UnitOfWork, current_domain
from protean.exceptions import ExpectedVersionError
from storefront.cart.items import cart_for_customer
from storefront.catalogue.product import Product
from storefront.catalogue.stock import ChangeProductPrice
from storefront.errors import (
    EmptyCartError,
    ForbiddenError,
    PriceChangedError,
    StockUnavailableError,
)
from storefront.order.creation import PlaceOrder
from storefront.order.order import Order, OrderStatus, PaymentStatus


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock


class TestPlaceOrder:
    def test_order_is_priced_and_pending(self, make_product, fill_cart, place_order):
        tea = make_product(name="Tea", price=15.0, stock=10)
        cup = make_product(name="Cup", price=8.0, stock=10)
        cart_id = fill_cart("cust-001", (tea, 2), (cup, 1))

        result = place_order(cart_id)

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.subtotal == 38.0
        assert order.tax == 7.6
        assert order.shipping == 5.99
        assert order.total == result["total"] == 51.59
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{8}", result["order_number"])
        assert order.shipping_address.city == "London"
        assert order.billing_address.city == "London"

    def test_stock_is_decremented(self, make_product, fill_cart, place_order):
        product_id = make_product(stock=5)
        place_order(fill_cart("cust-001", (product_id, 3)))
        assert _stock(product_id) == 2

    def test_cart_is_cleared(self, make_product, fill_cart, place_order):
        place_order(fill_cart("cust-001", (make_product(), 1)))
        assert cart_for_customer("cust-001").is_empty

    def test_second_checkout_of_same_cart_is_empty(self, make_product, fill_cart, place_order):
        cart_id = fill_cart("cust-001", (make_product(), 1))
        place_order(cart_id)
        with pytest.raises(EmptyCartError):
            place_order(cart_id)
        assert len(current_domain.repository_for(Order).for_customer("cust-001")) == 1

    def test_prices_are_snapshotted(self, make_product, fill_cart, place_order):
        product_id = make_product(price=20.0)
        result = place_order(fill_cart("cust-001", (product_id, 1)))

        current_domain.process(ChangeProductPrice(product_id=product_id, price=99.0), asynchronous=False)

        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.items[0].unit_price == 20.0
        assert order.items[0].line_total == 20.0
        assert order.total == result["total"]

    def test_separate_billing_address(self, make_product, fill_cart, place_order):
        billing = {"street": "1 Billing Rd", "city": "Bath", "postal_code": "BA1 1AA", "country": "GB"}
        result = place_order(fill_cart("cust-001", (make_product(), 1)), billing_address=json.dumps(billing))
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.billing_address.city == "Bath"
        assert order.shipping_address.city == "London"


class TestCheckoutFailures:
    def test_empty_cart(self, make_product, fill_cart, place_order):
        from storefront.cart.items import ClearCart

        cart_id = fill_cart("cust-001", (make_product(), 1))
        current_domain.process(ClearCart(cart_id=cart_id), asynchronous=False)
        with pytest.raises(EmptyCartError):
            place_order(cart_id)

    def test_shortage_names_the_product_and_writes_nothing(self, make_product, fill_cart, place_order):
        plenty = make_product(name="Plenty", stock=5)
        scarce = make_product(name="Scarce", stock=1)
        first_cart = fill_cart("cust-001", (plenty, 2), (scarce, 1))
        second_cart = fill_cart("cust-002", (scarce, 1))

        place_order(second_cart)

        with pytest.raises(StockUnavailableError) as exc:
            place_order(first_cart)

        assert scarce in exc.value.messages
        assert plenty not in exc.value.messages
        assert _stock(plenty) == 5
        assert _stock(scarce) == 0
        assert not cart_for_customer("cust-001").is_empty
        assert current_domain.repository_for(Order).for_customer("cust-001") == []

    def test_last_unit_goes_to_exactly_one_buyer(self, make_product, fill_cart, place_order):
        product_id = make_product(stock=1)
        carts = [fill_cart(f"cust-{n}", (product_id, 1)) for n in range(3)]

        outcomes = []
        for cart_id in carts:
            try:
                place_order(cart_id)
                outcomes.append("placed")
            except StockUnavailableError:
                outcomes.append("unavailable")

        assert outcomes.count("placed") == 1
        assert outcomes.count("unavailable") == 2
        assert _stock(product_id) == 0

    def test_stale_reservation_of_last_unit_is_rejected(self, make_product, fill_cart, place_order):
        product_id = make_product(stock=1)
        ada_cart = fill_cart("cust-ada", (product_id, 1))
        bob_cart = fill_cart("cust-bob", (product_id, 1))

        repo = current_domain.repository_for(Product)
        stale = repo.get(product_id)

        place_order(ada_cart)

        # Bob's copy still shows the unit Ada just bought
        stale.reserve_stock(1)
        with pytest.raises(ExpectedVersionError), UnitOfWork():
            repo.add(stale)
        assert _stock(product_id) == 0

        # Re-running Bob's checkout reads the committed stock
        with pytest.raises(StockUnavailableError):
            place_order(bob_cart)
        assert _stock(product_id) == 0
        assert current_domain.repository_for(Order).for_customer("cust-bob") == []

    def test_untracked_products_never_run_out(self, make_product, fill_cart, place_order):
        product_id = make_product(stock=0, track_inventory=False)
        place_order(fill_cart("cust-001", (product_id, 4)))
        assert _stock(product_id) == 0

    def test_price_changed_since_customer_saw_total(self, make_product, fill_cart, place_order):
        product_id = make_product(price=20.0, stock=5)
        cart_id = fill_cart("cust-001", (product_id, 1))
        shown_total = 29.99  # 20.00 + 4.00 tax + 5.99 shipping

        current_domain.process(ChangeProductPrice(product_id=product_id, price=22.0), asynchronous=False)

        with pytest.raises(PriceChangedError):
            place_order(cart_id, expected_total=shown_total)
        assert _stock(product_id) == 5
        assert not cart_for_customer("cust-001").is_empty

    def test_matching_expected_total_is_accepted(self, make_product, fill_cart, place_order):
        cart_id = fill_cart("cust-001", (make_product(price=20.0), 1))
        assert place_order(cart_id, expected_total=29.99)["total"] == 29.99

    def test_cannot_check_out_someone_elses_cart(self, make_product, fill_cart, shipping_address):
        cart_id = fill_cart("cust-001", (make_product(), 1))
        with pytest.raises(ForbiddenError):
            current_domain.process(
                PlaceOrder(cart_id=cart_id, customer_id="cust-999", shipping_address=json.dumps(shipping_address)),
                asynchronous=False,
            )


class TestLoyaltyDiscountAtCheckout:
    def test_eleventh_order_gets_discount(self, make_product, fill_cart, place_order):
        from storefront.loyalty.account import LoyaltyAccount

        account = LoyaltyAccount.open("cust-001")
        for _ in range(10):
            account.record_completed_order()
        current_domain.repository_for(LoyaltyAccount).add(account)

        result = place_order(fill_cart("cust-001", (make_product(price=30.0), 1)))
        order = current_domain.repository_for(Order).get(result["order_id"])
        assert order.discount == 6.0
        assert order.total == 34.79
