import json
from uuid import uuid4

import pytest
from protean.integrations.pytest import DomainFixture

SHIPPING = {
    "full_name": "Ada Lovelace",
    "street": "12 St James's Square",
    "city": "London",
    "postal_code": "SW1Y 4JH",
    "country": "GB",
}


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING)


@pytest.fixture()
def make_product():
    """Register a product through the catalogue port and return its id."""
    from protean import current_domain
    from storefront.catalogue.stock import RegisterProduct

    def _make(name="Widget", price=10.0, stock=10, **kwargs):
        kwargs.setdefault("sku", f"SKU-{uuid4().hex[:8].upper()}")
        return current_domain.process(
            RegisterProduct(name=name, price=price, stock=stock, **kwargs),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def fill_cart():
    """Add ``(product_id, quantity)`` lines to a customer's cart and return the cart id."""
    from protean import current_domain
    from storefront.cart.items import AddToCart

    def _fill(customer_id, *lines):
        result = None
        for product_id, quantity in lines:
            result = current_domain.process(
                AddToCart(customer_id=customer_id, product_id=product_id, quantity=quantity),
                asynchronous=False,
            )
        return result["cart_id"]

    return _fill


@pytest.fixture()
def place_order(shipping_address):
    """Check out a cart and return ``{order_id, order_number, total}``."""
    from protean import current_domain
    from storefront.order.creation import PlaceOrder

    def _place(cart_id, **kwargs):
        return current_domain.process(
            PlaceOrder(cart_id=cart_id, shipping_address=json.dumps(shipping_address), **kwargs),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def staff_advance():
    """Move an order along the fulfilment path as staff, one status at a time."""
    from protean import current_domain
    from storefront.order.status import UpdateOrderStatus

    def _advance(order_id, *statuses):
        view = None
        for status in statuses:
            view = current_domain.process(
                UpdateOrderStatus(order_id=order_id, new_status=status, actor_role="Staff"),
                asynchronous=False,
            )
        return view

    return _advance
