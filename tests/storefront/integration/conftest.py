import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storefront.api import (
    cart_router,
    loyalty_router,
    order_router,
    payment_router,
    product_router,
    register_error_handlers,
    subscription_router,
)

STAFF = {"X-User-Id": "staff-001", "X-User-Role": "Staff"}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (product_router, cart_router, order_router, payment_router, loyalty_router, subscription_router):
        app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def api_product(client):
    """Register a product through the API as staff and return its id."""
    counter = iter(range(1, 1000))

    def _create(name="Widget", price=10.0, stock=10, **kwargs):
        body = {"name": name, "sku": f"API-{next(counter):03d}", "price": price, "stock": stock, **kwargs}
        response = client.post("/products", json=body, headers=STAFF)
        assert response.status_code == 201
        return response.json()["product_id"]

    return _create
