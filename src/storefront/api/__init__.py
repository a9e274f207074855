"""Storefront API package."""

from storefront.api.errors import register_error_handlers
from storefront.api.routes import (
    cart_router,
    loyalty_router,
    order_router,
    payment_router,
    product_router,
    subscription_router,
)

__all__ = [
    "cart_router",
    "loyalty_router",
    "order_router",
    "payment_router",
    "product_router",
    "subscription_router",
    "register_error_handlers",
]
