"""Order creation (checkout): command and handler.

Runs as one unit of work. Every check happens before anything is written,
and every write (stock decrements, the new order, the cleared cart) is
committed together, so a failure at any step leaves no trace.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.catalogue.product import Product
from storefront.config import currency
from storefront.domain import storefront
from storefront.errors import EmptyCartError, ForbiddenError, PriceChangedError, StockUnavailableError
from storefront.loyalty.ledger import is_customer_discount_eligible
from storefront.order.order import Order
from storefront.pricing.engine import PriceLine, quote, to_money

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to shipping
    customer_id = Identifier()  # When present, must own the cart
    expected_total = Float()  # Total the customer was shown, if any


def _as_dict(value):
    if value is None:
        return None
    return json.loads(value) if isinstance(value, str) else value


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(ShoppingCart)
        product_repo = current_domain.repository_for(Product)

        cart = cart_repo.get(command.cart_id)
        if command.customer_id and str(cart.customer_id) != str(command.customer_id):
            raise ForbiddenError({"cart_id": ["Cart belongs to another customer"]})
        if cart.is_empty:
            raise EmptyCartError({"cart": ["Cannot place an order from an empty cart"]})

        # Check every line before reserving anything
        lines = [(item, product_repo.get(item.product_id)) for item in cart.items]
        shortages = {
            str(product.id): [f"{product.name}: {product.stock} available, {item.quantity} requested"]
            for item, product in lines
            if not product.is_active or not product.can_supply(item.quantity)
        }
        if shortages:
            raise StockUnavailableError(shortages)

        for item, product in lines:
            product.reserve_stock(item.quantity)

        # Snapshot prices once; the quote is computed from the snapshot only
        snapshot = [
            {
                "product_id": str(product.id),
                "name": product.name,
                "sku": product.sku,
                "unit_price": to_money(product.price),
                "quantity": item.quantity,
            }
            for item, product in lines
        ]
        price_quote = quote(
            [PriceLine.of(line["unit_price"], line["quantity"]) for line in snapshot],
            loyalty_eligible=is_customer_discount_eligible(cart.customer_id),
        )

        if command.expected_total is not None and to_money(command.expected_total) != price_quote.total:
            raise PriceChangedError(
                {
                    "total": [
                        f"Order total changed from {to_money(command.expected_total)} to {price_quote.total}"
                    ]
                }
            )

        order = Order.place(
            customer_id=cart.customer_id,
            lines=snapshot,
            quote=price_quote,
            shipping_address=_as_dict(command.shipping_address),
            billing_address=_as_dict(command.billing_address),
            cart_id=cart.id,
            currency=currency(),
        )
        current_domain.repository_for(Order).add(order)

        for _, product in lines:
            product_repo.add(product)

        cart.clear()
        cart_repo.add(cart)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            total=order.total,
        )
        return {"order_id": str(order.id), "order_number": order.order_number, "total": order.total}
