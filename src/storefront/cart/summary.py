"""Cart summary: a live, non-binding estimate from current product prices.

Goes through the same Pricing Engine as checkout, so an unchanged cart
quotes exactly what the order will charge.
"""

from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.catalogue.product import Product
from storefront.loyalty.ledger import is_customer_discount_eligible
from storefront.pricing.engine import PriceLine, PriceQuote, line_total, quote


def _live_lines(cart: ShoppingCart) -> list[tuple]:
    product_repo = current_domain.repository_for(Product)
    return [(item, product_repo.get(item.product_id)) for item in cart.items]


def quote_cart(cart: ShoppingCart) -> PriceQuote:
    lines = _live_lines(cart)
    return quote(
        [PriceLine.of(product.price, item.quantity) for item, product in lines],
        loyalty_eligible=is_customer_discount_eligible(cart.customer_id),
    )


def get_cart_summary(cart_id) -> dict:
    """``{subtotal, discount, tax, shipping, total}`` for the cart as it is now."""
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return quote_cart(cart).as_floats()


def cart_view(cart: ShoppingCart) -> dict:
    lines = _live_lines(cart)
    return {
        "cart_id": str(cart.id),
        "customer_id": str(cart.customer_id),
        "items": [
            {
                "item_id": str(item.id),
                "product_id": str(product.id),
                "name": product.name,
                "unit_price": product.price,
                "quantity": item.quantity,
                "line_total": float(line_total(product.price, item.quantity)),
                "in_stock": product.can_supply(item.quantity),
            }
            for item, product in lines
        ],
        "summary": quote_cart(cart).as_floats(),
    }
