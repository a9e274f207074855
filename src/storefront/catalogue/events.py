"""Domain events for the Product aggregate (catalogue/stock port)."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class ProductRegistered:
    """A product was made available to the storefront."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    sku = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)
    registered_at = DateTime(required=True)


@storefront.event(part_of="Product")
class ProductRepriced:
    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)
    repriced_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockReserved:
    """Stock was decremented for a checkout."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@storefront.event(part_of="Product")
class StockReleased:
    """Stock was returned to the shelf (cancellation restock)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@storefront.event(part_of="Product")
class StockReceived:
    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
