"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order was created from a cart with snapshot prices and totals."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    cart_id = Identifier()
    items = Text(required=True)  # JSON: list of {product_id, sku, unit_price, quantity, line_total}
    subtotal = Float(required=True)
    discount = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    currency = String(max_length=3, required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor_role = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    cancelled_by = Identifier()
    reason = String()
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class FulfillmentStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)


@storefront.event(part_of="Order")
class PaymentRequested:
    """Charge intent for the payment collaborator. Settlement arrives later."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, required=True)
    idempotency_key = String(required=True)


@storefront.event(part_of="Order")
class PaymentConfirmed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String(required=True)
    amount = Float(required=True)


@storefront.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    reason = String()


@storefront.event(part_of="Order")
class RefundRequested:
    """Refund intent for the payment collaborator, emitted on cancellation or refund."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    amount = Float(required=True)
    currency = String(max_length=3, required=True)
    idempotency_key = String(required=True)


@storefront.event(part_of="Order")
class RefundConfirmed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    amount = Float(required=True)
