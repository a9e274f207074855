"""Order read models: full views for owners and staff, a public tracking view."""

from protean.utils.globals import current_domain

from storefront.context import RequestContext
from storefront.errors import ForbiddenError, NotFoundError
from storefront.order.order import Order


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "full_name": address.full_name,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def order_view(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id),
        "status": order.status,
        "fulfillment_status": order.fulfillment_status,
        "payment_status": order.payment_status,
        "payment_id": order.payment_id,
        "currency": order.currency,
        "subtotal": order.subtotal,
        "discount": order.discount,
        "tax": order.tax,
        "shipping": order.shipping,
        "total": order.total,
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "items": [
            {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "name": item.name,
                "sku": item.sku,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "line_total": item.line_total,
                "restocked": item.restocked,
            }
            for item in order.items
        ],
        "history": [
            {
                "from_status": change.from_status,
                "to_status": change.to_status,
                "actor_role": change.actor_role,
                "changed_at": change.changed_at.isoformat(),
            }
            for change in sorted(order.history, key=lambda c: c.changed_at)
        ],
        "cancellation_reason": order.cancellation_reason,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


def get_order(order_id, context: RequestContext) -> dict:
    """Full order view. Customers only see their own orders."""
    order = current_domain.repository_for(Order).get(order_id)
    if not context.is_staff and str(order.customer_id) != str(context.user_id):
        raise ForbiddenError({"order_id": ["Order belongs to another customer"]})
    return order_view(order)


def orders_for_customer(customer_id) -> list[dict]:
    orders = current_domain.repository_for(Order).for_customer(customer_id)
    return [order_view(o) for o in sorted(orders, key=lambda o: o.created_at, reverse=True)]


def track_order(order_number: str) -> dict:
    """Public tracking by order number: status only, no addresses or payment details."""
    order = current_domain.repository_for(Order).find_by_order_number(order_number)
    if order is None:
        raise NotFoundError({"order_number": [f"Order {order_number} not found"]})
    return {
        "order_number": order.order_number,
        "status": order.status,
        "fulfillment_status": order.fulfillment_status,
        "items": [{"name": i.name, "quantity": i.quantity} for i in order.items],
        "total": order.total,
        "currency": order.currency,
        "placed_at": order.created_at.isoformat() if order.created_at else None,
    }
