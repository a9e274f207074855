"""Order status transitions: commands and handler.

The handler re-reads the order inside its unit of work and validates the edge
before writing. First entry into COMPLETED credits ``floor(total)`` loyalty
points and counts the order; CANCELLED and REFUNDED run their own flows.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.loyalty.ledger import credit_completed_order
from storefront.order.cancellation import cancel_order, refund_order
from storefront.order.order import FulfillmentStatus, Order, OrderStatus
from storefront.order.tracking import order_view

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=50)
    actor_role = String(required=True, max_length=50)
    actor_id = Identifier()
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class UpdateFulfillmentStatus:
    order_id = Identifier(required=True)
    fulfillment_status = String(required=True, max_length=50)
    actor_role = String(required=True, max_length=50)


def _parse(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({field: [f"Unknown value {value!r}, expected one of: {allowed}"]}) from None


@storefront.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        target = _parse(OrderStatus, command.new_status, "new_status")
        order = current_domain.repository_for(Order).get(command.order_id)

        if target == OrderStatus.CANCELLED:
            cancel_order(order, actor_id=command.actor_id, actor_role=command.actor_role, reason=command.reason)
            return order_view(order)

        if target == OrderStatus.REFUNDED:
            refund_order(order, actor_role=command.actor_role)
            return order_view(order)

        if not order.advance_to(target, command.actor_role):
            logger.info("order_status_unchanged", order_id=str(order.id), status=order.status)
            return order_view(order)

        current_domain.repository_for(Order).add(order)
        if target == OrderStatus.COMPLETED:
            credit_completed_order(order.customer_id, order.id, order.total)

        logger.info("order_status_changed", order_id=str(order.id), status=order.status)
        return order_view(order)

    @handle(UpdateFulfillmentStatus)
    def update_fulfillment_status(self, command):
        target = _parse(FulfillmentStatus, command.fulfillment_status, "fulfillment_status")
        order = current_domain.repository_for(Order).get(command.order_id)

        if order.update_fulfillment(target, command.actor_role):
            current_domain.repository_for(Order).add(order)
            logger.info("fulfillment_status_changed", order_id=str(order.id), status=order.fulfillment_status)
        return order_view(order)
