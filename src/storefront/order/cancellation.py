"""Order cancellation and refund: command, handler and the shared flow.

Cancelling sets the status, flags a captured payment for refund, reverses the
order's loyalty postings and puts reserved stock back. Each of those steps is
guarded (terminal status, reversal reasons, per-line restock markers) so that
a retried cancel changes nothing except re-raising a refund intent the gateway
has not settled yet.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.loyalty.reversal import reverse_order_points
from storefront.order.order import Order
from storefront.order.tracking import order_view

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier()
    actor_role = String(required=True, max_length=50)
    reason = String(max_length=500)


def restock(order: Order) -> int:
    """Return every not-yet-restocked line to the shelf. Returns units released."""
    product_repo = current_domain.repository_for(Product)
    released = 0
    for item in order.lines_to_restock():
        product = product_repo.get(item.product_id)
        product.release_stock(item.quantity)
        product_repo.add(product)
        order.mark_restocked(item)
        released += item.quantity
    return released


def _resend_outstanding_refund(order: Order) -> None:
    if order.resend_refund():
        current_domain.repository_for(Order).add(order)
        logger.info("refund_intent_resent", order_id=str(order.id))


def cancel_order(order: Order, actor_id, actor_role, reason=None) -> bool:
    """Run the cancellation flow on a loaded order. False when already cancelled."""
    if not order.cancel(actor_id=actor_id, actor_role=actor_role, reason=reason):
        logger.info("order_already_cancelled", order_id=str(order.id))
        _resend_outstanding_refund(order)
        return False

    reversal = reverse_order_points(order.customer_id, order.id)
    released = restock(order)
    current_domain.repository_for(Order).add(order)

    logger.info(
        "order_cancelled",
        order_id=str(order.id),
        payment_status=order.payment_status,
        units_restocked=released,
        **reversal,
    )
    return True


def refund_order(order: Order, actor_role) -> bool:
    """Staff refund of a paid order. Loyalty is reversed; stock stays shipped."""
    if not order.refund(actor_role):
        _resend_outstanding_refund(order)
        return False

    reversal = reverse_order_points(order.customer_id, order.id)
    current_domain.repository_for(Order).add(order)

    logger.info("order_refunded", order_id=str(order.id), **reversal)
    return True


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        cancel_order(
            order,
            actor_id=command.actor_id,
            actor_role=command.actor_role,
            reason=command.reason,
        )
        return order_view(order)

