"""Fire-and-forget notifications for order status changes and loyalty milestones.

Nothing in the core waits on these. A failed delivery is logged and dropped.
"""

import structlog
from protean import handle

from storefront.domain import storefront
from storefront.loyalty.account import LoyaltyAccount
from storefront.loyalty.events import TierChanged
from storefront.loyalty.tier import is_upgrade
from storefront.notifications import get_notifier
from storefront.order.events import OrderPlaced, OrderStatusChanged
from storefront.order.order import Order

logger = structlog.get_logger(__name__)

ORDER_PLACED = "order_placed"
ORDER_STATUS_CHANGED = "order_status_changed"
TIER_UPGRADED = "loyalty_tier_upgraded"


def notify(recipient_id, template: str, context: dict) -> bool:
    try:
        result = get_notifier().send(str(recipient_id), template, context)
    except Exception:
        logger.exception("notification_failed", recipient_id=str(recipient_id), template=template)
        return False

    if result.get("status") != "sent":
        logger.warning(
            "notification_not_delivered",
            recipient_id=str(recipient_id),
            template=template,
            error=result.get("error"),
        )
        return False
    return True


@storefront.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced):
        notify(
            event.customer_id,
            ORDER_PLACED,
            {"order_number": event.order_number, "total": event.total, "currency": event.currency},
        )

    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged):
        notify(
            event.customer_id,
            ORDER_STATUS_CHANGED,
            {
                "order_number": event.order_number,
                "previous_status": event.previous_status,
                "new_status": event.new_status,
            },
        )


@storefront.event_handler(part_of=LoyaltyAccount)
class LoyaltyMilestoneHandler:
    @handle(TierChanged)
    def on_tier_changed(self, event: TierChanged):
        # Reversals that drop a tier stay quiet
        if not is_upgrade(event.previous_tier, event.new_tier):
            return
        notify(
            event.customer_id,
            TIER_UPGRADED,
            {"tier": event.new_tier, "lifetime_points": event.lifetime_points},
        )
