"""Order payment: charge requests and asynchronous gateway confirmations.

The core never talks to the gateway while handling a command. It raises
``PaymentRequested`` / ``RefundRequested`` and later consumes the gateway's
confirmation through ``ConfirmPayment``, which tolerates duplicate delivery.
A retried ``RequestPayment`` raises the outstanding intent again.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order

logger = structlog.get_logger(__name__)

SUCCEEDED = "succeeded"
REFUNDED = "refunded"
FAILED = "failed"


@storefront.command(part_of="Order")
class RequestPayment:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    status = String(required=True, max_length=50)
    amount = Float(required=True)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(RequestPayment)
    def request_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        requested = order.request_payment()
        repo.add(order)
        if requested:
            logger.info("payment_requested", order_id=str(order.id), amount=order.total)
        else:
            logger.info("payment_intent_resent", order_id=str(order.id), amount=order.total)
        return {"order_id": str(order.id), "payment_status": order.payment_status, "requested": requested}

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        status = command.status.lower()
        if status == SUCCEEDED:
            applied = order.confirm_capture(command.payment_id, command.amount)
        elif status == REFUNDED:
            applied = order.confirm_refund(command.payment_id, command.amount)
        elif status == FAILED:
            applied = order.record_payment_failure(command.payment_id, command.reason)
        else:
            raise ValidationError({"status": [f"Unknown payment status {command.status!r}"]})

        if applied:
            repo.add(order)
            logger.info(
                "payment_confirmation_applied",
                order_id=str(order.id),
                payment_id=command.payment_id,
                payment_status=order.payment_status,
            )
        else:
            logger.info("payment_confirmation_duplicate", order_id=str(order.id), payment_id=command.payment_id)
        return {"order_id": str(order.id), "payment_status": order.payment_status, "applied": applied}
