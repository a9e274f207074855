"""Forwards payment intents raised by orders to the payment gateway.

Delivery never fails the command that raised the intent. A gateway error or a
rejected request is logged and the order stays ``Pending`` / ``Refund_Pending``;
retrying ``RequestPayment`` or ``CancelOrder`` raises the intent again under
the same idempotency key.
"""

import structlog
from protean import handle

from storefront.domain import storefront
from storefront.order.events import PaymentRequested, RefundRequested
from storefront.order.order import Order
from storefront.payments.gateway import get_gateway
from storefront.payments.gateway.port import GatewayAck

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=Order)
class PaymentRequestDispatcher:
    @handle(PaymentRequested)
    def on_payment_requested(self, event: PaymentRequested) -> GatewayAck | None:
        return self._send(
            "charge",
            event.order_id,
            lambda gateway: gateway.request_charge(
                order_id=str(event.order_id),
                amount=event.amount,
                currency=event.currency,
                idempotency_key=event.idempotency_key,
            ),
        )

    @handle(RefundRequested)
    def on_refund_requested(self, event: RefundRequested) -> GatewayAck | None:
        return self._send(
            "refund",
            event.order_id,
            lambda gateway: gateway.request_refund(
                order_id=str(event.order_id),
                payment_id=event.payment_id,
                amount=event.amount,
                currency=event.currency,
                idempotency_key=event.idempotency_key,
            ),
        )

    @staticmethod
    def _send(request_type, order_id, call) -> GatewayAck | None:
        try:
            ack = call(get_gateway())
        except Exception:
            logger.exception("gateway_request_failed", request_type=request_type, order_id=str(order_id))
            return None

        if ack.accepted:
            logger.info(
                "gateway_request_accepted",
                request_type=request_type,
                order_id=str(order_id),
                reference=ack.reference,
            )
        else:
            logger.warning(
                "gateway_request_rejected",
                request_type=request_type,
                order_id=str(order_id),
                reason=ack.failure_reason,
            )
        return ack
