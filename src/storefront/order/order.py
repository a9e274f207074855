"""Order aggregate (CQRS): a priced, immutable record of a checkout.

Monetary fields are snapshots taken when the order is placed and are never
recomputed from live product prices. After placement only the status,
fulfillment status and payment fields change; an order is never deleted.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED → COMPLETED
    PENDING | PROCESSING → CANCELLED
    any paid order that is not cancelled → REFUNDED

Forward transitions are staff-only. A customer may cancel their own order
while it is PENDING or PROCESSING. Asking for the status the order is already
in is a no-op, which makes retried transitions safe.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront.context import ActorRole, is_staff
from storefront.domain import storefront
from storefront.errors import ConflictError, ForbiddenError, InvalidTransitionError
from storefront.order.events import (
    FulfillmentStatusChanged,
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentConfirmed,
    PaymentFailed,
    PaymentRequested,
    RefundConfirmed,
    RefundRequested,
)
from storefront.pricing.engine import line_total, to_money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class FulfillmentStatus(Enum):
    UNFULFILLED = "Unfulfilled"
    PARTIALLY_FULFILLED = "Partially_Fulfilled"
    FULFILLED = "Fulfilled"


class PaymentStatus(Enum):
    UNPAID = "Unpaid"
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUND_PENDING = "Refund_Pending"
    REFUNDED = "Refunded"


# State machine transition map. REFUNDED is handled separately: it depends on
# the payment having been captured, not on the current status alone.
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

_REFUNDABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
}

# Payment states in which money has been captured and not yet given back
_CAPTURED = {PaymentStatus.PAID}


def generate_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"ORD-{now.strftime('%Y%m%d')}-{uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """A shipping or billing address as captured at checkout.

    The order keeps its own copy; later changes to the customer's address
    book do not touch it.
    """

    full_name = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """One line of the order with its price frozen at checkout."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)
    restocked = Boolean(default=False)

    @invariant.post
    def line_total_matches_price_times_quantity(self):
        if self.unit_price is None or self.quantity is None or self.line_total is None:
            return
        if to_money(self.line_total) != line_total(self.unit_price, self.quantity):
            raise ValidationError({"line_total": ["Line total must equal unit price times quantity"]})


@storefront.entity(part_of="Order")
class StatusChange:
    from_status = String(max_length=50)
    to_status = String(required=True, max_length=50)
    actor_role = String(max_length=50)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    customer_id = Identifier(required=True)
    cart_id = Identifier()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fulfillment_status = String(choices=FulfillmentStatus, default=FulfillmentStatus.UNFULFILLED.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.UNPAID.value)
    payment_id = String(max_length=255)
    currency = String(max_length=3, default="GBP")
    subtotal = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    items = HasMany(OrderItem)
    history = HasMany(StatusChange)
    cancellation_reason = String(max_length=500)
    cancelled_by = Identifier()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        lines,
        quote,
        shipping_address,
        billing_address=None,
        cart_id=None,
        currency="GBP",
    ):
        """Create an order from snapshot lines and the quote computed on them.

        Args:
            lines: list of dicts with product_id, name, sku, unit_price, quantity.
            quote: the ``PriceQuote`` computed from exactly these lines.
        """
        now = datetime.now(UTC)
        items = [
            OrderItem(
                product_id=line["product_id"],
                name=line["name"],
                sku=line.get("sku"),
                unit_price=float(to_money(line["unit_price"])),
                quantity=line["quantity"],
                line_total=float(line_total(line["unit_price"], line["quantity"])),
            )
            for line in lines
        ]
        shipping = Address(**shipping_address)
        billing = Address(**billing_address) if billing_address else shipping
        amounts = quote.as_floats()

        order = cls(
            order_number=generate_order_number(now),
            customer_id=customer_id,
            cart_id=cart_id,
            status=OrderStatus.PENDING.value,
            fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
            payment_status=PaymentStatus.UNPAID.value,
            currency=currency,
            shipping_address=shipping,
            billing_address=billing,
            items=items,
            history=[
                StatusChange(
                    from_status=None,
                    to_status=OrderStatus.PENDING.value,
                    actor_role=ActorRole.CUSTOMER.value,
                    changed_at=now,
                )
            ],
            created_at=now,
            updated_at=now,
            **amounts,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                cart_id=str(cart_id) if cart_id else None,
                items=json.dumps(
                    [
                        {
                            "product_id": str(i.product_id),
                            "sku": i.sku,
                            "unit_price": i.unit_price,
                            "quantity": i.quantity,
                            "line_total": i.line_total,
                        }
                        for i in items
                    ]
                ),
                currency=currency,
                placed_at=now,
                **amounts,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return PaymentStatus(self.payment_status) in _CAPTURED

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        if new_status == OrderStatus.REFUNDED:
            return self.current_status in _REFUNDABLE_STATES and self.is_paid
        return new_status in _VALID_TRANSITIONS.get(self.current_status, set())

    def _assert_can_transition(self, new_status: OrderStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                {"status": [f"Cannot transition from {self.current_status.value} to {new_status.value}"]}
            )

    def _record_transition(self, new_status: OrderStatus, actor_role) -> None:
        now = datetime.now(UTC)
        previous = self.status
        role = ActorRole(actor_role).value if actor_role else None

        self.status = new_status.value
        self.updated_at = now
        self.add_history(
            StatusChange(
                from_status=previous,
                to_status=new_status.value,
                actor_role=role,
                changed_at=now,
            )
        )
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous,
                new_status=new_status.value,
                actor_role=role,
                changed_at=now,
            )
        )

    def advance_to(self, new_status: OrderStatus, actor_role) -> bool:
        """Move along the fulfilment path (PROCESSING to COMPLETED). Staff only.

        Returns False when the order is already in ``new_status``.
        """
        if new_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.PENDING):
            raise InvalidTransitionError(
                {"status": [f"{new_status.value} is not reached through a forward transition"]}
            )
        if not is_staff(actor_role):
            raise ForbiddenError({"actor_role": ["Only staff can move an order forward"]})
        if self.current_status == new_status:
            return False

        self._assert_can_transition(new_status)
        self._record_transition(new_status, actor_role)
        return True

    def cancel(self, actor_id, actor_role, reason=None) -> bool:
        """Cancel the order. Returns False when it was already cancelled.

        A captured payment is flagged ``Refund_Pending`` and a refund intent is
        raised; stock and loyalty reversals are done by the caller.
        """
        staff = is_staff(actor_role)
        if not staff and str(actor_id) != str(self.customer_id):
            raise ForbiddenError({"order_id": ["Customers can only cancel their own orders"]})
        if self.current_status == OrderStatus.CANCELLED:
            return False
        if self.current_status not in _CANCELLABLE_STATES:
            raise InvalidTransitionError(
                {"status": [f"Cannot cancel an order that is {self.current_status.value}"]}
            )

        now = datetime.now(UTC)
        self._record_transition(OrderStatus.CANCELLED, actor_role)
        self.cancellation_reason = reason
        self.cancelled_by = actor_id
        self.cancelled_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                cancelled_by=str(actor_id) if actor_id else None,
                reason=reason,
                cancelled_at=now,
            )
        )
        if self.is_paid:
            self._request_refund()
        return True

    def refund(self, actor_role) -> bool:
        """Staff refund of a paid order. Returns False when already refunded."""
        if not is_staff(actor_role):
            raise ForbiddenError({"actor_role": ["Only staff can refund an order"]})
        if self.current_status == OrderStatus.REFUNDED:
            return False

        self._assert_can_transition(OrderStatus.REFUNDED)
        self._record_transition(OrderStatus.REFUNDED, actor_role)
        self._request_refund()
        return True

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def update_fulfillment(self, fulfillment_status: FulfillmentStatus, actor_role) -> bool:
        if not is_staff(actor_role):
            raise ForbiddenError({"actor_role": ["Only staff can update fulfillment"]})
        if self.current_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise InvalidTransitionError(
                {"fulfillment_status": [f"Cannot fulfil an order that is {self.current_status.value}"]}
            )
        if self.fulfillment_status == fulfillment_status.value:
            return False

        previous = self.fulfillment_status
        self.fulfillment_status = fulfillment_status.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            FulfillmentStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=fulfillment_status.value,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Restock bookkeeping
    # -------------------------------------------------------------------
    def lines_to_restock(self) -> list:
        return [item for item in self.items if not item.restocked]

    def mark_restocked(self, item) -> None:
        item.restocked = True
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def request_payment(self) -> bool:
        """Raise a charge intent.

        Returns False when a charge is already in flight; its intent is raised
        again under the same idempotency key.
        """
        if self.current_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise InvalidTransitionError({"payment": [f"Cannot take payment for a {self.status} order"]})

        payment = PaymentStatus(self.payment_status)
        if payment == PaymentStatus.PENDING:
            # The earlier intent may never have reached the gateway
            self._raise_charge_intent()
            return False
        if payment not in (PaymentStatus.UNPAID, PaymentStatus.FAILED):
            raise ConflictError({"payment": [f"Order payment is already {payment.value}"]})

        self.payment_status = PaymentStatus.PENDING.value
        self._raise_charge_intent()
        return True

    def confirm_capture(self, payment_id: str, amount: float) -> bool:
        """Apply a gateway capture confirmation. Duplicate deliveries are no-ops."""
        if PaymentStatus(self.payment_status) in (
            PaymentStatus.PAID,
            PaymentStatus.REFUND_PENDING,
            PaymentStatus.REFUNDED,
        ):
            return False
        if to_money(amount) != to_money(self.total):
            raise ValidationError({"amount": [f"Captured amount {amount} does not match order total {self.total}"]})

        self.payment_status = PaymentStatus.PAID.value
        self.payment_id = payment_id
        self.updated_at = datetime.now(UTC)
        self.raise_(PaymentConfirmed(order_id=str(self.id), payment_id=payment_id, amount=self.total))

        # Money arrived for an order that no longer exists commercially
        if self.current_status == OrderStatus.CANCELLED:
            self._request_refund()
        return True

    def confirm_refund(self, payment_id: str | None, amount: float) -> bool:
        if PaymentStatus(self.payment_status) == PaymentStatus.REFUNDED:
            return False
        if PaymentStatus(self.payment_status) not in (PaymentStatus.PAID, PaymentStatus.REFUND_PENDING):
            raise ConflictError({"payment": [f"No captured payment to refund, payment is {self.payment_status}"]})

        self.payment_status = PaymentStatus.REFUNDED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            RefundConfirmed(
                order_id=str(self.id),
                payment_id=payment_id or self.payment_id,
                amount=amount,
            )
        )
        return True

    def record_payment_failure(self, payment_id: str | None, reason: str | None = None) -> bool:
        if PaymentStatus(self.payment_status) != PaymentStatus.PENDING:
            return False

        self.payment_status = PaymentStatus.FAILED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(PaymentFailed(order_id=str(self.id), payment_id=payment_id, reason=reason))
        return True

    def resend_refund(self) -> bool:
        """Raise the refund intent again for a refund the gateway has not settled.

        Returns False when no refund is outstanding. The idempotency key is the
        same as the first request, so a gateway that already accepted it ignores
        the repeat.
        """
        if PaymentStatus(self.payment_status) != PaymentStatus.REFUND_PENDING:
            return False
        self._raise_refund_intent()
        return True

    def _raise_charge_intent(self) -> None:
        self.updated_at = datetime.now(UTC)
        self.raise_(
            PaymentRequested(
                order_id=str(self.id),
                amount=self.total,
                currency=self.currency,
                idempotency_key=f"charge-{self.id}",
            )
        )

    def _request_refund(self) -> None:
        self.payment_status = PaymentStatus.REFUND_PENDING.value
        self._raise_refund_intent()

    def _raise_refund_intent(self) -> None:
        self.updated_at = datetime.now(UTC)
        self.raise_(
            RefundRequested(
                order_id=str(self.id),
                payment_id=self.payment_id,
                amount=self.total,
                currency=self.currency,
                idempotency_key=f"refund-{self.id}",
            )
        )


@storefront.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        found = self._dao.query.filter(order_number=order_number).all().items
        if not found:
            return None
        return self.get(found[0].id)

    def for_customer(self, customer_id) -> list[Order]:
        found = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return [self.get(o.id) for o in found]
