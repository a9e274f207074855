"""Tests for the Order state machine — edges, roles and idempotent re-entry."""

import pytest
from protean.exceptions import ValidationError
from storefront.errors import ForbiddenError, InvalidTransitionError
from storefront.order.events import OrderCancelled, OrderStatusChanged, RefundRequested
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.pricing.engine import PriceLine, quote

ADDRESS = {"street": "1 High St", "city": "Leeds", "postal_code": "LS1 1AA", "country": "GB"}

_FORWARD = [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED]


def _make_order():
    lines = [{"product_id": "prod-1", "name": "Tea", "sku": "TEA-1", "unit_price": 15.0, "quantity": 2}]
    order = Order.place(
        customer_id="cust-001",
        lines=lines,
        quote=quote([PriceLine.of(15.0, 2)]),
        shipping_address=ADDRESS,
    )
    order._events.clear()
    return order


def _order_at(status):
    order = _make_order()
    for step in _FORWARD:
        if order.current_status == status:
            break
        order.advance_to(step, "Staff")
    order._events.clear()
    return order


def _paid(order):
    order.request_payment()
    order.confirm_capture("pay-001", order.total)
    order._events.clear()
    return order


class TestForwardTransitions:
    @pytest.mark.parametrize(
        "start, target",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.COMPLETED),
        ],
    )
    def test_valid_edge(self, start, target):
        order = _order_at(start)
        assert order.advance_to(target, "Staff") is True
        assert order.status == target.value
        assert isinstance(order._events[-1], OrderStatusChanged)

    @pytest.mark.parametrize(
        "start, target",
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.COMPLETED),
            (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
            (OrderStatus.COMPLETED, OrderStatus.PROCESSING),
        ],
    )
    def test_skipping_or_going_back_is_invalid(self, start, target):
        order = _order_at(start)
        with pytest.raises(InvalidTransitionError):
            order.advance_to(target, "Staff")
        assert order.status == start.value

    def test_customers_cannot_move_orders_forward(self):
        order = _make_order()
        with pytest.raises(ForbiddenError):
            order.advance_to(OrderStatus.PROCESSING, "Customer")

    def test_same_status_is_a_noop(self):
        order = _order_at(OrderStatus.COMPLETED)
        assert order.advance_to(OrderStatus.COMPLETED, "Staff") is False
        assert order._events == []

    def test_history_records_each_transition(self):
        order = _order_at(OrderStatus.SHIPPED)
        assert len(order.history) == 3
        assert {c.to_status for c in order.history} == {"Pending", "Processing", "Shipped"}


class TestCancellation:
    @pytest.mark.parametrize("start", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    def test_owner_can_cancel_early(self, start):
        order = _order_at(start)
        assert order.cancel(actor_id="cust-001", actor_role="Customer", reason="Changed mind") is True
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Changed mind"
        assert any(isinstance(e, OrderCancelled) for e in order._events)

    @pytest.mark.parametrize("start", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED])
    def test_cannot_cancel_after_shipping(self, start):
        order = _order_at(start)
        with pytest.raises(InvalidTransitionError):
            order.cancel(actor_id="cust-001", actor_role="Customer")

    def test_other_customer_cannot_cancel(self):
        order = _make_order()
        with pytest.raises(ForbiddenError):
            order.cancel(actor_id="cust-999", actor_role="Customer")

    def test_staff_can_cancel_any_order(self):
        order = _make_order()
        assert order.cancel(actor_id="staff-1", actor_role="Staff") is True

    def test_second_cancel_is_noop(self):
        order = _make_order()
        order.cancel(actor_id="cust-001", actor_role="Customer")
        order._events.clear()
        assert order.cancel(actor_id="cust-001", actor_role="Customer") is False
        assert order._events == []

    def test_unpaid_cancel_requests_no_refund(self):
        order = _make_order()
        order.cancel(actor_id="cust-001", actor_role="Customer")
        assert not any(isinstance(e, RefundRequested) for e in order._events)
        assert order.payment_status == PaymentStatus.UNPAID.value

    def test_paid_cancel_requests_refund(self):
        order = _paid(_make_order())
        order.cancel(actor_id="cust-001", actor_role="Customer")
        assert order.payment_status == PaymentStatus.REFUND_PENDING.value
        refund = next(e for e in order._events if isinstance(e, RefundRequested))
        assert refund.amount == order.total
        assert refund.payment_id == "pay-001"
        assert refund.currency == "GBP"


class TestRefund:
    def test_paid_order_can_be_refunded_by_staff(self):
        order = _paid(_order_at(OrderStatus.DELIVERED))
        assert order.refund("Manager") is True
        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.REFUND_PENDING.value

    def test_unpaid_order_cannot_be_refunded(self):
        order = _order_at(OrderStatus.DELIVERED)
        with pytest.raises(InvalidTransitionError):
            order.refund("Staff")

    def test_cancelled_order_is_not_refunded_again(self):
        order = _paid(_make_order())
        order.cancel(actor_id="cust-001", actor_role="Customer")
        with pytest.raises(InvalidTransitionError):
            order.refund("Staff")

    def test_customer_cannot_refund(self):
        order = _paid(_make_order())
        with pytest.raises(ForbiddenError):
            order.refund("Customer")

    def test_forward_transition_to_refunded_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            _make_order().advance_to(OrderStatus.REFUNDED, "Staff")


class TestUnknownStatus:
    def test_unknown_status_value(self):
        with pytest.raises(ValueError):
            OrderStatus("Teleported")

    def test_fulfillment_requires_staff(self):
        from storefront.order.order import FulfillmentStatus

        with pytest.raises(ValidationError):
            _make_order().update_fulfillment(FulfillmentStatus.FULFILLED, "Customer")
