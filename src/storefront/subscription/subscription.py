"""Subscription aggregate: the recurring counterpart of an order.

Items carry a price snapshot (the product's subscription price when it has
one), and quotes go through the same Pricing Engine as carts and orders.

Lifecycle:
    ACTIVE ⇄ PAUSED
    ACTIVE | PAUSED → CANCELLED (terminal)
"""

import calendar
import json
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import InvalidTransitionError
from storefront.pricing.engine import PriceLine, PriceQuote, quote, to_money
from storefront.subscription.events import (
    DeliverySkipped,
    SubscriptionCreated,
    SubscriptionItemsUpdated,
    SubscriptionStatusChanged,
)


class SubscriptionInterval(Enum):
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class SubscriptionStatus(Enum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    CANCELLED = "Cancelled"


_MONTHS = {
    SubscriptionInterval.MONTHLY: 1,
    SubscriptionInterval.QUARTERLY: 3,
    SubscriptionInterval.YEARLY: 12,
}


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance(start: date, interval: SubscriptionInterval) -> date:
    """The billing date one interval after ``start`` (month ends are clamped)."""
    if interval == SubscriptionInterval.WEEKLY:
        return start + timedelta(days=7)
    return _add_months(start, _MONTHS[interval])


@storefront.entity(part_of="Subscription")
class SubscriptionItem:
    product_id = Identifier(required=True)
    name = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)


@storefront.aggregate
class Subscription:
    customer_id = Identifier(required=True)
    interval = String(required=True, choices=SubscriptionInterval)
    status = String(choices=SubscriptionStatus, default=SubscriptionStatus.ACTIVE.value)
    next_billing_date = Date()
    items = HasMany(SubscriptionItem)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id, interval: SubscriptionInterval, lines, today: date | None = None):
        """Start an active subscription, first billed one interval from today.

        Args:
            lines: list of dicts with product_id, name, unit_price, quantity.
        """
        if not lines:
            raise ValidationError({"items": ["A subscription needs at least one item"]})

        now = datetime.now(UTC)
        subscription = cls(
            customer_id=customer_id,
            interval=interval.value,
            status=SubscriptionStatus.ACTIVE.value,
            next_billing_date=advance(today or now.date(), interval),
            items=[cls._item(line) for line in lines],
            created_at=now,
            updated_at=now,
        )
        subscription.raise_(
            SubscriptionCreated(
                subscription_id=str(subscription.id),
                customer_id=str(customer_id),
                interval=interval.value,
                items=subscription._items_json(),
                next_billing_date=subscription.next_billing_date,
            )
        )
        return subscription

    @staticmethod
    def _item(line) -> SubscriptionItem:
        return SubscriptionItem(
            product_id=line["product_id"],
            name=line.get("name"),
            unit_price=float(to_money(line["unit_price"])),
            quantity=line["quantity"],
        )

    def _items_json(self) -> str:
        return json.dumps(
            [
                {"product_id": str(i.product_id), "unit_price": i.unit_price, "quantity": i.quantity}
                for i in self.items
            ]
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> SubscriptionStatus:
        return SubscriptionStatus(self.status)

    def quote(self, loyalty_eligible: bool = False) -> PriceQuote:
        return quote([PriceLine.of(i.unit_price, i.quantity) for i in self.items], loyalty_eligible)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def _change_status(self, new_status: SubscriptionStatus) -> None:
        previous = self.status
        self.status = new_status.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            SubscriptionStatusChanged(
                subscription_id=str(self.id),
                customer_id=str(self.customer_id),
                previous_status=previous,
                new_status=new_status.value,
                next_billing_date=self.next_billing_date,
            )
        )

    def pause(self) -> None:
        if self.current_status != SubscriptionStatus.ACTIVE:
            raise InvalidTransitionError({"status": ["Only active subscriptions can be paused"]})
        self._change_status(SubscriptionStatus.PAUSED)

    def resume(self, today: date | None = None) -> None:
        if self.current_status != SubscriptionStatus.PAUSED:
            raise InvalidTransitionError({"status": ["Only paused subscriptions can be resumed"]})
        self.next_billing_date = advance(today or datetime.now(UTC).date(), SubscriptionInterval(self.interval))
        self._change_status(SubscriptionStatus.ACTIVE)

    def cancel(self) -> None:
        if self.current_status == SubscriptionStatus.CANCELLED:
            raise InvalidTransitionError({"status": ["Subscription is already cancelled"]})
        self._change_status(SubscriptionStatus.CANCELLED)

    def skip_next_delivery(self) -> None:
        if self.current_status != SubscriptionStatus.ACTIVE:
            raise InvalidTransitionError({"status": ["Only active subscriptions can skip a delivery"]})

        skipped = self.next_billing_date
        self.next_billing_date = advance(skipped, SubscriptionInterval(self.interval))
        self.updated_at = datetime.now(UTC)
        self.raise_(
            DeliverySkipped(
                subscription_id=str(self.id),
                skipped_date=skipped,
                next_billing_date=self.next_billing_date,
            )
        )

    def replace_items(self, lines) -> None:
        if self.current_status == SubscriptionStatus.CANCELLED:
            raise InvalidTransitionError({"status": ["Cannot change a cancelled subscription"]})
        if not lines:
            raise ValidationError({"items": ["A subscription needs at least one item"]})

        for item in list(self.items):
            self.remove_items(item)
        for line in lines:
            self.add_items(self._item(line))
        self.updated_at = datetime.now(UTC)
        self.raise_(SubscriptionItemsUpdated(subscription_id=str(self.id), items=self._items_json()))


@storefront.repository(part_of=Subscription)
class SubscriptionRepository:
    def for_customer(self, customer_id) -> list[Subscription]:
        found = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return [self.get(s.id) for s in found]
