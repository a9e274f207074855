"""Subscription management: commands, handler and queries."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import ForbiddenError
from storefront.loyalty.account import LoyaltyAccount
from storefront.subscription.subscription import Subscription, SubscriptionInterval

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Subscription")
class CreateSubscription:
    customer_id = Identifier(required=True)
    interval = String(required=True, max_length=20)
    items = Text(required=True)  # JSON: list of {product_id, quantity}


@storefront.command(part_of="Subscription")
class PauseSubscription:
    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)


@storefront.command(part_of="Subscription")
class ResumeSubscription:
    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)


@storefront.command(part_of="Subscription")
class CancelSubscription:
    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)


@storefront.command(part_of="Subscription")
class SkipNextDelivery:
    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)


@storefront.command(part_of="Subscription")
class UpdateSubscriptionItems:
    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}


def _interval(value) -> SubscriptionInterval:
    try:
        return SubscriptionInterval(value.title())
    except ValueError:
        raise ValidationError({"interval": [f"Unknown interval {value!r}"]}) from None


def _priced_lines(items) -> list[dict]:
    """Snapshot subscription prices for the requested products."""
    requested = json.loads(items) if isinstance(items, str) else items
    product_repo = current_domain.repository_for(Product)

    lines = []
    for entry in requested:
        product = product_repo.get(entry["product_id"])
        if not product.is_active or not product.is_subscribable:
            raise ValidationError({"items": [f"{product.name} is not available for subscription"]})
        if int(entry["quantity"]) < 1:
            raise ValidationError({"items": ["Quantity must be at least 1"]})
        lines.append(
            {
                "product_id": str(product.id),
                "name": product.name,
                "unit_price": product.unit_price_for_subscription(),
                "quantity": int(entry["quantity"]),
            }
        )
    return lines


def _owned(repo, subscription_id, customer_id) -> Subscription:
    subscription = repo.get(subscription_id)
    if str(subscription.customer_id) != str(customer_id):
        raise ForbiddenError({"subscription_id": ["Subscription belongs to another customer"]})
    return subscription


@storefront.command_handler(part_of=Subscription)
class SubscriptionHandler:
    @handle(CreateSubscription)
    def create_subscription(self, command):
        subscription = Subscription.create(
            customer_id=command.customer_id,
            interval=_interval(command.interval),
            lines=_priced_lines(command.items),
        )
        current_domain.repository_for(Subscription).add(subscription)
        logger.info("subscription_created", subscription_id=str(subscription.id), interval=subscription.interval)
        return str(subscription.id)

    @handle(PauseSubscription)
    def pause(self, command):
        repo = current_domain.repository_for(Subscription)
        subscription = _owned(repo, command.subscription_id, command.customer_id)
        subscription.pause()
        repo.add(subscription)

    @handle(ResumeSubscription)
    def resume(self, command):
        repo = current_domain.repository_for(Subscription)
        subscription = _owned(repo, command.subscription_id, command.customer_id)
        subscription.resume()
        repo.add(subscription)

    @handle(CancelSubscription)
    def cancel(self, command):
        repo = current_domain.repository_for(Subscription)
        subscription = _owned(repo, command.subscription_id, command.customer_id)
        subscription.cancel()
        repo.add(subscription)

    @handle(SkipNextDelivery)
    def skip_next_delivery(self, command):
        repo = current_domain.repository_for(Subscription)
        subscription = _owned(repo, command.subscription_id, command.customer_id)
        subscription.skip_next_delivery()
        repo.add(subscription)

    @handle(UpdateSubscriptionItems)
    def update_items(self, command):
        repo = current_domain.repository_for(Subscription)
        subscription = _owned(repo, command.subscription_id, command.customer_id)
        subscription.replace_items(_priced_lines(command.items))
        repo.add(subscription)


def subscription_quote(subscription: Subscription) -> dict:
    """Per-delivery price of the subscription for its owner."""
    account = current_domain.repository_for(LoyaltyAccount).find_for_customer(subscription.customer_id)
    return subscription.quote(loyalty_eligible=bool(account and account.is_discount_eligible)).as_floats()


def subscription_view(subscription: Subscription) -> dict:
    return {
        "subscription_id": str(subscription.id),
        "customer_id": str(subscription.customer_id),
        "interval": subscription.interval,
        "status": subscription.status,
        "next_billing_date": subscription.next_billing_date.isoformat() if subscription.next_billing_date else None,
        "items": [
            {
                "product_id": str(i.product_id),
                "name": i.name,
                "unit_price": i.unit_price,
                "quantity": i.quantity,
            }
            for i in subscription.items
        ],
        "quote": subscription_quote(subscription),
    }


def subscriptions_for_customer(customer_id) -> list[dict]:
    subscriptions = current_domain.repository_for(Subscription).for_customer(customer_id)
    return [subscription_view(s) for s in sorted(subscriptions, key=lambda s: s.created_at, reverse=True)]
