"""Domain events for the Subscription aggregate."""

from protean.fields import Date, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Subscription")
class SubscriptionCreated:
    __version__ = 1

    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    interval = String(required=True)
    items = Text(required=True)  # JSON: list of {product_id, unit_price, quantity}
    next_billing_date = Date(required=True)


@storefront.event(part_of="Subscription")
class SubscriptionStatusChanged:
    __version__ = 1

    subscription_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    next_billing_date = Date()


@storefront.event(part_of="Subscription")
class DeliverySkipped:
    __version__ = 1

    subscription_id = Identifier(required=True)
    skipped_date = Date(required=True)
    next_billing_date = Date(required=True)


@storefront.event(part_of="Subscription")
class SubscriptionItemsUpdated:
    __version__ = 1

    subscription_id = Identifier(required=True)
    items = Text(required=True)
