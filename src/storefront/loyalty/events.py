"""Domain events for the LoyaltyAccount aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="LoyaltyAccount")
class LoyaltyAccountOpened:
    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    qr_code = String(required=True)
    opened_at = DateTime(required=True)


@storefront.event(part_of="LoyaltyAccount")
class PointsPosted:
    """A ledger entry was appended and the balance moved with it."""

    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    kind = String(required=True)
    points = Integer(required=True)
    order_id = Identifier()
    reason = String()
    balance = Integer(required=True)
    lifetime_points = Integer(required=True)


@storefront.event(part_of="LoyaltyAccount")
class TierChanged:
    """The derived tier moved up (or down, after a reversal)."""

    __version__ = 1

    account_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    previous_tier = String(required=True)
    new_tier = String(required=True)
    lifetime_points = Integer(required=True)
