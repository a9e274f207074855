"""Read-side helpers for the loyalty program."""

from protean.utils.globals import current_domain

from storefront.errors import NotFoundError
from storefront.loyalty.account import LoyaltyAccount
from storefront.loyalty.ledger import account_for_customer, account_view
from storefront.loyalty.tier import Tier, next_tier, points_to_next_tier


def loyalty_stats(customer_id) -> dict:
    account = account_for_customer(customer_id)
    upcoming = next_tier(Tier(account.tier))
    return {
        **account_view(account),
        "next_tier": upcoming.value if upcoming else None,
        "points_to_next_tier": points_to_next_tier(account.lifetime_points),
        "discount_eligible": account.is_discount_eligible,
    }


def transaction_history(customer_id) -> list[dict]:
    """Ledger entries, newest first."""
    account = account_for_customer(customer_id)
    entries = sorted(account.transactions, key=lambda t: t.created_at, reverse=True)
    return [
        {
            "transaction_id": str(t.id),
            "kind": t.kind,
            "points": t.points,
            "order_id": str(t.order_id) if t.order_id else None,
            "reason": t.reason,
            "description": t.description,
            "created_at": t.created_at.isoformat() if t.created_at else None,
        }
        for t in entries
    ]


def find_by_qr_code(qr_code: str) -> dict:
    """Point-of-sale lookup of an account by its printed QR code."""
    account = current_domain.repository_for(LoyaltyAccount).find_by_qr_code(qr_code)
    if account is None:
        raise NotFoundError({"qr_code": ["No loyalty account for this code"]})
    return account_view(account)
