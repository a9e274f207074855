"""Reversal Handler: undoes an order's loyalty effects when it is cancelled or refunded.

Nothing is deleted. Points earned on the order are taken back with a
compensating ADJUSTED entry (clamped at zero), and points redeemed against it
are returned with a positive ADJUSTED entry. Each compensation is tagged with
a reason and skipped when an entry with the same order and reason exists, so
retries post nothing. Orders with nothing left to compensate are recognised
from their own ledger entries, without loading the account.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.loyalty.account import LoyaltyAccount, ReversalReason, TransactionKind

logger = structlog.get_logger(__name__)

_COMPENSATED_BY = {
    TransactionKind.EARNED.value: ReversalReason.EARNED_REVERSAL.value,
    TransactionKind.REDEEMED.value: ReversalReason.REDEMPTION_REVERSAL.value,
}


def _has_outstanding_postings(entries) -> bool:
    kinds = {t.kind for t in entries}
    reasons = {t.reason for t in entries if t.reason}
    return any(kind in kinds and reason not in reasons for kind, reason in _COMPENSATED_BY.items())


def reverse_order_points(customer_id, order_id) -> dict:
    """Post the compensating entries for one order. Safe to call repeatedly."""
    repo = current_domain.repository_for(LoyaltyAccount)
    account = None
    if _has_outstanding_postings(repo.order_entries(order_id)):
        account = repo.find_for_customer(customer_id)
    if account is None:
        return {"earned_reversed": 0, "redemptions_restored": 0}

    entries_before = len(account.transactions)
    removed = account.reverse_earned(order_id)
    restored = account.reverse_redemptions(order_id)

    if len(account.transactions) != entries_before:
        repo.add(account)
        logger.info(
            "order_points_reversed",
            order_id=str(order_id),
            account_id=str(account.id),
            earned_reversed=removed,
            redemptions_restored=restored,
        )
    return {"earned_reversed": removed, "redemptions_restored": restored}
