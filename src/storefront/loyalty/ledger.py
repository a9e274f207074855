"""Loyalty ledger operations: commands and handler.

Each handler loads the account, posts through the aggregate and saves it once,
inside the handler's unit of work.
"""

import math

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ConflictError
from storefront.loyalty.account import LoyaltyAccount, TransactionKind
from storefront.pricing.engine import to_money

logger = structlog.get_logger(__name__)


@storefront.command(part_of="LoyaltyAccount")
class OpenLoyaltyAccount:
    customer_id = Identifier(required=True)


@storefront.command(part_of="LoyaltyAccount")
class CreditPoints:
    account_id = Identifier(required=True)
    points = Integer(required=True, min_value=1)
    order_id = Identifier()
    description = String(max_length=255)


@storefront.command(part_of="LoyaltyAccount")
class RedeemPoints:
    account_id = Identifier(required=True)
    points = Integer(required=True, min_value=1)
    description = String(max_length=255)
    order_id = Identifier()


@storefront.command(part_of="LoyaltyAccount")
class AdjustPoints:
    account_id = Identifier(required=True)
    points = Integer(required=True)
    description = String(required=True, max_length=255)


def account_for_customer(customer_id) -> LoyaltyAccount:
    """Return the customer's account, opening one (without bonus) on first access."""
    repo = current_domain.repository_for(LoyaltyAccount)
    account = repo.find_for_customer(customer_id)
    if account is None:
        account = LoyaltyAccount.open(customer_id)
        repo.add(account)
        logger.info("loyalty_account_opened_lazily", customer_id=str(customer_id))
    return account


def is_customer_discount_eligible(customer_id) -> bool:
    """Whether the customer's orders get the loyalty discount. Opens no account."""
    account = current_domain.repository_for(LoyaltyAccount).find_for_customer(customer_id)
    return bool(account and account.is_discount_eligible)


def account_view(account: LoyaltyAccount) -> dict:
    return {
        "account_id": str(account.id),
        "customer_id": str(account.customer_id),
        "points": account.points,
        "lifetime_points": account.lifetime_points,
        "completed_orders": account.completed_orders,
        "tier": account.tier,
        "qr_code": account.qr_code,
    }


@storefront.command_handler(part_of=LoyaltyAccount)
class LoyaltyLedgerHandler:
    @handle(OpenLoyaltyAccount)
    def open_account(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        if repo.find_for_customer(command.customer_id) is not None:
            raise ConflictError({"customer_id": ["Customer already has a loyalty account"]})

        account = LoyaltyAccount.open(command.customer_id, signup_bonus=True)
        repo.add(account)

        logger.info("loyalty_account_opened", account_id=str(account.id), customer_id=str(command.customer_id))
        return account_view(account)

    @handle(CreditPoints)
    def credit_points(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get(command.account_id)

        if account.earn(command.points, order_id=command.order_id, description=command.description):
            repo.add(account)
            logger.info(
                "points_credited",
                account_id=str(account.id),
                points=command.points,
                order_id=command.order_id,
            )
        else:
            logger.info("points_already_credited", account_id=str(account.id), order_id=command.order_id)
        return account_view(account)

    @handle(RedeemPoints)
    def redeem_points(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get(command.account_id)

        account.redeem(command.points, description=command.description, order_id=command.order_id)
        repo.add(account)

        logger.info("points_redeemed", account_id=str(account.id), points=command.points)
        return account_view(account)

    @handle(AdjustPoints)
    def adjust_points(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get(command.account_id)

        account.adjust(command.points, description=command.description)
        repo.add(account)

        logger.info("points_adjusted", account_id=str(account.id), points=command.points)
        return account_view(account)


def credit_completed_order(customer_id, order_id, order_total) -> int:
    """Credit ``floor(total)`` points and count the order, once per order.

    Returns the points posted; 0 when the order had already been credited.
    """
    repo = current_domain.repository_for(LoyaltyAccount)
    if any(t.kind == TransactionKind.EARNED.value for t in repo.order_entries(order_id)):
        return 0

    account = repo.find_for_customer(customer_id) or LoyaltyAccount.open(customer_id)
    if account.has_earned_for(order_id):
        return 0

    points = math.floor(to_money(order_total))
    if points > 0:
        account.earn(points, order_id=order_id, description="Points earned on completed order")
    account.record_completed_order()
    repo.add(account)

    logger.info("order_points_credited", order_id=str(order_id), account_id=str(account.id), points=points)
    return points
