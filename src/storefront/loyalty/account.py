"""LoyaltyAccount aggregate and its append-only ledger.

Every change to ``points`` or ``lifetime_points`` goes through ``_post``,
which appends a ``LoyaltyTransaction`` in the same call. The transactions
are children of the account, so the ledger insert and the balance update
are written by one repository save and commit together.

``tier`` is a cached value of ``tier_for(lifetime_points)``; it is refreshed
after every posting and never set directly.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InsufficientPointsError
from storefront.loyalty.events import LoyaltyAccountOpened, PointsPosted, TierChanged
from storefront.loyalty.tier import Tier, tier_for
from storefront.pricing.engine import is_loyalty_eligible

SIGNUP_BONUS_POINTS = 100


class TransactionKind(Enum):
    EARNED = "Earned"
    BONUS = "Bonus"
    REDEEMED = "Redeemed"
    ADJUSTED = "Adjusted"


class ReversalReason(Enum):
    EARNED_REVERSAL = "earned_reversal"
    REDEMPTION_REVERSAL = "redemption_reversal"


@storefront.entity(part_of="LoyaltyAccount")
class LoyaltyTransaction:
    kind = String(required=True, choices=TransactionKind)
    points = Integer(required=True)  # Signed: credits positive, debits negative
    order_id = Identifier()
    reason = String(max_length=50)
    description = String(max_length=255)
    created_at = DateTime()


@storefront.aggregate
class LoyaltyAccount:
    customer_id = Identifier(required=True)
    points = Integer(default=0)
    lifetime_points = Integer(default=0)
    completed_orders = Integer(default=0)
    tier = String(choices=Tier, default=Tier.BRONZE.value)
    qr_code = String(max_length=50)
    transactions = HasMany(LoyaltyTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def balance_cannot_be_negative(self):
        if self.points is not None and self.points < 0:
            raise ValidationError({"points": ["Points balance cannot be negative"]})

    @invariant.post
    def lifetime_points_cannot_be_negative(self):
        if self.lifetime_points is not None and self.lifetime_points < 0:
            raise ValidationError({"lifetime_points": ["Lifetime points cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, customer_id, signup_bonus: bool = False):
        """Open an account. Signup grants the welcome bonus; lazy opens do not."""
        now = datetime.now(UTC)
        account = cls(
            customer_id=customer_id,
            points=0,
            lifetime_points=0,
            completed_orders=0,
            tier=Tier.BRONZE.value,
            qr_code=f"LOYAL-{uuid4().hex[:12].upper()}",
            created_at=now,
            updated_at=now,
        )
        account.raise_(
            LoyaltyAccountOpened(
                account_id=str(account.id),
                customer_id=str(customer_id),
                qr_code=account.qr_code,
                opened_at=now,
            )
        )
        if signup_bonus:
            account.grant_bonus(SIGNUP_BONUS_POINTS, "Welcome bonus")
        return account

    # -------------------------------------------------------------------
    # Ledger queries
    # -------------------------------------------------------------------
    @property
    def ledger_balance(self) -> int:
        return sum(t.points for t in self.transactions)

    @property
    def is_discount_eligible(self) -> bool:
        return is_loyalty_eligible(self.completed_orders)

    def entries_for(self, order_id, kind: TransactionKind | None = None, reason: str | None = None):
        return [
            t
            for t in self.transactions
            if str(t.order_id) == str(order_id)
            and (kind is None or t.kind == kind.value)
            and (reason is None or t.reason == reason)
        ]

    def has_earned_for(self, order_id) -> bool:
        return bool(self.entries_for(order_id, TransactionKind.EARNED))

    # -------------------------------------------------------------------
    # Postings
    # -------------------------------------------------------------------
    def earn(self, points: int, order_id=None, description: str | None = None) -> bool:
        """Credit purchase points. At most one EARNED entry per order.

        Returns False (and posts nothing) when the order was already credited.
        """
        if points <= 0:
            raise ValidationError({"points": ["Points to credit must be positive"]})
        if order_id is not None and self.has_earned_for(order_id):
            return False

        self._post(
            TransactionKind.EARNED,
            points,
            lifetime_delta=points,
            order_id=order_id,
            description=description or "Points earned",
        )
        return True

    def grant_bonus(self, points: int, description: str) -> None:
        if points <= 0:
            raise ValidationError({"points": ["Bonus points must be positive"]})
        self._post(TransactionKind.BONUS, points, lifetime_delta=points, description=description)

    def redeem(self, points: int, description: str | None = None, order_id=None) -> None:
        if points <= 0:
            raise ValidationError({"points": ["Points to redeem must be positive"]})
        if points > self.points:
            raise InsufficientPointsError(
                {"points": [f"Cannot redeem {points} points, balance is {self.points}"]}
            )
        self._post(
            TransactionKind.REDEEMED,
            -points,
            order_id=order_id,
            description=description or "Points redeemed",
        )

    def adjust(self, points: int, description: str) -> None:
        """Manual staff correction of the spendable balance."""
        if points == 0:
            raise ValidationError({"points": ["Adjustment cannot be zero"]})
        if self.points + points < 0:
            raise InsufficientPointsError(
                {"points": [f"Adjustment of {points} would take the balance below zero"]}
            )
        self._post(TransactionKind.ADJUSTED, points, description=description)

    def reverse_earned(self, order_id) -> int:
        """Compensate the order's EARNED entry, clamped at zero.

        The posted amount is what was actually removed from the balance, so the
        ledger still sums to ``points``. Returns the points removed; 0 when there
        is nothing to reverse or the reversal was already posted.
        """
        earned = self.entries_for(order_id, TransactionKind.EARNED)
        if not earned or self.entries_for(order_id, reason=ReversalReason.EARNED_REVERSAL.value):
            return 0

        earned_points = sum(t.points for t in earned)
        removed = min(earned_points, self.points)
        self._post(
            TransactionKind.ADJUSTED,
            -removed,
            lifetime_delta=-min(earned_points, self.lifetime_points),
            order_id=order_id,
            reason=ReversalReason.EARNED_REVERSAL.value,
            description=f"Reversal of {earned_points} points earned on cancelled order",
        )
        return removed

    def reverse_redemptions(self, order_id) -> int:
        """Give back points redeemed against the order. Returns the points restored."""
        redeemed = self.entries_for(order_id, TransactionKind.REDEEMED)
        if not redeemed or self.entries_for(order_id, reason=ReversalReason.REDEMPTION_REVERSAL.value):
            return 0

        restored = -sum(t.points for t in redeemed)
        self._post(
            TransactionKind.ADJUSTED,
            restored,
            order_id=order_id,
            reason=ReversalReason.REDEMPTION_REVERSAL.value,
            description="Redeemed points returned for cancelled order",
        )
        return restored

    def record_completed_order(self) -> None:
        self.completed_orders = (self.completed_orders or 0) + 1
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _post(
        self,
        kind: TransactionKind,
        points: int,
        lifetime_delta: int = 0,
        order_id=None,
        reason: str | None = None,
        description: str | None = None,
    ) -> LoyaltyTransaction:
        now = datetime.now(UTC)
        transaction = LoyaltyTransaction(
            kind=kind.value,
            points=points,
            order_id=order_id,
            reason=reason,
            description=description,
            created_at=now,
        )
        self.add_transactions(transaction)

        self.points = (self.points or 0) + points
        self.lifetime_points = (self.lifetime_points or 0) + lifetime_delta
        self.updated_at = now

        self.raise_(
            PointsPosted(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                transaction_id=str(transaction.id),
                kind=kind.value,
                points=points,
                order_id=str(order_id) if order_id else None,
                reason=reason,
                balance=self.points,
                lifetime_points=self.lifetime_points,
            )
        )
        self._refresh_tier()
        return transaction

    def _refresh_tier(self) -> None:
        derived = tier_for(self.lifetime_points).value
        if derived == self.tier:
            return

        previous = self.tier
        self.tier = derived
        self.raise_(
            TierChanged(
                account_id=str(self.id),
                customer_id=str(self.customer_id),
                previous_tier=previous,
                new_tier=derived,
                lifetime_points=self.lifetime_points,
            )
        )


@storefront.repository(part_of=LoyaltyAccount)
class LoyaltyAccountRepository:
    def find_for_customer(self, customer_id) -> LoyaltyAccount | None:
        found = self._dao.query.filter(customer_id=str(customer_id)).all().items
        if not found:
            return None
        return self.get(found[0].id)

    def find_by_qr_code(self, qr_code: str) -> LoyaltyAccount | None:
        found = self._dao.query.filter(qr_code=qr_code).all().items
        if not found:
            return None
        return self.get(found[0].id)

    def order_entries(self, order_id) -> list[LoyaltyTransaction]:
        """Ledger entries that reference one order, read without loading any account.

        An order belongs to a single customer, so these all sit on one account.
        """
        dao = current_domain.repository_for(LoyaltyTransaction)._dao
        return dao.query.filter(order_id=str(order_id)).all().items
