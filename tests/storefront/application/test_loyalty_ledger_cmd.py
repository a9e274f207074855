"""Application tests for loyalty ledger commands and read helpers."""

import pytest
from protean import current_domain
from storefront.errors import ConflictError, InsufficientPointsError, NotFoundError
from storefront.loyalty.account import LoyaltyAccount
from storefront.loyalty.ledger import (
    AdjustPoints,
    CreditPoints,
    OpenLoyaltyAccount,
    RedeemPoints,
    credit_completed_order,
    is_customer_discount_eligible,
)
from storefront.loyalty.reversal import reverse_order_points
from storefront.loyalty.stats import find_by_qr_code, loyalty_stats, transaction_history


def _open(customer_id="cust-001"):
    return current_domain.process(OpenLoyaltyAccount(customer_id=customer_id), asynchronous=False)


class TestOpenAccount:
    def test_signup_bonus(self):
        view = _open()
        assert view["points"] == 100
        assert view["lifetime_points"] == 100
        assert view["tier"] == "Bronze"

    def test_one_account_per_customer(self):
        _open()
        with pytest.raises(ConflictError):
            _open()

    def test_stats_open_account_lazily_without_bonus(self):
        stats = loyalty_stats("cust-002")
        assert stats["points"] == 0
        assert stats["next_tier"] == "Silver"
        assert stats["points_to_next_tier"] == 1000
        assert stats["discount_eligible"] is False
        assert current_domain.repository_for(LoyaltyAccount).find_for_customer("cust-002") is not None


class TestPostings:
    def test_credit_is_idempotent_per_order(self):
        account_id = _open()["account_id"]
        for _ in range(2):
            view = current_domain.process(
                CreditPoints(account_id=account_id, points=50, order_id="ord-1"),
                asynchronous=False,
            )
        assert view["points"] == 150

    def test_over_redeem_rejected_without_side_effects(self):
        account_id = _open()["account_id"]
        with pytest.raises(InsufficientPointsError):
            current_domain.process(RedeemPoints(account_id=account_id, points=500), asynchronous=False)

        stored = current_domain.repository_for(LoyaltyAccount).get(account_id)
        assert stored.points == 100
        assert len(stored.transactions) == 1

    def test_adjust(self):
        account_id = _open()["account_id"]
        view = current_domain.process(
            AdjustPoints(account_id=account_id, points=-25, description="Duplicate bonus"),
            asynchronous=False,
        )
        assert view["points"] == 75
        assert view["lifetime_points"] == 100

    def test_history_is_newest_first(self):
        account_id = _open()["account_id"]
        current_domain.process(RedeemPoints(account_id=account_id, points=30), asynchronous=False)

        history = transaction_history("cust-001")
        assert [entry["kind"] for entry in history] == ["Redeemed", "Bonus"]
        assert history[0]["points"] == -30

    def test_tier_upgrade_persists(self):
        account_id = _open()["account_id"]
        view = current_domain.process(
            CreditPoints(account_id=account_id, points=900, order_id="ord-1"),
            asynchronous=False,
        )
        assert view["tier"] == "Silver"


class TestQrLookup:
    def test_lookup_by_code(self):
        view = _open()
        assert find_by_qr_code(view["qr_code"])["account_id"] == view["account_id"]

    def test_unknown_code(self):
        with pytest.raises(NotFoundError):
            find_by_qr_code("LOYAL-DOESNOTEXIST")


class TestDiscountEligibility:
    def test_customer_without_account_is_not_eligible(self):
        assert is_customer_discount_eligible("cust-404") is False
        assert current_domain.repository_for(LoyaltyAccount).find_for_customer("cust-404") is None

    def test_tenth_completed_order_makes_customer_eligible(self):
        account = LoyaltyAccount.open("cust-001")
        for _ in range(9):
            account.record_completed_order()
        repo = current_domain.repository_for(LoyaltyAccount)
        repo.add(account)
        assert is_customer_discount_eligible("cust-001") is False

        account = repo.find_for_customer("cust-001")
        account.record_completed_order()
        repo.add(account)
        assert is_customer_discount_eligible("cust-001") is True

    def test_cart_summary_and_checkout_quote_the_same_discount(self, make_product, fill_cart, place_order):
        from storefront.cart.summary import get_cart_summary
        from storefront.order.order import Order

        account = LoyaltyAccount.open("cust-001")
        for _ in range(10):
            account.record_completed_order()
        current_domain.repository_for(LoyaltyAccount).add(account)

        cart_id = fill_cart("cust-001", (make_product(price=30.0), 1))
        summary = get_cart_summary(cart_id)
        order = current_domain.repository_for(Order).get(place_order(cart_id)["order_id"])

        assert summary["discount"] == order.discount == 6.0
        assert summary["total"] == order.total


class TestOrderEntries:
    def _repo(self):
        return current_domain.repository_for(LoyaltyAccount)

    def test_entries_are_looked_up_per_order(self):
        _open()
        credit_completed_order("cust-001", "ord-001", 57.60)
        credit_completed_order("cust-001", "ord-002", 20.00)

        [entry] = self._repo().order_entries("ord-001")
        assert entry.kind == "Earned"
        assert entry.points == 57
        assert self._repo().order_entries("ord-404") == []

    def test_reversal_entry_is_found_with_its_order(self):
        _open()
        credit_completed_order("cust-001", "ord-001", 57.60)
        reverse_order_points("cust-001", "ord-001")

        entries = self._repo().order_entries("ord-001")
        assert {(t.kind, t.reason) for t in entries} == {("Earned", None), ("Adjusted", "earned_reversal")}

    def test_repeat_credit_is_skipped(self):
        _open()
        assert credit_completed_order("cust-001", "ord-001", 57.60) == 57
        assert credit_completed_order("cust-001", "ord-001", 57.60) == 0

        account = self._repo().find_for_customer("cust-001")
        assert account.points == 157
        assert account.completed_orders == 1

    def test_order_without_postings_reverses_nothing(self):
        _open()
        assert reverse_order_points("cust-001", "ord-001") == {"earned_reversed": 0, "redemptions_restored": 0}
        assert self._repo().find_for_customer("cust-001").points == 100

    def test_completed_reversal_is_not_posted_twice(self):
        _open()
        credit_completed_order("cust-001", "ord-001", 57.60)
        assert reverse_order_points("cust-001", "ord-001")["earned_reversed"] == 57
        assert reverse_order_points("cust-001", "ord-001")["earned_reversed"] == 0

        account = self._repo().find_for_customer("cust-001")
        assert account.points == 100
        assert account.points == account.ledger_balance
