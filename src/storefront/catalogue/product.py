"""Product aggregate: the catalogue/stock collaborator as seen by checkout.

Catalogue management itself lives elsewhere. Here a product is just what
checkout needs: a live price, a stock count and whether that count is
tracked. Stock moves only through ``reserve_stock`` and ``release_stock``;
``reserve_stock`` is the conditional decrement (decrement iff stock >= qty)
that decides the last-unit race.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from storefront.catalogue.events import (
    ProductRegistered,
    ProductRepriced,
    StockReceived,
    StockReleased,
    StockReserved,
)
from storefront.domain import storefront
from storefront.errors import StockUnavailableError


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=50, unique=True)
    category = String(max_length=100)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0)
    track_inventory = Boolean(default=True)
    is_active = Boolean(default=True)
    is_subscribable = Boolean(default=False)
    subscription_price = Float(min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    @classmethod
    def register(
        cls,
        name,
        sku,
        price,
        stock=0,
        category=None,
        track_inventory=True,
        is_subscribable=False,
        subscription_price=None,
    ):
        now = datetime.now(UTC)
        product = cls(
            name=name,
            sku=sku,
            category=category,
            price=price,
            stock=stock,
            track_inventory=track_inventory,
            is_subscribable=is_subscribable,
            subscription_price=subscription_price,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                sku=sku,
                price=price,
                stock=stock,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def can_supply(self, quantity: int) -> bool:
        if not self.track_inventory:
            return True
        return self.stock >= quantity

    def assert_can_supply(self, quantity: int) -> None:
        """Advisory check used by the cart; checkout calls ``reserve_stock``."""
        if not self.is_active:
            raise ValidationError({"product_id": [f"Product {self.sku} is not available"]})
        if not self.can_supply(quantity):
            raise StockUnavailableError(
                {"stock": [f"Only {self.stock} of {self.name} available, {quantity} requested"]}
            )

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def reprice(self, new_price: float) -> None:
        if new_price is None or new_price < 0:
            raise ValidationError({"price": ["Price must be zero or positive"]})

        previous = self.price
        now = datetime.now(UTC)
        self.price = new_price
        self.updated_at = now
        self.raise_(
            ProductRepriced(
                product_id=str(self.id),
                previous_price=previous,
                new_price=new_price,
                repriced_at=now,
            )
        )

    def reserve_stock(self, quantity: int) -> None:
        """Decrement stock iff enough is on hand; untracked products are a no-op."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if not self.track_inventory:
            return
        if self.stock < quantity:
            raise StockUnavailableError(
                {"stock": [f"Insufficient stock for {self.name}: {self.stock} left, {quantity} requested"]}
            )

        self.stock -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReserved(product_id=str(self.id), quantity=quantity, remaining=self.stock))

    def release_stock(self, quantity: int) -> None:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if not self.track_inventory:
            return

        self.stock += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReleased(product_id=str(self.id), quantity=quantity, remaining=self.stock))

    def receive_stock(self, quantity: int) -> None:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReceived(product_id=str(self.id), quantity=quantity, remaining=self.stock))

    def unit_price_for_subscription(self) -> float:
        return self.subscription_price if self.subscription_price is not None else self.price
