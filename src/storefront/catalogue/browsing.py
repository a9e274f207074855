"""Typed product browsing.

``ProductFilter`` and ``ProductSort`` list every supported option explicitly;
the repository turns them into one query.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from protean.utils.query import Q

from storefront.catalogue.product import Product
from storefront.domain import storefront


class ProductSort(Enum):
    NEWEST = "newest"
    PRICE_LOW_TO_HIGH = "price_asc"
    PRICE_HIGH_TO_LOW = "price_desc"
    NAME = "name"


_ORDERING = {
    ProductSort.NEWEST: "-created_at",
    ProductSort.PRICE_LOW_TO_HIGH: "price",
    ProductSort.PRICE_HIGH_TO_LOW: "-price",
    ProductSort.NAME: "name",
}

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class ProductFilter:
    category: str | None = None
    search: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    in_stock_only: bool = False
    subscribable_only: bool = False

    def __post_init__(self):
        if self.min_price is not None and self.min_price < 0:
            raise ValidationError({"min_price": ["Minimum price cannot be negative"]})
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValidationError({"max_price": ["Maximum price must not be below minimum price"]})

    def criteria(self) -> dict:
        criteria = {"is_active": True}
        if self.category:
            criteria["category"] = self.category
        if self.search:
            criteria["name__icontains"] = self.search
        if self.min_price is not None:
            criteria["price__gte"] = self.min_price
        if self.max_price is not None:
            criteria["price__lte"] = self.max_price
        if self.subscribable_only:
            criteria["is_subscribable"] = True
        return criteria


@storefront.repository(part_of=Product)
class ProductRepository:
    def browse(
        self,
        product_filter: ProductFilter,
        sort: ProductSort = ProductSort.NEWEST,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Product]:
        query = self._dao.query.filter(**product_filter.criteria())
        if product_filter.in_stock_only:
            query = query.filter(Q(track_inventory=False) | Q(stock__gt=0))
        return query.order_by(_ORDERING[sort]).offset(offset).limit(min(limit, MAX_PAGE_SIZE)).all().items

    def find_by_sku(self, sku: str) -> Product | None:
        found = self._dao.query.filter(sku=sku).all().items
        return found[0] if found else None


def browse_products(
    product_filter: ProductFilter | None = None,
    sort: ProductSort = ProductSort.NEWEST,
    limit: int = 20,
    offset: int = 0,
) -> list[dict]:
    repo = current_domain.repository_for(Product)
    products = repo.browse(product_filter or ProductFilter(), sort, limit, offset)
    return [product_view(p) for p in products]


def product_view(product: Product) -> dict:
    return {
        "product_id": str(product.id),
        "name": product.name,
        "sku": product.sku,
        "category": product.category,
        "price": product.price,
        "stock": product.stock,
        "track_inventory": product.track_inventory,
        "in_stock": product.can_supply(1),
        "is_subscribable": product.is_subscribable,
        "subscription_price": product.subscription_price,
    }
