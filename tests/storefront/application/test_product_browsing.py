"""Application tests for product browsing and catalogue port commands."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.catalogue.browsing import ProductFilter, ProductSort, browse_products
from storefront.catalogue.product import Product
from storefront.catalogue.stock import ReceiveStock, RegisterProduct
from storefront.errors import ConflictError


@pytest.fixture()
def catalogue(make_product):
    return {
        "kettle": make_product(name="Steel Kettle", price=40.0, stock=3, category="kitchen"),
        "teapot": make_product(name="Clay Teapot", price=25.0, stock=0, category="kitchen"),
        "tea": make_product(name="Green Tea", price=6.0, stock=50, category="pantry", is_subscribable=True),
        "gift": make_product(name="Gift Card", price=50.0, stock=0, category="gifts", track_inventory=False),
    }


def _names(products):
    return [p["name"] for p in products]


class TestBrowse:
    def test_filter_by_category(self, catalogue):
        products = browse_products(ProductFilter(category="kitchen"), sort=ProductSort.NAME)
        assert _names(products) == ["Clay Teapot", "Steel Kettle"]

    def test_search_is_case_insensitive(self, catalogue):
        assert _names(browse_products(ProductFilter(search="tea"), sort=ProductSort.NAME)) == [
            "Clay Teapot",
            "Green Tea",
        ]

    def test_price_range(self, catalogue):
        products = browse_products(ProductFilter(min_price=10, max_price=40), sort=ProductSort.PRICE_LOW_TO_HIGH)
        assert _names(products) == ["Clay Teapot", "Steel Kettle"]

    def test_in_stock_only_keeps_untracked(self, catalogue):
        products = browse_products(ProductFilter(in_stock_only=True), sort=ProductSort.NAME)
        assert _names(products) == ["Gift Card", "Green Tea", "Steel Kettle"]

    def test_subscribable_only(self, catalogue):
        assert _names(browse_products(ProductFilter(subscribable_only=True))) == ["Green Tea"]

    def test_sort_price_descending_and_paging(self, catalogue):
        products = browse_products(sort=ProductSort.PRICE_HIGH_TO_LOW, limit=2, offset=1)
        assert _names(products) == ["Steel Kettle", "Clay Teapot"]

    def test_invalid_price_range(self):
        with pytest.raises(ValidationError):
            ProductFilter(min_price=50, max_price=10)


class TestCataloguePort:
    def test_duplicate_sku_conflicts(self, make_product):
        make_product(sku="DUP-1")
        with pytest.raises(ConflictError):
            current_domain.process(RegisterProduct(name="Again", sku="DUP-1", price=1.0), asynchronous=False)

    def test_receive_stock(self, make_product):
        product_id = make_product(stock=1)
        current_domain.process(ReceiveStock(product_id=product_id, quantity=4), asynchronous=False)
        assert current_domain.repository_for(Product).get(product_id).stock == 5
