"""Catalogue port commands: registering products, repricing and receiving stock.

Catalogue management proper happens elsewhere; these exist so the
storefront has products to sell and so price changes can be exercised.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import ConflictError

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=50)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    category = String(max_length=100)
    track_inventory = Boolean(default=True)
    is_subscribable = Boolean(default=False)
    subscription_price = Float(min_value=0.0)


@storefront.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)


@storefront.command(part_of="Product")
class ReceiveStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command_handler(part_of=Product)
class ProductStockHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_sku(command.sku) is not None:
            raise ConflictError({"sku": [f"Product with SKU {command.sku} already exists"]})

        product = Product.register(
            name=command.name,
            sku=command.sku,
            price=command.price,
            stock=command.stock or 0,
            category=command.category,
            track_inventory=command.track_inventory,
            is_subscribable=command.is_subscribable,
            subscription_price=command.subscription_price,
        )
        repo.add(product)
        logger.info("product_registered", product_id=str(product.id), sku=product.sku)
        return str(product.id)

    @handle(ChangeProductPrice)
    def change_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.reprice(command.price)
        repo.add(product)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.receive_stock(command.quantity)
        repo.add(product)
