"""Cart item management: commands and handler.

Stock checks made here are advisory. They stop a customer from filling a
cart with more than is on the shelf, but only checkout's conditional
decrement is binding.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import ForbiddenError

logger = structlog.get_logger(__name__)


@storefront.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    customer_id = Identifier()  # When present, must own the cart


@storefront.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    customer_id = Identifier()


@storefront.command(part_of="ShoppingCart")
class ClearCart:
    cart_id = Identifier(required=True)
    customer_id = Identifier()


def _owned_cart(repo, cart_id, customer_id) -> ShoppingCart:
    cart = repo.get(cart_id)
    if customer_id and str(cart.customer_id) != str(customer_id):
        raise ForbiddenError({"cart_id": ["Cart belongs to another customer"]})
    return cart


def cart_for_customer(customer_id) -> ShoppingCart | None:
    return current_domain.repository_for(ShoppingCart).find_for_customer(customer_id)


@storefront.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = current_domain.repository_for(Product).get(command.product_id)

        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.find_for_customer(command.customer_id) or ShoppingCart.create(command.customer_id)

        existing = cart.line_for(product.id)
        product.assert_can_supply(command.quantity + (existing.quantity if existing else 0))

        item = cart.add_item(product_id=product.id, quantity=command.quantity)
        repo.add(cart)

        logger.info(
            "cart_item_added",
            cart_id=str(cart.id),
            product_id=str(product.id),
            quantity=command.quantity,
        )
        return {"cart_id": str(cart.id), "item_id": str(item.id)}

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _owned_cart(repo, command.cart_id, command.customer_id)

        item = cart.item(command.item_id)
        current_domain.repository_for(Product).get(item.product_id).assert_can_supply(command.quantity)

        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _owned_cart(repo, command.cart_id, command.customer_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _owned_cart(repo, command.cart_id, command.customer_id)
        cart.clear()
        repo.add(cart)
