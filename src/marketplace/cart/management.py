"""Cart commands and handlers."""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart, cart_for_customer
from marketplace.catalogue import get_catalog_store
from marketplace.domain import marketplace

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(default=1, min_value=1)


@marketplace.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@marketplace.command_handler(part_of=Cart)
class CartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = get_catalog_store().get_product(command.product_id)

        repo = current_domain.repository_for(Cart)
        cart = cart_for_customer(command.customer_id) or Cart.create(command.customer_id)
        cart.add_item(product.id, command.quantity, product.price)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        clear_cart_for(command.customer_id)


def clear_cart_for(customer_id):
    """Empty the customer's cart if they have one. Runs inside the caller's Unit of Work."""
    cart = cart_for_customer(customer_id)
    if cart is None:
        logger.debug("cart.none_to_clear", customer_id=str(customer_id))
        return

    cart.clear()
    current_domain.repository_for(Cart).add(cart)
