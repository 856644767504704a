"""Cart aggregate — the customer's basket before checkout.

Only what checkout touches is modelled: adding lines and clearing the cart
once an order has been placed from it.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.domain import marketplace


@marketplace.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)


@marketplace.aggregate
class Cart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    total_amount = Float(default=0.0)
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id):
        return cls(customer_id=customer_id, total_amount=0.0, updated_at=datetime.now(UTC))

    def add_item(self, product_id, quantity, unit_price):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
        else:
            self.add_items(CartItem(product_id=product_id, quantity=quantity, unit_price=unit_price))

        self._recalculate()

    def clear(self):
        for item in list(self.items):
            self.remove_items(item)
        self._recalculate()

    def _recalculate(self):
        self.total_amount = round(sum(i.unit_price * i.quantity for i in self.items), 2)
        self.updated_at = datetime.now(UTC)


def cart_for_customer(customer_id):
    """Return the customer's cart, or None if they never created one."""
    return current_domain.repository_for(Cart)._dao.query.filter(customer_id=str(customer_id)).all().first
