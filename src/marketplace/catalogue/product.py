"""Product aggregate — the catalogue record orders reserve stock against.

Only the fields checkout needs live here: price, stock, sold count, the
owning seller and whether the product is on sale at all. The aggregate is
versioned, so two writers racing on the same product cannot both commit;
the loser reloads and re-checks stock.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientStock


@marketplace.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    sold_count = Integer(default=0, min_value=0)
    seller_id = Identifier(required=True)
    is_active = Boolean(default=True)
    image_url = String(max_length=1000)
    weight_kg = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, stock, seller_id, image_url=None, weight_kg=0.0, is_active=True):
        if price <= 0:
            raise ValidationError({"price": ["Price must be greater than zero"]})

        now = datetime.now(UTC)
        return cls(
            name=name,
            price=price,
            stock=stock,
            sold_count=0,
            seller_id=seller_id,
            image_url=image_url,
            weight_kg=weight_kg or 0.0,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def withdraw_stock(self, quantity):
        """Take ``quantity`` units out of stock, refusing to go below zero."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if self.stock < quantity:
            raise InsufficientStock(self.name, available=self.stock, requested=quantity)

        self.stock -= quantity
        self.updated_at = datetime.now(UTC)

    def return_stock(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock += quantity
        self.updated_at = datetime.now(UTC)

    def record_sale(self, quantity):
        self.sold_count = (self.sold_count or 0) + quantity
        self.updated_at = datetime.now(UTC)

    def reverse_sale(self, quantity):
        # Floored at zero: sold counts predating this service are not tracked
        self.sold_count = max(0, (self.sold_count or 0) - quantity)
        self.updated_at = datetime.now(UTC)
