"""FlashSale aggregate — a time-boxed, quantity-capped discount on one product.

Status is stored, and a periodic sweep keeps it current. Between sweeps the
stored value may lag: a sale can read ``active`` after its hour is up. The
purchase path therefore never trusts the stored status and re-derives it
from an explicit ``now`` through ``derive_status``, the same function the
sweep uses.

State Machine:
    active → sold_out   (sold_quantity reaches quantity)
    active → expired    (now passes end_time)

A running sale may be revised (price, size) but never below what it has
already sold.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.flash_sale.events import FlashSaleCreated, FlashSaleEnded, FlashSalePurchased, FlashSaleRevised
from marketplace.utils.timestamps import as_utc


class FlashSaleStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SOLD_OUT = "sold_out"


SALE_DURATION = timedelta(hours=1)


def derive_status(sale, now) -> FlashSaleStatus:
    """Status of ``sale`` at ``now``. Terminal stored states are kept as they are."""
    stored = FlashSaleStatus(sale.status)
    if stored != FlashSaleStatus.ACTIVE:
        return stored
    if (sale.sold_quantity or 0) >= sale.quantity:
        return FlashSaleStatus.SOLD_OUT
    if as_utc(now) > as_utc(sale.end_time):
        return FlashSaleStatus.EXPIRED
    return FlashSaleStatus.ACTIVE


@marketplace.aggregate
class FlashSale:
    product_id = Identifier(required=True)
    flash_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    sold_quantity = Integer(default=0, min_value=0)
    start_time = DateTime(required=True)
    end_time = DateTime(required=True)
    status = String(choices=FlashSaleStatus, default=FlashSaleStatus.ACTIVE.value)
    created_by = Identifier(required=True)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, product_id, product_price, flash_price, quantity, created_by, start_time=None):
        if flash_price >= product_price:
            raise ValidationError({"flash_price": ["Flash sale price must be lower than regular price"]})

        now = datetime.now(UTC)
        start_time = as_utc(start_time) or now
        sale = cls(
            product_id=product_id,
            flash_price=flash_price,
            quantity=quantity,
            sold_quantity=0,
            start_time=start_time,
            end_time=start_time + SALE_DURATION,
            status=FlashSaleStatus.ACTIVE.value,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        sale.raise_(
            FlashSaleCreated(
                flash_sale_id=str(sale.id),
                product_id=str(product_id),
                flash_price=flash_price,
                quantity=quantity,
                start_time=sale.start_time,
                end_time=sale.end_time,
                created_by=str(created_by),
            )
        )
        return sale

    @property
    def remaining_quantity(self):
        return max(0, self.quantity - (self.sold_quantity or 0))

    @property
    def is_sold_out(self):
        return self.status == FlashSaleStatus.SOLD_OUT.value

    def _end(self, status, at):
        self.status = status.value
        self.updated_at = at
        self.raise_(
            FlashSaleEnded(
                flash_sale_id=str(self.id),
                product_id=str(self.product_id),
                status=status.value,
                sold_quantity=self.sold_quantity or 0,
                ended_at=at,
            )
        )

    def refresh_status(self, now) -> bool:
        """Persist the status derived at ``now``. Returns True if it changed."""
        derived = derive_status(self, now)
        if derived.value == self.status:
            return False
        self._end(derived, as_utc(now))
        return True

    def record_purchase(self, customer_id, quantity, now):
        """Sell ``quantity`` units at ``now``, never beyond the sale's cap."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        status = derive_status(self, now)
        if status == FlashSaleStatus.EXPIRED:
            raise ValidationError({"flash_sale": ["Flash sale has expired"]})
        if status == FlashSaleStatus.SOLD_OUT:
            raise ValidationError({"flash_sale": ["Flash sale is sold out"]})
        if as_utc(now) < as_utc(self.start_time):
            raise ValidationError({"flash_sale": ["Flash sale has not started yet"]})
        if (self.sold_quantity or 0) + quantity > self.quantity:
            raise ValidationError(
                {"quantity": [f"Only {self.remaining_quantity} left in this flash sale"]}
            )

        at = as_utc(now)
        self.sold_quantity = (self.sold_quantity or 0) + quantity
        self.updated_at = at
        self.raise_(
            FlashSalePurchased(
                flash_sale_id=str(self.id),
                product_id=str(self.product_id),
                customer_id=str(customer_id),
                quantity=quantity,
                remaining_quantity=self.remaining_quantity,
                purchased_at=at,
            )
        )
        if self.sold_quantity >= self.quantity:
            self._end(FlashSaleStatus.SOLD_OUT, at)

    def revise(self, now, product_price, product_stock, flash_price=None, quantity=None):
        """Change the price or size of a sale still running at ``now``.

        ``product_stock`` is the stock left after earlier sale purchases, so
        it bounds the units still to be sold, not the sale's total size.
        """
        if flash_price is None and quantity is None:
            raise ValidationError({"flash_sale": ["Nothing to update"]})
        if derive_status(self, now) != FlashSaleStatus.ACTIVE:
            raise ValidationError({"flash_sale": ["Cannot update expired or sold out flash sale"]})

        sold = self.sold_quantity or 0
        if quantity is not None:
            if quantity <= sold:
                raise ValidationError({"quantity": [f"{sold} units are already sold"]})
            if quantity - sold > product_stock:
                raise ValidationError({"quantity": ["Flash sale quantity cannot exceed product stock"]})
        if flash_price is not None and flash_price >= product_price:
            raise ValidationError({"flash_price": ["Flash sale price must be lower than regular price"]})

        if quantity is not None:
            self.quantity = quantity
        if flash_price is not None:
            self.flash_price = flash_price
        self.updated_at = as_utc(now)
        self.raise_(
            FlashSaleRevised(
                flash_sale_id=str(self.id),
                product_id=str(self.product_id),
                flash_price=self.flash_price,
                quantity=self.quantity,
                revised_at=self.updated_at,
            )
        )
