"""Domain events for the FlashSale aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="FlashSale")
class FlashSaleCreated:
    __version__ = 1

    flash_sale_id = Identifier(required=True)
    product_id = Identifier(required=True)
    flash_price = Float(required=True)
    quantity = Integer(required=True)
    start_time = DateTime(required=True)
    end_time = DateTime(required=True)
    created_by = Identifier(required=True)


@marketplace.event(part_of="FlashSale")
class FlashSalePurchased:
    __version__ = 1

    flash_sale_id = Identifier(required=True)
    product_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining_quantity = Integer(required=True)
    purchased_at = DateTime(required=True)


@marketplace.event(part_of="FlashSale")
class FlashSaleEnded:
    """The sale closed, either because its hour ran out or because it sold out."""

    __version__ = 1

    flash_sale_id = Identifier(required=True)
    product_id = Identifier(required=True)
    status = String(required=True)
    sold_quantity = Integer(required=True)
    ended_at = DateTime(required=True)


@marketplace.event(part_of="FlashSale")
class FlashSaleRevised:
    __version__ = 1

    flash_sale_id = Identifier(required=True)
    product_id = Identifier(required=True)
    flash_price = Float(required=True)
    quantity = Integer(required=True)
    revised_at = DateTime(required=True)
