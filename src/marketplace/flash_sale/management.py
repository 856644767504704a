"""Flash sale commands and handler.

``SweepFlashSales`` is meant to be triggered periodically by an external
scheduler (cron, K8s CronJob) through the maintenance endpoint or
``manage.py sweep-flash-sales``. Purchases re-derive status themselves, so a
late sweep only makes listings stale, never oversells.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.catalogue import get_catalog_store
from marketplace.domain import marketplace
from marketplace.errors import AccessDenied
from marketplace.flash_sale.flash_sale import FlashSale, FlashSaleStatus, derive_status
from marketplace.order.order import ActorRole

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="FlashSale")
class CreateFlashSale:
    product_id = Identifier(required=True)
    flash_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    created_by = Identifier(required=True)
    creator_role = String(required=True, max_length=20)
    start_time = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="FlashSale")
class PurchaseFlashSale:
    flash_sale_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    quantity = Integer(default=1, min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="FlashSale")
class UpdateFlashSale:
    flash_sale_id = Identifier(required=True)
    flash_price = Float(min_value=0.0)
    quantity = Integer(min_value=1)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="FlashSale")
class DeleteFlashSale:
    flash_sale_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@marketplace.command(part_of="FlashSale")
class SweepFlashSales:
    """Persist expired / sold-out status for sales still stored as active."""

    as_of = DateTime()  # Optional: defaults to now


def _stored_active_sales():
    return (
        current_domain.repository_for(FlashSale)
        ._dao.query.filter(status=FlashSaleStatus.ACTIVE.value)
        .limit(None)
        .all()
        .items
    )


@marketplace.command_handler(part_of=FlashSale)
class FlashSaleHandler:
    @handle(CreateFlashSale)
    def create_flash_sale(self, command):
        if command.creator_role != ActorRole.ADMIN.value:
            raise AccessDenied("Not authorized as an admin")

        product = get_catalog_store().get_product(command.product_id)
        if not product.is_active:
            raise ValidationError({"product_id": ["Product is not active"]})
        if command.quantity > product.stock:
            raise ValidationError({"quantity": ["Flash sale quantity cannot exceed product stock"]})

        now = datetime.now(UTC)
        for sale in _stored_active_sales():
            if str(sale.product_id) == str(product.id) and derive_status(sale, now) == FlashSaleStatus.ACTIVE:
                raise ValidationError({"product_id": ["Product already has an active flash sale"]})

        sale = FlashSale.create(
            product_id=product.id,
            product_price=product.price,
            flash_price=command.flash_price,
            quantity=command.quantity,
            created_by=command.created_by,
            start_time=command.start_time,
        )
        current_domain.repository_for(FlashSale).add(sale)

        logger.info(
            "flash_sale.created",
            flash_sale_id=str(sale.id),
            product_id=str(product.id),
            quantity=sale.quantity,
            ends_at=sale.end_time.isoformat(),
        )
        return str(sale.id)

    @handle(UpdateFlashSale)
    def update_flash_sale(self, command):
        if command.actor_role != ActorRole.ADMIN.value:
            raise AccessDenied("Not authorized as an admin")

        repo = current_domain.repository_for(FlashSale)
        sale = repo.get(command.flash_sale_id)
        product = get_catalog_store().get_product(str(sale.product_id))

        sale.revise(
            command.as_of or datetime.now(UTC),
            product_price=product.price,
            product_stock=product.stock,
            flash_price=command.flash_price,
            quantity=command.quantity,
        )
        repo.add(sale)

        logger.info(
            "flash_sale.revised",
            flash_sale_id=str(sale.id),
            flash_price=sale.flash_price,
            quantity=sale.quantity,
            actor_id=str(command.actor_id),
        )
        return str(sale.id)

    @handle(DeleteFlashSale)
    def delete_flash_sale(self, command):
        if command.actor_role != ActorRole.ADMIN.value:
            raise AccessDenied("Not authorized as an admin")

        repo = current_domain.repository_for(FlashSale)
        sale = repo.get(command.flash_sale_id)
        # Units already sold stay sold; their stock was taken at purchase
        repo._dao.delete(sale)

        logger.info(
            "flash_sale.deleted",
            flash_sale_id=str(sale.id),
            sold_quantity=sale.sold_quantity or 0,
            actor_id=str(command.actor_id),
        )
        return str(sale.id)

    @handle(PurchaseFlashSale)
    def purchase(self, command):
        now = command.as_of or datetime.now(UTC)

        repo = current_domain.repository_for(FlashSale)
        sale = repo.get(command.flash_sale_id)
        sale.record_purchase(command.customer_id, command.quantity, now)

        catalog = get_catalog_store()
        catalog.decrement_stock(str(sale.product_id), command.quantity)
        catalog.increment_sold_count(str(sale.product_id), command.quantity)
        repo.add(sale)

        logger.info(
            "flash_sale.purchased",
            flash_sale_id=str(sale.id),
            customer_id=str(command.customer_id),
            quantity=command.quantity,
            remaining_quantity=sale.remaining_quantity,
        )
        return {"remaining_quantity": sale.remaining_quantity, "is_sold_out": sale.is_sold_out}

    @handle(SweepFlashSales)
    def sweep(self, command):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(FlashSale)

        updated = 0
        for sale in _stored_active_sales():
            if sale.refresh_status(as_of):
                repo.add(sale)
                updated += 1
                logger.info("flash_sale.status_swept", flash_sale_id=str(sale.id), status=sale.status)

        logger.info("flash_sale.sweep_complete", as_of=as_of.isoformat(), updated=updated)
        return updated
