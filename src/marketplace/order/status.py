"""Order status updates by sellers and admins — commands and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.catalogue import get_catalog_store
from marketplace.domain import marketplace
from marketplace.errors import AccessDenied
from marketplace.order.order import ActorRole, Order
from marketplace.order.reservation import restore_order_stock

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    reason = String(max_length=500)


@marketplace.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


def ensure_can_update(order, actor_id, actor_role):
    """Admins may update any order; sellers only orders holding their products."""
    if actor_role == ActorRole.ADMIN.value:
        return
    if actor_role == ActorRole.SELLER.value:
        product_ids = get_catalog_store().product_ids_for_seller(actor_id)
        if order.contains_any_product(product_ids):
            return
        raise AccessDenied("Not authorized to update this order")
    raise AccessDenied("Not authorized as an admin or seller")


@marketplace.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        ensure_can_update(order, command.actor_id, command.actor_role)

        previous = order.status
        order.change_status(command.status, command.actor_id, command.actor_role, reason=command.reason)
        restore_order_stock(get_catalog_store(), order)
        repo.add(order)

        logger.info(
            "order.status_updated",
            order_id=str(order.id),
            from_status=previous,
            to_status=order.status,
            actor_role=command.actor_role,
        )

    @handle(DeliverOrder)
    def deliver(self, command):
        if command.actor_role != ActorRole.ADMIN.value:
            raise AccessDenied("Not authorized as an admin")

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.deliver(command.actor_id)
        repo.add(order)

        logger.info("order.delivered", order_id=str(order.id))
