"""Customer notifications for order events.

Runs after the order change has committed. Every failure is logged and
dropped: a customer not getting an email is never a reason to fail or
retry an order operation.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notification import get_dispatcher
from marketplace.order.events import OrderPaid, OrderPlaced, OrderStatusChanged
from marketplace.order.order import ActorRole, Order

logger = structlog.get_logger(__name__)


def _notify(event_name, order_id, send):
    try:
        order = current_domain.repository_for(Order).get(order_id)
        send(order)
    except Exception:
        logger.exception("notification.failed", trigger=event_name, order_id=str(order_id))


@marketplace.event_handler(part_of=Order)
class OrderNotificationsHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        _notify("OrderPlaced", event.order_id, get_dispatcher().send_order_confirmation)

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        _notify("OrderPaid", event.order_id, get_dispatcher().send_payment_confirmation)

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        # The payment email already covers the move to Processing on payment
        if event.actor_role == ActorRole.PAYMENT.value:
            return
        _notify(
            "OrderStatusChanged",
            event.order_id,
            lambda order: get_dispatcher().send_status_update(order, event.to_status),
        )
