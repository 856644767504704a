"""Email rendition of customer notifications."""

import structlog

from marketplace.notification.channel import get_email_channel
from marketplace.notification.port import NotificationDispatcher

logger = structlog.get_logger(__name__)

SHOP_NAME = "Galyan Shop"

_STATUS_LINES = {
    "Processing": "We are preparing your order.",
    "Shipped": "Your order is on its way.",
    "Delivered": "Your order has been delivered. Enjoy!",
    "Cancelled": "Your order has been cancelled. Any reserved items have been released.",
}


def _money(amount) -> str:
    return f"KSh {amount:,.2f}"


def _greeting(order) -> str:
    return f"Hello {order.customer_name}," if order.customer_name else "Hello,"


def render_order_confirmation(order) -> str:
    lines = [
        _greeting(order),
        "",
        f"Thank you for shopping with {SHOP_NAME}.",
        "",
        f"Order ID: {order.id}",
        f"Status: {order.status}",
        f"Payment Status: {'Paid' if order.is_paid else 'Pending'}",
        "",
    ]
    for item in order.items:
        lines.append(f"  {item.name} x {item.quantity} @ {_money(item.unit_price)} = {_money(item.subtotal)}")
    lines += [
        "",
        f"Items: {_money(order.items_price)}",
        f"Shipping: {_money(order.shipping_price)}",
        f"Tax: {_money(order.tax_price)}",
        f"Total Amount: {_money(order.total_price)}",
    ]
    return "\n".join(lines)


def render_payment_confirmation(order) -> str:
    return "\n".join(
        [
            _greeting(order),
            "",
            f"We have received your payment of {_money(order.total_price)} for order {order.id}.",
            f"M-Pesa receipt: {order.mpesa_receipt_number}",
        ]
    )


def render_status_update(order, status) -> str:
    return "\n".join(
        [
            _greeting(order),
            "",
            f"Your order {order.id} is now {status}.",
            _STATUS_LINES.get(status, ""),
        ]
    ).rstrip()


class EmailNotificationDispatcher(NotificationDispatcher):
    def __init__(self, channel=None):
        self._channel = channel

    @property
    def channel(self):
        return self._channel or get_email_channel()

    def _send(self, order, subject, body):
        if not order.customer_email:
            logger.info("notification.skipped_no_email", order_id=str(order.id), subject=subject)
            return

        result = self.channel.send(to=order.customer_email, subject=subject, body=body)
        if result.get("status") != "sent":
            logger.warning(
                "notification.send_failed",
                order_id=str(order.id),
                subject=subject,
                error=result.get("error"),
            )
            return
        logger.info("notification.sent", order_id=str(order.id), subject=subject, message_id=result.get("message_id"))

    def send_order_confirmation(self, order) -> None:
        self._send(order, f"Order Confirmation - {SHOP_NAME}", render_order_confirmation(order))

    def send_payment_confirmation(self, order) -> None:
        self._send(order, f"Payment Confirmed - {SHOP_NAME}", render_payment_confirmation(order))

    def send_status_update(self, order, status: str) -> None:
        self._send(order, f"Order {status} - {SHOP_NAME}", render_status_update(order, status))
