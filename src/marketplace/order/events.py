"""Domain events for the Order aggregate.

Events are immutable facts raised by the aggregate and dispatched after the
Unit of Work commits. Notification handlers react to them, so a failed email
can never roll back the order change that caused it.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A customer checked out and stock was reserved for every line."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_email = String()
    items = Text(required=True)  # JSON: list of line dicts
    total_price = Float(required=True)
    payment_method = String(required=True)
    status = String(required=True)
    risk_level = String(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderFlaggedForReview:
    """Fraud scoring rated the order high risk; it waits for an admin decision."""

    __version__ = 1

    order_id = Identifier(required=True)
    score = Integer(required=True)
    flags = Text(required=True)  # JSON: list of flag names
    flagged_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentRequested:
    """An STK push was accepted by the provider for this order."""

    __version__ = 1

    order_id = Identifier(required=True)
    checkout_request_id = String(required=True)
    merchant_request_id = String()
    amount = Float(required=True)
    requested_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderPaid:
    """The provider confirmed payment through its callback."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    receipt_number = String(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentFailed:
    """The provider reported a failed or cancelled payment attempt."""

    __version__ = 1

    order_id = Identifier(required=True)
    checkout_request_id = String()  # None when no charge was ever pushed
    reason = String()
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order moved from one workflow state to another."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    actor_id = String()
    actor_role = String(required=True)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class FraudReviewResolved:
    """An admin approved or rejected an order held for fraud review."""

    __version__ = 1

    order_id = Identifier(required=True)
    decision = String(required=True)  # approved, rejected
    notes = String()
    reviewer_id = String(required=True)
    reviewed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStockRestored:
    """Reserved stock for every line was returned to the catalogue."""

    __version__ = 1

    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    restored_at = DateTime(required=True)
