"""Order aggregate — the core of the marketplace order ledger.

The Order is a standard (not event sourced) aggregate with optimistic
versioning. Line items, shipping address and prices are captured at checkout
and never change afterwards. Every status transition is appended to
``status_history`` so the order's workflow can be audited without guessing
from timestamps.

State Machine:
    Pending → Processing → Shipped → Delivered
    Pending/Processing/Shipped → Delivered  (admin deliver)
    Pending/Processing → Cancelled          (admin)
    Under Review → Processing | Cancelled   (admin fraud review only)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    List,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.order.events import (
    FraudReviewResolved,
    OrderCancelled,
    OrderDelivered,
    OrderFlaggedForReview,
    OrderPaid,
    OrderPlaced,
    OrderStatusChanged,
    OrderStockRestored,
    PaymentFailed,
    PaymentRequested,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    UNDER_REVIEW = "Under Review"


class PaymentMethod(Enum):
    MPESA = "M-Pesa"
    CASH_ON_DELIVERY = "Cash on Delivery"


class ActorRole(Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"
    PAYMENT = "payment"  # provider callback


class FraudReviewDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentOutcome(Enum):
    """What applying a provider confirmation did to the order."""

    APPLIED = "applied"
    ALREADY_PAID = "already_paid"
    ORDER_CANCELLED = "order_cancelled"
    AMOUNT_SHORT = "amount_short"


# State machine transition map for status updates by people.
# Under Review is resolved only through approve_review / reject_review.
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.UNDER_REVIEW: set(),
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_SELLER_TARGETS = {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships. Captured at checkout and never edited."""

    address = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@marketplace.value_object(part_of="Order")
class PaymentResult:
    """Receipt metadata from the provider, present only once payment is confirmed."""

    receipt_number = String(max_length=100)
    status = String(max_length=50)
    update_time = String(max_length=50)  # provider transaction date, as sent
    amount = Float()
    phone_number = String(max_length=20)


@marketplace.value_object(part_of="Order")
class FraudAnalysis:
    """Risk assessment attached at checkout."""

    risk_level = String(required=True, max_length=20)
    score = Integer(default=0)
    flags = Text()  # JSON array of flag names
    recommendations = Text()  # JSON array of strings
    analyzed_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A line of the order, snapshotted from the catalogue at checkout."""

    product_id = Identifier(required=True)
    seller_id = Identifier()
    name = String(required=True, max_length=255)
    image_url = String(max_length=1000)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)

    @property
    def subtotal(self):
        return self.unit_price * self.quantity


@marketplace.entity(part_of="Order")
class StatusChange:
    """One entry of the append-only transition log."""

    from_status = String(max_length=20)  # None for the creation entry
    to_status = String(required=True, max_length=20)
    actor_id = String(max_length=255)
    actor_role = String(required=True, max_length=20)
    reason = String(max_length=500)
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    customer_name = String(max_length=255)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(choices=PaymentMethod, required=True)
    payment_result = ValueObject(PaymentResult)
    items_price = Float(default=0.0, min_value=0.0)
    tax_price = Float(default=0.0, min_value=0.0)
    shipping_price = Float(default=0.0, min_value=0.0)
    total_price = Float(default=0.0, min_value=0.0)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    is_delivered = Boolean(default=False)
    delivered_at = DateTime()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fraud_analysis = ValueObject(FraudAnalysis)
    fraud_review_status = String(choices=FraudReviewDecision)
    fraud_review_notes = String(max_length=1000)
    fraud_reviewed_by = String(max_length=255)
    fraud_reviewed_at = DateTime()
    mpesa_transaction_id = String(max_length=100)  # latest provider CheckoutRequestID
    checkout_request_ids = List(content_type=String)  # every CheckoutRequestID issued, oldest first
    mpesa_merchant_request_id = String(max_length=100)
    mpesa_receipt_number = String(max_length=100)
    payment_failure_reason = String(max_length=500)
    stock_restored = Boolean(default=False)
    status_history = HasMany(StatusChange)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        items_data,
        shipping_address,
        payment_method,
        tax_price,
        shipping_price,
        fraud_assessment,
        customer_email=None,
        customer_name=None,
    ):
        """Create an order from lines whose stock has already been reserved.

        Args:
            customer_id: The customer placing the order.
            items_data: List of dicts with product_id, seller_id, name,
                        image_url, unit_price, quantity.
            shipping_address: Dict with address, city, postal_code, country.
            payment_method: One of PaymentMethod values.
            tax_price: Tax computed by checkout.
            shipping_price: Shipping computed by the shipping calculator.
            fraud_assessment: RiskAssessment from the fraud scorer.
        """
        if not items_data:
            raise ValidationError({"items": ["No order items"]})

        now = datetime.now(UTC)
        items_price = round(sum(item["unit_price"] * item["quantity"] for item in items_data), 2)
        total_price = round(items_price + tax_price + shipping_price, 2)

        status = OrderStatus.UNDER_REVIEW if fraud_assessment.is_high_risk else OrderStatus.PENDING

        order = cls(
            customer_id=customer_id,
            customer_email=customer_email,
            customer_name=customer_name,
            shipping_address=ShippingAddress(**shipping_address),
            payment_method=payment_method,
            items_price=items_price,
            tax_price=tax_price,
            shipping_price=shipping_price,
            total_price=total_price,
            is_paid=False,
            is_delivered=False,
            status=status.value,
            fraud_analysis=FraudAnalysis(
                risk_level=fraud_assessment.risk_level.value,
                score=fraud_assessment.score,
                flags=json.dumps(list(fraud_assessment.flags)),
                recommendations=json.dumps(list(fraud_assessment.recommendations)),
                analyzed_at=now,
            ),
            stock_restored=False,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(OrderItem(**item))
        order._log_transition(None, status, actor_id=str(customer_id), actor_role=ActorRole.CUSTOMER, at=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                customer_email=customer_email,
                items=json.dumps(items_data),
                total_price=total_price,
                payment_method=payment_method,
                status=status.value,
                risk_level=fraud_assessment.risk_level.value,
                placed_at=now,
            )
        )
        if status == OrderStatus.UNDER_REVIEW:
            order.raise_(
                OrderFlaggedForReview(
                    order_id=str(order.id),
                    score=fraud_assessment.score,
                    flags=json.dumps(list(fraud_assessment.flags)),
                    flagged_at=now,
                )
            )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def fraud_flags(self):
        if self.fraud_analysis is None or not self.fraud_analysis.flags:
            return []
        return json.loads(self.fraud_analysis.flags)

    @property
    def fraud_recommendations(self):
        if self.fraud_analysis is None or not self.fraud_analysis.recommendations:
            return []
        return json.loads(self.fraud_analysis.recommendations)

    def is_owned_by(self, customer_id):
        return str(self.customer_id) == str(customer_id)

    def contains_any_product(self, product_ids):
        return any(str(item.product_id) in product_ids for item in self.items)

    def reserved_quantities(self):
        """Quantity per product id, summed across lines."""
        quantities: dict[str, int] = {}
        for item in self.items:
            key = str(item.product_id)
            quantities[key] = quantities.get(key, 0) + item.quantity
        return quantities

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _log_transition(self, from_status, to_status, actor_id, actor_role, reason=None, at=None):
        self.add_status_history(
            StatusChange(
                from_status=from_status.value if from_status else None,
                to_status=to_status.value,
                actor_id=str(actor_id) if actor_id else None,
                actor_role=actor_role.value,
                reason=reason,
                changed_at=at or datetime.now(UTC),
            )
        )

    def _move_to(self, new_status, actor_id, actor_role, reason=None):
        now = datetime.now(UTC)
        previous = OrderStatus(self.status)
        self.status = new_status.value
        self.updated_at = now
        self._log_transition(previous, new_status, actor_id, actor_role, reason=reason, at=now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                from_status=previous.value,
                to_status=new_status.value,
                actor_id=str(actor_id) if actor_id else None,
                actor_role=actor_role.value,
                changed_at=now,
            )
        )
        return now

    def _mark_delivered(self, at):
        if not self.is_delivered:
            self.is_delivered = True
            self.delivered_at = at
            self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=at))

    def _mark_cancelled(self, actor_id, actor_role, reason):
        now = self._move_to(OrderStatus.CANCELLED, actor_id, actor_role, reason=reason)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=actor_role.value,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status updates by sellers and admins
    # -------------------------------------------------------------------
    def change_status(self, new_status, actor_id, actor_role, reason=None):
        """Move the order to ``new_status`` on behalf of a seller or admin."""
        current = OrderStatus(self.status)
        target = OrderStatus(new_status)
        role = ActorRole(actor_role)

        if current == OrderStatus.UNDER_REVIEW:
            raise ValidationError({"status": ["Orders under fraud review can only be resolved through fraud review"]})
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})
        if role == ActorRole.SELLER and target not in _SELLER_TARGETS:
            raise ValidationError({"status": [f"Sellers cannot set an order to {target.value}"]})

        if target == OrderStatus.CANCELLED:
            self._mark_cancelled(actor_id, role, reason)
            return

        now = self._move_to(target, actor_id, role, reason=reason)
        if target == OrderStatus.DELIVERED:
            self._mark_delivered(now)

    def deliver(self, actor_id):
        """Admin shortcut: mark any open order delivered."""
        current = OrderStatus(self.status)
        if current == OrderStatus.UNDER_REVIEW:
            raise ValidationError({"status": ["Orders under fraud review can only be resolved through fraud review"]})
        if OrderStatus.DELIVERED not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot deliver an order that is {current.value}"]})

        now = self._move_to(OrderStatus.DELIVERED, actor_id, ActorRole.ADMIN)
        self._mark_delivered(now)

    def cancel(self, actor_id, reason=None):
        """Admin cancellation of a Pending or Processing order."""
        self.change_status(OrderStatus.CANCELLED.value, actor_id, ActorRole.ADMIN.value, reason=reason)

    # -------------------------------------------------------------------
    # Fraud review
    # -------------------------------------------------------------------
    def _resolve_review(self, decision, reviewer_id, notes):
        if OrderStatus(self.status) != OrderStatus.UNDER_REVIEW:
            raise ValidationError({"status": ["Only orders under review can be approved or rejected"]})

        now = datetime.now(UTC)
        self.fraud_review_status = decision.value
        self.fraud_review_notes = notes
        self.fraud_reviewed_by = str(reviewer_id)
        self.fraud_reviewed_at = now
        self.raise_(
            FraudReviewResolved(
                order_id=str(self.id),
                decision=decision.value,
                notes=notes,
                reviewer_id=str(reviewer_id),
                reviewed_at=now,
            )
        )

    def approve_review(self, reviewer_id, notes=None):
        self._resolve_review(FraudReviewDecision.APPROVED, reviewer_id, notes)
        self._move_to(OrderStatus.PROCESSING, reviewer_id, ActorRole.ADMIN, reason=notes)

    def reject_review(self, reviewer_id, notes=None):
        self._resolve_review(FraudReviewDecision.REJECTED, reviewer_id, notes)
        self._mark_cancelled(reviewer_id, ActorRole.ADMIN, notes or "Rejected after fraud review")

    # -------------------------------------------------------------------
    # Stock restoration
    # -------------------------------------------------------------------
    @property
    def needs_stock_restore(self):
        return OrderStatus(self.status) == OrderStatus.CANCELLED and not self.stock_restored

    def mark_stock_restored(self):
        if self.stock_restored:
            raise ValidationError({"stock_restored": ["Stock for this order was already restored"]})

        now = datetime.now(UTC)
        self.stock_restored = True
        self.updated_at = now
        self.raise_(
            OrderStockRestored(
                order_id=str(self.id),
                items=json.dumps(
                    [{"product_id": pid, "quantity": qty} for pid, qty in self.reserved_quantities().items()]
                ),
                restored_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_request(self, checkout_request_id, merchant_request_id=None):
        """Store the provider's correlation id; the order stays unpaid."""
        current = OrderStatus(self.status)
        if self.is_paid:
            raise ValidationError({"order": ["Order is already paid"]})
        if current == OrderStatus.CANCELLED:
            raise ValidationError({"order": ["Cannot pay for a cancelled order"]})

        now = datetime.now(UTC)
        self.mpesa_transaction_id = checkout_request_id
        self.checkout_request_ids = [*(self.checkout_request_ids or []), checkout_request_id]
        self.mpesa_merchant_request_id = merchant_request_id
        self.payment_failure_reason = None
        self.updated_at = now
        self.raise_(
            PaymentRequested(
                order_id=str(self.id),
                checkout_request_id=checkout_request_id,
                merchant_request_id=merchant_request_id,
                amount=self.total_price,
                requested_at=now,
            )
        )

    def confirm_payment(self, receipt_number, amount=None, transaction_date=None, phone_number=None):
        """Apply a successful provider callback.

        Returns a PaymentOutcome. Duplicate confirmations and confirmations for
        cancelled orders change nothing. A Pending order moves to Processing;
        an order under fraud review records the payment but stays in review.
        """
        if self.is_paid:
            return PaymentOutcome.ALREADY_PAID

        current = OrderStatus(self.status)
        if current == OrderStatus.CANCELLED:
            return PaymentOutcome.ORDER_CANCELLED
        if amount is not None and amount + 0.005 < self.total_price:
            return PaymentOutcome.AMOUNT_SHORT

        now = datetime.now(UTC)
        self.is_paid = True
        self.paid_at = now
        self.mpesa_receipt_number = receipt_number
        self.payment_failure_reason = None
        self.payment_result = PaymentResult(
            receipt_number=receipt_number,
            status="COMPLETED",
            update_time=str(transaction_date) if transaction_date is not None else now.isoformat(),
            amount=amount if amount is not None else self.total_price,
            phone_number=str(phone_number) if phone_number is not None else None,
        )
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                receipt_number=receipt_number,
                amount=amount if amount is not None else self.total_price,
                paid_at=now,
            )
        )

        if current == OrderStatus.PENDING:
            self._move_to(OrderStatus.PROCESSING, None, ActorRole.PAYMENT, reason=f"Payment {receipt_number}")

        return PaymentOutcome.APPLIED

    def is_current_payment_request(self, checkout_request_id):
        return bool(checkout_request_id) and checkout_request_id == self.mpesa_transaction_id

    def record_payment_failure(self, reason, checkout_request_id=None):
        if self.is_paid:
            return

        now = datetime.now(UTC)
        self.payment_failure_reason = reason
        self.updated_at = now
        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                checkout_request_id=checkout_request_id or self.mpesa_transaction_id,
                reason=reason,
                failed_at=now,
            )
        )
