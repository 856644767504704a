"""Mobile-money payment of orders — commands, handler and status poll.

Payment happens in three steps:

1. ``InitiatePayment`` pushes a charge prompt to the payer's phone and keeps
   the provider's CheckoutRequestID on the order. The order stays unpaid.
2. The provider later posts the outcome to the callback endpoint, which runs
   ``ProcessStkCallback``. This is the only path that marks an order paid.
3. Clients may poll ``check_payment_status`` meanwhile. Polling never
   changes the order.

Callbacks can arrive more than once, late, or for orders that were
cancelled in between. A confirmation is applied at most once; anything
else is logged and acknowledged.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import AccessDenied
from marketplace.gateway import get_gateway
from marketplace.gateway.callback import MalformedCallback, parse_stk_callback
from marketplace.gateway.phone import normalize_phone_number
from marketplace.order.order import ActorRole, Order, OrderStatus, PaymentMethod, PaymentOutcome
from marketplace.order.queries import order_for_checkout_request

logger = structlog.get_logger(__name__)

CALLBACK_ACK = {
    "ResultCode": 0,
    "ResultDesc": "Accepted",
    "message": "Callback received successfully",
}


@marketplace.command(part_of="Order")
class InitiatePayment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    phone_number = String(required=True, max_length=20)
    amount = Float()  # optional, must match the order total when given


@marketplace.command(part_of="Order")
class ProcessStkCallback:
    raw_body = Text(required=True)  # JSON body as posted by the provider


@marketplace.command_handler(part_of=Order)
class PaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.is_owned_by(command.customer_id):
            raise AccessDenied("Not authorized to pay for this order")
        if order.payment_method != PaymentMethod.MPESA.value:
            raise ValidationError({"payment_method": ["Order is not payable by M-Pesa"]})
        if order.is_paid:
            raise ValidationError({"order": ["Order is already paid"]})
        if order.status == OrderStatus.CANCELLED.value:
            raise ValidationError({"order": ["Cannot pay for a cancelled order"]})
        if command.amount is not None and abs(command.amount - order.total_price) > 0.005:
            raise ValidationError({"amount": [f"Amount must equal the order total of {order.total_price}"]})

        phone_number = normalize_phone_number(command.phone_number)
        result = get_gateway().request_stk_push(str(order.id), phone_number, order.total_price)

        if order.mpesa_transaction_id:
            logger.info(
                "payment.reinitiated",
                order_id=str(order.id),
                previous_checkout_request_id=order.mpesa_transaction_id,
                checkout_request_id=result.checkout_request_id,
            )
        order.record_payment_request(result.checkout_request_id, result.merchant_request_id)
        repo.add(order)

        logger.info(
            "payment.initiated",
            order_id=str(order.id),
            checkout_request_id=result.checkout_request_id,
            amount=order.total_price,
        )
        return {
            "order_id": str(order.id),
            "checkout_request_id": result.checkout_request_id,
            "response_code": result.response_code,
            "customer_message": result.customer_message,
        }

    @handle(ProcessStkCallback)
    def process_callback(self, command):
        try:
            payload = json.loads(command.raw_body)
            callback = parse_stk_callback(payload)
        except (ValueError, MalformedCallback) as exc:
            logger.warning("payment.callback_malformed", error=str(exc))
            return "malformed"

        order = order_for_checkout_request(callback.checkout_request_id)
        if order is None:
            logger.warning("payment.callback_unmatched", checkout_request_id=callback.checkout_request_id)
            return "unmatched"

        repo = current_domain.repository_for(Order)

        if not callback.is_successful:
            if order.is_paid:
                logger.info("payment.failure_after_paid_ignored", order_id=str(order.id))
                return "ignored"
            if not order.is_current_payment_request(callback.checkout_request_id):
                # A newer prompt is outstanding and may still be paid
                logger.info(
                    "payment.superseded_failure_ignored",
                    order_id=str(order.id),
                    checkout_request_id=callback.checkout_request_id,
                )
                return "ignored"
            order.record_payment_failure(
                callback.result_desc or f"Result code {callback.result_code}",
                checkout_request_id=callback.checkout_request_id,
            )
            repo.add(order)
            logger.info(
                "payment.failed",
                order_id=str(order.id),
                result_code=callback.result_code,
                result_desc=callback.result_desc,
            )
            return "failed"

        outcome = order.confirm_payment(
            receipt_number=callback.receipt_number,
            amount=callback.amount,
            transaction_date=callback.transaction_date,
            phone_number=callback.phone_number,
        )
        if outcome == PaymentOutcome.APPLIED:
            repo.add(order)
            logger.info(
                "payment.confirmed",
                order_id=str(order.id),
                receipt_number=callback.receipt_number,
                status=order.status,
            )
        elif outcome == PaymentOutcome.AMOUNT_SHORT:
            logger.warning(
                "payment.amount_short",
                order_id=str(order.id),
                amount=callback.amount,
                total_price=order.total_price,
            )
        else:
            logger.info("payment.callback_ignored", order_id=str(order.id), outcome=outcome.value)
        return outcome.value


def check_payment_status(checkout_request_id, requester_id, requester_role):
    """Poll the provider for a pushed charge. Read-only on the order."""
    order = order_for_checkout_request(checkout_request_id)
    if order is None:
        raise ObjectNotFoundError(f"No order for checkout request {checkout_request_id}")
    if requester_role != ActorRole.ADMIN.value and not order.is_owned_by(requester_id):
        raise AccessDenied("Not authorized to view this payment")

    result = get_gateway().query_stk_status(checkout_request_id)
    return {
        "order_id": str(order.id),
        "checkout_request_id": result.checkout_request_id,
        "response_code": result.response_code,
        "result_code": result.result_code,
        "result_desc": result.result_desc,
        "is_paid": bool(order.is_paid),
    }
