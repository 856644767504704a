"""Admin fraud review of orders held Under Review — command and handler.

Approval releases the order into Processing. Rejection cancels it and puts
its reserved stock back in the catalogue within the same Unit of Work.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.catalogue import get_catalog_store
from marketplace.domain import marketplace
from marketplace.errors import AccessDenied
from marketplace.order.order import ActorRole, Order
from marketplace.order.reservation import restore_order_stock

logger = structlog.get_logger(__name__)

REVIEW_ACTIONS = ("approve", "reject")


@marketplace.command(part_of="Order")
class ReviewFraudOrder:
    order_id = Identifier(required=True)
    action = String(required=True, max_length=10)
    notes = String(max_length=1000)
    reviewer_id = Identifier(required=True)
    reviewer_role = String(required=True, max_length=20)


@marketplace.command_handler(part_of=Order)
class FraudReviewHandler:
    @handle(ReviewFraudOrder)
    def review(self, command):
        if command.reviewer_role != ActorRole.ADMIN.value:
            raise AccessDenied("Not authorized as an admin")
        if command.action not in REVIEW_ACTIONS:
            raise ValidationError({"action": ['Action must be "approve" or "reject"']})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.action == "approve":
            order.approve_review(command.reviewer_id, notes=command.notes)
        else:
            order.reject_review(command.reviewer_id, notes=command.notes)
            restore_order_stock(get_catalog_store(), order)
        repo.add(order)

        logger.info(
            "order.fraud_review_resolved",
            order_id=str(order.id),
            decision=order.fraud_review_status,
            reviewer_id=str(command.reviewer_id),
        )
