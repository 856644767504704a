"""Read side of the order ledger.

Orders are read straight from the aggregate repository. Each read enforces
who may see what: customers see their own orders, admins see everything,
and sellers see orders containing at least one of their products.
"""

import structlog
from protean.utils.globals import current_domain

from marketplace.catalogue import get_catalog_store
from marketplace.errors import AccessDenied
from marketplace.fraud.port import RiskLevel
from marketplace.order.order import ActorRole, FraudReviewDecision, Order, OrderStatus

logger = structlog.get_logger(__name__)

RECENT_HIGH_RISK_LIMIT = 10


def _orders():
    return current_domain.repository_for(Order)._dao.query


def _newest_first(query):
    return query.order_by("-created_at").limit(None).all().items


def get_order_by_id(order_id, requester_id, requester_role):
    """Load one order. Only its owner or an admin may read it."""
    order = current_domain.repository_for(Order).get(order_id)
    if requester_role != ActorRole.ADMIN.value and not order.is_owned_by(requester_id):
        logger.warning("order.read_denied", order_id=str(order_id), requester_id=str(requester_id))
        raise AccessDenied("Not authorized to view this order")
    return order


def get_my_orders(customer_id):
    return _newest_first(_orders().filter(customer_id=str(customer_id)))


def orders_for_seller(seller_id):
    """Orders holding at least one line for a product the seller lists, newest first."""
    product_ids = get_catalog_store().product_ids_for_seller(seller_id)
    if not product_ids:
        return []
    return [order for order in _newest_first(_orders()) if order.contains_any_product(product_ids)]


def get_orders(requester_role, requester_id=None):
    """Admin: every order. Seller: orders for their products. Anyone else is refused."""
    if requester_role == ActorRole.ADMIN.value:
        return _newest_first(_orders())
    if requester_role == ActorRole.SELLER.value:
        return orders_for_seller(requester_id)
    raise AccessDenied("Not authorized as an admin or seller")


def order_for_checkout_request(checkout_request_id):
    """The order a provider correlation id was issued for, or None.

    Matches superseded ids too, so a customer who pays an earlier prompt is
    still credited.
    """
    if not checkout_request_id:
        return None
    return _orders().filter(checkout_request_ids__any=[str(checkout_request_id)]).all().first


def get_seller_stats(seller_id):
    """Sales figures over paid orders containing the seller's products."""
    product_ids = get_catalog_store().product_ids_for_seller(seller_id)
    commission_rate = float(getattr(current_domain, "SELLER_COMMISSION_RATE", 10.0) or 0.0)

    total_orders = 0
    total_sales = 0.0
    if product_ids:
        for order in _orders().filter(is_paid=True).limit(None).all().items:
            seller_lines = [item for item in order.items if str(item.product_id) in product_ids]
            if seller_lines:
                total_orders += 1
                total_sales += sum(item.subtotal for item in seller_lines)

    total_sales = round(total_sales, 2)
    return {
        "total_products": len(product_ids),
        "total_orders": total_orders,
        "total_sales": total_sales,
        "total_earnings": round(total_sales * (1 - commission_rate / 100), 2),
    }


def get_fraud_stats():
    orders = _newest_first(_orders())

    by_risk = {level.value: 0 for level in RiskLevel}
    high_risk = []
    for order in orders:
        level = order.fraud_analysis.risk_level if order.fraud_analysis else RiskLevel.UNKNOWN.value
        by_risk[level] = by_risk.get(level, 0) + 1
        if level == RiskLevel.HIGH.value:
            high_risk.append(order)

    return {
        "total_orders": len(orders),
        "by_risk_level": by_risk,
        "under_review": sum(1 for order in orders if order.status == OrderStatus.UNDER_REVIEW.value),
        "approved_reviews": sum(
            1 for order in orders if order.fraud_review_status == FraudReviewDecision.APPROVED.value
        ),
        "rejected_reviews": sum(
            1 for order in orders if order.fraud_review_status == FraudReviewDecision.REJECTED.value
        ),
        "recent_high_risk": high_risk[:RECENT_HIGH_RISK_LIMIT],
    }
