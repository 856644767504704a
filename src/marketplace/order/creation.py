"""Order creation (checkout) — command and handler.

Checkout runs in one Unit of Work:

1. read every product from the catalog store and snapshot its price and name
2. reserve stock for every line (all or nothing)
3. price shipping and tax server-side
4. score fraud risk, failing open to "unknown"
5. persist the order and clear the customer's cart

The confirmation email is sent by an event handler once the Unit of Work
commits, so a mail failure never undoes the order.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.management import clear_cart_for
from marketplace.catalogue import get_catalog_store
from marketplace.domain import marketplace
from marketplace.fraud import get_fraud_scorer
from marketplace.fraud.port import LineSnapshot, OrderSnapshot, PastOrder, RiskAssessment
from marketplace.order.order import Order, OrderStatus, PaymentMethod
from marketplace.order.reservation import reserve_stock
from marketplace.shipping.calculator import ShippingLine, calculate_shipping

logger = structlog.get_logger(__name__)

_ADDRESS_FIELDS = ("address", "city", "postal_code", "country")


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    customer_name = String(max_length=255)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    is_express = Boolean(default=False)


def _load_json(value):
    return json.loads(value) if isinstance(value, str) else value


def _parse_lines(raw_items):
    items = _load_json(raw_items) or []
    if not items:
        raise ValidationError({"items": ["No order items"]})

    lines = []
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not product_id:
            raise ValidationError({"items": [f"Item {index + 1} is missing a product"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"items": [f"Item {index + 1} must have a quantity of at least 1"]})
        lines.append((str(product_id), quantity))
    return lines


def _parse_address(raw_address):
    address = _load_json(raw_address) or {}
    missing = [name for name in _ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
    if missing:
        raise ValidationError({"shipping_address": [f"Missing {', '.join(missing)}"]})
    return {name: str(address[name]).strip() for name in _ADDRESS_FIELDS}


def order_history_for(customer_id):
    """The customer's previous orders as the fraud scorer sees them, newest first."""
    orders = (
        current_domain.repository_for(Order)
        ._dao.query.filter(customer_id=str(customer_id))
        .order_by("-created_at")
        .limit(None)
        .all()
        .items
    )
    return [
        PastOrder(
            total_price=order.total_price,
            status=order.status,
            shipping_address=order.shipping_address.to_dict() if order.shipping_address else {},
            created_at=order.created_at,
        )
        for order in orders
    ]


def assess_risk(snapshot, history):
    """Score the order; any scorer failure degrades to an "unknown" assessment."""
    try:
        return get_fraud_scorer().assess(snapshot, history)
    except Exception:
        logger.exception("fraud.scoring_failed", customer_id=snapshot.customer_id)
        return RiskAssessment.unknown()


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines = _parse_lines(command.items)
        shipping_address = _parse_address(command.shipping_address)

        if command.payment_method not in {method.value for method in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method {command.payment_method}"]})

        catalog = get_catalog_store()

        products = {}
        for product_id, _ in lines:
            if product_id not in products:
                products[product_id] = catalog.get_product(product_id)
        for product in products.values():
            if not product.is_active:
                raise ValidationError({"items": [f"Product {product.name} is not available"]})

        quantities: dict[str, int] = {}
        for product_id, quantity in lines:
            quantities[product_id] = quantities.get(product_id, 0) + quantity

        reserve_stock(catalog, quantities)

        items_data = [
            {
                "product_id": product_id,
                "seller_id": products[product_id].seller_id,
                "name": products[product_id].name,
                "image_url": products[product_id].image_url,
                "unit_price": products[product_id].price,
                "quantity": quantity,
            }
            for product_id, quantity in lines
        ]
        items_price = round(sum(item["unit_price"] * item["quantity"] for item in items_data), 2)

        quote = calculate_shipping(
            shipping_address,
            [ShippingLine(quantity=quantity, weight_kg=products[pid].weight_kg) for pid, quantity in lines],
            is_express=bool(command.is_express),
        )
        tax_price = round(items_price * float(getattr(current_domain, "TAX_RATE", 0.0) or 0.0), 2)
        total_price = round(items_price + tax_price + quote.total_cost, 2)

        snapshot = OrderSnapshot(
            customer_id=str(command.customer_id),
            total_price=total_price,
            payment_method=command.payment_method,
            shipping_address=shipping_address,
            items=tuple(
                LineSnapshot(product_id=item["product_id"], unit_price=item["unit_price"], quantity=item["quantity"])
                for item in items_data
            ),
            placed_at=datetime.now(UTC),
        )
        assessment = assess_risk(snapshot, order_history_for(command.customer_id))

        order = Order.create(
            customer_id=command.customer_id,
            items_data=items_data,
            shipping_address=shipping_address,
            payment_method=command.payment_method,
            tax_price=tax_price,
            shipping_price=float(quote.total_cost),
            fraud_assessment=assessment,
            customer_email=command.customer_email,
            customer_name=command.customer_name,
        )
        current_domain.repository_for(Order).add(order)

        clear_cart_for(command.customer_id)

        logger.info(
            "order.placed",
            order_id=str(order.id),
            customer_id=str(command.customer_id),
            total_price=order.total_price,
            shipping_zone=quote.zone,
            risk_level=assessment.risk_level.value,
            under_review=order.status == OrderStatus.UNDER_REVIEW.value,
        )
        return str(order.id)
