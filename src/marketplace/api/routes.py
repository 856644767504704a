"""FastAPI routes for the marketplace — orders, M-Pesa payments, flash sales, cart."""

import json

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from marketplace.api.deps import Requester, get_requester, require_admin
from marketplace.api.schemas import (
    AddToCartRequest,
    CalculateShippingRequest,
    CreateFlashSaleRequest,
    FraudReviewRequest,
    PlaceOrderRequest,
    PurchaseFlashSaleRequest,
    StkPushRequest,
    SweepRequest,
    UpdateFlashSaleRequest,
    UpdateStatusRequest,
    flash_sale_body,
    order_body,
    order_summary,
)
from marketplace.cart.management import AddToCart, ClearCart
from marketplace.catalogue import get_catalog_store
from marketplace.errors import AccessDenied
from marketplace.flash_sale.management import (
    CreateFlashSale,
    DeleteFlashSale,
    PurchaseFlashSale,
    SweepFlashSales,
    UpdateFlashSale,
)
from marketplace.flash_sale.queries import active_flash_sales, all_flash_sales, get_flash_sale
from marketplace.order.creation import PlaceOrder
from marketplace.order.fraud_review import ReviewFraudOrder
from marketplace.order.order import Order
from marketplace.order.payment import (
    CALLBACK_ACK,
    InitiatePayment,
    ProcessStkCallback,
    check_payment_status,
)
from marketplace.order.queries import (
    get_fraud_stats,
    get_my_orders,
    get_order_by_id,
    get_orders,
    get_seller_stats,
)
from marketplace.order.status import DeliverOrder, UpdateOrderStatus
from marketplace.shipping.calculator import ShippingLine, calculate_shipping, get_all_zones

logger = structlog.get_logger(__name__)


def _order(order_id):
    return order_body(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest, requester: Requester = Depends(get_requester)) -> dict:
    """Check out: reserve stock, price shipping, score fraud risk and record the order."""
    command = PlaceOrder(
        customer_id=requester.user_id,
        customer_email=requester.email,
        customer_name=requester.name,
        items=json.dumps([item.model_dump() for item in body.order_items]),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        payment_method=body.payment_method,
        is_express=body.is_express,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return order_body(get_order_by_id(order_id, requester.user_id, requester.role))


@order_router.get("")
async def list_orders(requester: Requester = Depends(get_requester)) -> list[dict]:
    """All orders for admins; orders containing their products for sellers."""
    return [order_body(order) for order in get_orders(requester.role, requester.user_id)]


@order_router.get("/myorders")
async def list_my_orders(requester: Requester = Depends(get_requester)) -> list[dict]:
    return [order_body(order) for order in get_my_orders(requester.user_id)]


@order_router.post("/calculate-shipping")
async def preview_shipping(body: CalculateShippingRequest, requester: Requester = Depends(get_requester)) -> dict:
    """Price delivery for a prospective order. Creates nothing."""
    lines = []
    for item in body.order_items:
        weight = item.weight_kg
        if weight is None and item.product_id:
            weight = get_catalog_store().get_product(item.product_id).weight_kg
        lines.append(ShippingLine(quantity=item.quantity, weight_kg=weight or 0.0))

    quote = calculate_shipping(
        body.shipping_address.model_dump(),
        lines,
        is_express=body.is_express,
        custom_weight=body.custom_weight,
    )
    return quote.to_dict()


@order_router.get("/shipping-zones")
async def shipping_zones() -> list[dict]:
    return get_all_zones()


@order_router.get("/seller-stats")
async def seller_stats(seller_id: str | None = None, requester: Requester = Depends(get_requester)) -> dict:
    """Sales over paid orders. Admins may ask about any seller."""
    if requester.is_seller:
        return get_seller_stats(requester.user_id)
    if requester.is_admin and seller_id:
        return get_seller_stats(seller_id)
    raise AccessDenied("Not authorized as a seller")


@order_router.get("/fraud-stats")
async def fraud_stats(requester: Requester = Depends(get_requester)) -> dict:
    require_admin(requester)
    stats = get_fraud_stats()
    stats["recent_high_risk"] = [order_summary(order) for order in stats["recent_high_risk"]]
    return stats


@order_router.get("/{order_id}")
async def get_order(order_id: str, requester: Requester = Depends(get_requester)) -> dict:
    return order_body(get_order_by_id(order_id, requester.user_id, requester.role))


@order_router.put("/{order_id}/status")
async def update_order_status(
    order_id: str, body: UpdateStatusRequest, requester: Requester = Depends(get_requester)
) -> dict:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        actor_id=requester.user_id,
        actor_role=requester.role,
        reason=body.reason,
    )
    current_domain.process(command, asynchronous=False)
    return _order(order_id)


@order_router.put("/{order_id}/deliver")
async def deliver_order(order_id: str, requester: Requester = Depends(get_requester)) -> dict:
    command = DeliverOrder(order_id=order_id, actor_id=requester.user_id, actor_role=requester.role)
    current_domain.process(command, asynchronous=False)
    return _order(order_id)


@order_router.put("/{order_id}/fraud-review")
async def review_fraud_order(
    order_id: str, body: FraudReviewRequest, requester: Requester = Depends(get_requester)
) -> dict:
    command = ReviewFraudOrder(
        order_id=order_id,
        action=body.action,
        notes=body.notes,
        reviewer_id=requester.user_id,
        reviewer_role=requester.role,
    )
    current_domain.process(command, asynchronous=False)
    return _order(order_id)


# ---------------------------------------------------------------------------
# M-Pesa Router
# ---------------------------------------------------------------------------
mpesa_router = APIRouter(prefix="/mpesa", tags=["payments"])


@mpesa_router.post("/stkpush")
def initiate_stk_push(body: StkPushRequest, requester: Requester = Depends(get_requester)) -> dict:
    """Push a payment prompt to the payer's phone for the order total.

    Declared sync so the blocking provider call runs in the threadpool.
    """
    command = InitiatePayment(
        order_id=body.order_id,
        customer_id=requester.user_id,
        phone_number=body.phone_number,
        amount=body.amount,
    )
    result = current_domain.process(command, asynchronous=False)
    return {"message": "STK Push initiated successfully", **result}


@mpesa_router.post("/callback")
async def stk_callback(request: Request) -> JSONResponse:
    """Provider result callback. Always acknowledged, whatever happens inside."""
    try:
        raw = (await request.body()).decode("utf-8", errors="replace")
        outcome = current_domain.process(ProcessStkCallback(raw_body=raw or "{}"), asynchronous=False)
        logger.info("payment.callback_processed", outcome=outcome)
    except Exception:
        logger.exception("payment.callback_error")
    return JSONResponse(status_code=200, content=CALLBACK_ACK)


@mpesa_router.get("/status/{checkout_request_id}")
def payment_status(checkout_request_id: str, requester: Requester = Depends(get_requester)) -> dict:
    return check_payment_status(checkout_request_id, requester.user_id, requester.role)


# ---------------------------------------------------------------------------
# Flash Sale Router
# ---------------------------------------------------------------------------
flash_sale_router = APIRouter(prefix="/flash-sales", tags=["flash-sales"])


@flash_sale_router.get("")
async def list_active_flash_sales() -> list[dict]:
    return [flash_sale_body(sale) for sale in active_flash_sales()]


@flash_sale_router.get("/all")
async def list_all_flash_sales(requester: Requester = Depends(get_requester)) -> list[dict]:
    return [flash_sale_body(sale) for sale in all_flash_sales(requester.role)]


@flash_sale_router.post("", status_code=201)
async def create_flash_sale(body: CreateFlashSaleRequest, requester: Requester = Depends(get_requester)) -> dict:
    command = CreateFlashSale(
        product_id=body.product_id,
        flash_price=body.flash_price,
        quantity=body.quantity,
        created_by=requester.user_id,
        creator_role=requester.role,
        start_time=body.start_time,
    )
    flash_sale_id = current_domain.process(command, asynchronous=False)
    return flash_sale_body(get_flash_sale(flash_sale_id))


@flash_sale_router.post("/maintenance/sweep")
async def sweep_flash_sales(body: SweepRequest, requester: Requester = Depends(get_requester)) -> dict:
    """Persist expired / sold-out status. Triggered by an external scheduler."""
    require_admin(requester)
    updated = current_domain.process(SweepFlashSales(as_of=body.as_of), asynchronous=False)
    return {"updated": updated}


@flash_sale_router.post("/{flash_sale_id}/purchase")
async def purchase_flash_sale(
    flash_sale_id: str, body: PurchaseFlashSaleRequest, requester: Requester = Depends(get_requester)
) -> dict:
    command = PurchaseFlashSale(
        flash_sale_id=flash_sale_id,
        customer_id=requester.user_id,
        quantity=body.quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return {"message": "Purchase successful", **result}


@flash_sale_router.get("/{flash_sale_id}")
async def flash_sale_detail(flash_sale_id: str) -> dict:
    return flash_sale_body(get_flash_sale(flash_sale_id))


@flash_sale_router.put("/{flash_sale_id}")
async def update_flash_sale(
    flash_sale_id: str, body: UpdateFlashSaleRequest, requester: Requester = Depends(get_requester)
) -> dict:
    command = UpdateFlashSale(
        flash_sale_id=flash_sale_id,
        flash_price=body.flash_price,
        quantity=body.quantity,
        actor_id=requester.user_id,
        actor_role=requester.role,
    )
    current_domain.process(command, asynchronous=False)
    return flash_sale_body(get_flash_sale(flash_sale_id))


@flash_sale_router.delete("/{flash_sale_id}")
async def delete_flash_sale(flash_sale_id: str, requester: Requester = Depends(get_requester)) -> dict:
    command = DeleteFlashSale(flash_sale_id=flash_sale_id, actor_id=requester.user_id, actor_role=requester.role)
    current_domain.process(command, asynchronous=False)
    return {"message": "Flash sale removed"}


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.post("/items", status_code=201)
async def add_to_cart(body: AddToCartRequest, requester: Requester = Depends(get_requester)) -> dict:
    command = AddToCart(customer_id=requester.user_id, product_id=body.product_id, quantity=body.quantity)
    cart_id = current_domain.process(command, asynchronous=False)
    return {"cart_id": cart_id}


@cart_router.delete("")
async def clear_cart(requester: Requester = Depends(get_requester)) -> dict:
    current_domain.process(ClearCart(customer_id=requester.user_id), asynchronous=False)
    return {"status": "cleared"}
