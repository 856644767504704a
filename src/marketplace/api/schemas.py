"""Pydantic request schemas and response bodies for the marketplace API.

Requests are external contracts (anti-corruption layer), separate from the
internal Protean commands. Responses are plain dicts built from aggregates.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    address: str
    city: str
    postal_code: str
    country: str = "Kenya"


class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Order requests
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    order_items: list[OrderItemRequest]
    shipping_address: ShippingAddressSchema
    payment_method: str = "M-Pesa"
    is_express: bool = False
    # Client-side figures are accepted for compatibility and ignored
    items_price: float | None = None
    tax_price: float | None = None
    shipping_price: float | None = None
    total_price: float | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_items": [
                        {"product_id": "prod-001", "quantity": 2},
                        {"product_id": "prod-002", "quantity": 1},
                    ],
                    "shipping_address": {
                        "address": "Moi Avenue 12",
                        "city": "Nairobi",
                        "postal_code": "00100",
                        "country": "Kenya",
                    },
                    "payment_method": "M-Pesa",
                }
            ]
        }
    }


class ShippingItemRequest(BaseModel):
    product_id: str | None = None
    quantity: int = Field(default=1, ge=1)
    weight_kg: float | None = Field(default=None, ge=0)


class CalculateShippingRequest(BaseModel):
    shipping_address: ShippingAddressSchema
    order_items: list[ShippingItemRequest] = []
    is_express: bool = False
    custom_weight: float | None = Field(default=None, ge=0)


class UpdateStatusRequest(BaseModel):
    status: Literal["Processing", "Shipped", "Delivered", "Cancelled"]
    reason: str | None = None


class FraudReviewRequest(BaseModel):
    action: Literal["approve", "reject"]
    notes: str | None = None


# ---------------------------------------------------------------------------
# Payment requests
# ---------------------------------------------------------------------------
class StkPushRequest(BaseModel):
    order_id: str
    phone_number: str
    amount: float | None = Field(default=None, gt=0)

    model_config = {
        "json_schema_extra": {
            "examples": [{"order_id": "ord-001", "phone_number": "0712345678", "amount": 2700}]
        }
    }


# ---------------------------------------------------------------------------
# Flash sale requests
# ---------------------------------------------------------------------------
class CreateFlashSaleRequest(BaseModel):
    product_id: str
    flash_price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    start_time: datetime | None = None


class UpdateFlashSaleRequest(BaseModel):
    flash_price: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=1)


class PurchaseFlashSaleRequest(BaseModel):
    quantity: int = Field(default=1, ge=1)


class SweepRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Cart requests
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


# ---------------------------------------------------------------------------
# Response bodies
# ---------------------------------------------------------------------------
def order_body(order) -> dict:
    body = order.to_dict()
    body["id"] = str(order.id)
    body["fraud_flags"] = order.fraud_flags
    if order.fraud_analysis is not None:
        body["fraud_analysis"] = {
            **body.get("fraud_analysis", {}),
            "flags": order.fraud_flags,
            "recommendations": order.fraud_recommendations,
        }
    return body


def order_summary(order) -> dict:
    return {
        "id": str(order.id),
        "customer_id": str(order.customer_id),
        "total_price": order.total_price,
        "status": order.status,
        "risk_level": order.fraud_analysis.risk_level if order.fraud_analysis else None,
        "score": order.fraud_analysis.score if order.fraud_analysis else None,
        "fraud_flags": order.fraud_flags,
        "created_at": order.created_at,
    }


def flash_sale_body(sale) -> dict:
    body = sale.to_dict()
    body["id"] = str(sale.id)
    body["remaining_quantity"] = sale.remaining_quantity
    return body
