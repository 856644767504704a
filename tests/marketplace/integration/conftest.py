import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.api import cart_router, flash_sale_router, mpesa_router, order_router
from marketplace.api.errors import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(mpesa_router)
    app.include_router(flash_sale_router)
    app.include_router(cart_router)
    register_exception_handlers(app)
    return TestClient(app)


def as_user(user_id="cust-1", role="customer", email="buyer@example.com"):
    headers = {"X-User-Id": user_id, "X-User-Role": role}
    if email:
        headers["X-User-Email"] = email
    return headers


@pytest.fixture()
def headers():
    return as_user


@pytest.fixture()
def checkout(client, headers):
    """POST an order and return the response body."""

    def post(product_id, quantity=1, user_id="cust-1", city="Nairobi", **extra):
        response = client.post(
            "/orders",
            json={
                "order_items": [{"product_id": product_id, "quantity": quantity}],
                "shipping_address": {"address": "Moi Avenue 12", "city": city, "postal_code": "00100"},
                **extra,
            },
            headers=headers(user_id),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return post
