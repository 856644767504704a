"""Integration tests for the M-Pesa endpoints via TestClient."""

import inspect

from marketplace.api import mpesa_router
from marketplace.order.payment import CALLBACK_ACK


class TestStkPushAPI:
    def test_initiates_push(self, client, make_product, checkout, headers, fake_gateway):
        order = checkout(make_product(price=2500.0))
        response = client.post(
            "/mpesa/stkpush",
            json={"order_id": order["id"], "phone_number": "0712345678", "amount": 2700},
            headers=headers(),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "STK Push initiated successfully"
        assert body["checkout_request_id"] == "ws_CO_000001"

    def test_gateway_failure_is_502(self, client, make_product, checkout, headers, fake_gateway):
        fake_gateway.configure(should_succeed=False, failure_reason="Service unavailable")
        order = checkout(make_product())
        response = client.post(
            "/mpesa/stkpush",
            json={"order_id": order["id"], "phone_number": "0712345678"},
            headers=headers(),
        )
        assert response.status_code == 502
        assert response.json()["error"]["detail"] == "Service unavailable"

    def test_bad_phone_is_400(self, client, make_product, checkout, headers, fake_gateway):
        order = checkout(make_product())
        response = client.post(
            "/mpesa/stkpush",
            json={"order_id": order["id"], "phone_number": "555"},
            headers=headers(),
        )
        assert response.status_code == 400


class TestCallbackAPI:
    def test_success_marks_order_paid(self, client, make_product, checkout, headers, fake_gateway, stk_callback):
        order = checkout(make_product(price=2500.0))
        client.post("/mpesa/stkpush", json={"order_id": order["id"], "phone_number": "0712345678"}, headers=headers())

        response = client.post("/mpesa/callback", json=stk_callback("ws_CO_000001"))

        assert response.status_code == 200
        assert response.json() == CALLBACK_ACK
        paid = client.get(f"/orders/{order['id']}", headers=headers()).json()
        assert paid["is_paid"] is True
        assert paid["status"] == "Processing"

    def test_unmatched_callback_is_acknowledged(self, client, stk_callback):
        response = client.post("/mpesa/callback", json=stk_callback("ws_CO_unknown"))
        assert response.status_code == 200
        assert response.json()["ResultCode"] == 0

    def test_garbage_is_acknowledged(self, client):
        response = client.post("/mpesa/callback", content=b"<xml>nope</xml>")
        assert response.status_code == 200
        assert response.json() == CALLBACK_ACK

    def test_empty_body_is_acknowledged(self, client):
        assert client.post("/mpesa/callback").status_code == 200


class TestPaymentStatusAPI:
    def test_poll(self, client, make_product, checkout, headers, fake_gateway):
        order = checkout(make_product())
        client.post("/mpesa/stkpush", json={"order_id": order["id"], "phone_number": "0712345678"}, headers=headers())

        response = client.get("/mpesa/status/ws_CO_000001", headers=headers())

        assert response.status_code == 200
        assert response.json()["is_paid"] is False

    def test_unknown_checkout_request_is_404(self, client, headers, fake_gateway):
        assert client.get("/mpesa/status/ws_CO_404", headers=headers()).status_code == 404


def test_provider_bound_routes_run_in_the_threadpool():
    endpoints = {route.path: route.endpoint for route in mpesa_router.routes}

    assert not inspect.iscoroutinefunction(endpoints["/mpesa/stkpush"])
    assert not inspect.iscoroutinefunction(endpoints["/mpesa/status/{checkout_request_id}"])
