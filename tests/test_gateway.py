"""Tests for Razorpay order creation over a mocked HTTP transport."""

import asyncio
import base64
import json
from decimal import Decimal

import httpx
import pytest

from pipeline.agents.payment_gateway import RazorpayGateway, to_paise
from pipeline.errors import GatewayError


def _gateway(handler) -> RazorpayGateway:
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://api.razorpay.test",
        transport=httpx.MockTransport(handler),
    )


def _order_handler(captured):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "order_TEST123",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )

    return handler


@pytest.mark.parametrize(
    "amount,paise",
    [(Decimal("500"), 50000), ("499.99", 49999), (Decimal("10.5"), 1050), (1, 100), ("0.005", 1)],
)
def test_to_paise(amount, paise):
    assert to_paise(amount) == paise


def test_create_order_posts_to_orders_api():
    captured = []
    gateway = _gateway(_order_handler(captured))

    order = asyncio.run(gateway.create_order(Decimal("500"), "receipt_1"))

    assert order["id"] == "order_TEST123"
    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/orders"
    assert json.loads(request.content) == {
        "amount": 50000,
        "currency": "INR",
        "receipt": "receipt_1",
        "payment_capture": 1,
    }
    expected_auth = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected_auth}"


def test_create_checkout_descriptor():
    captured = []
    gateway = _gateway(_order_handler(captured))
    student = {
        "name": "A",
        "email": "a@x.com",
        "phone": "1",
        "course": "C1",
        "amount": Decimal("500"),
    }

    descriptor = asyncio.run(gateway.create_checkout(student))

    assert descriptor["order_id"] == "order_TEST123"
    assert descriptor["key_id"] == "rzp_test_key"
    assert descriptor["amount"] == 50000
    assert descriptor["currency"] == "INR"
    assert descriptor["name"] == "ASTA Education Academy"
    assert descriptor["description"] == "Course Registration for C1"
    assert descriptor["prefill"] == {"name": "A", "email": "a@x.com", "contact": "1"}
    assert descriptor["student_info"]["amount"] == 500.0
    assert descriptor["config"]["display"]["sequence"] == ["block.upi"]
    assert descriptor["modal"] == {"escape": False}
    assert json.loads(captured[0].content)["receipt"].startswith("receipt_")


def test_gateway_rejection_raises():
    gateway = _gateway(lambda request: httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR"}}))
    with pytest.raises(GatewayError):
        asyncio.run(gateway.create_order(Decimal("500"), "receipt_1"))


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    gateway = _gateway(handler)
    with pytest.raises(GatewayError):
        asyncio.run(gateway.create_order(Decimal("500"), "receipt_1"))


def test_response_without_order_id_raises():
    gateway = _gateway(lambda request: httpx.Response(200, json={"entity": "order"}))
    with pytest.raises(GatewayError):
        asyncio.run(gateway.create_order(Decimal("500"), "receipt_1"))
