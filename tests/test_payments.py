"""Tests for Xendit payment links and webhook reconciliation."""

import asyncio
import json

import httpx
import pytest

from ngantri.app import app
from ngantri.models import Order, OrderPayment
from ngantri.order_service import OrderItemData, order_service
from ngantri.xendit_client import XenditClient, get_xendit_client, to_international

from .conftest import WEBHOOK_TOKEN

FAR_FUTURE = "2099-01-01T00:00:00.000Z"


class FakeXendit:
    """Records invoice requests and answers like the invoice API."""

    def __init__(self, status_code=200, expiry_date=FAR_FUTURE):
        self.status_code = status_code
        self.expiry_date = expiry_date
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(
                self.status_code,
                json={"error_code": "API_VALIDATION_ERROR", "message": "amount is required"},
            )

        body = json.loads(request.content) if request.content else {}
        invoice_id = f"inv_{len(self.requests)}"
        return httpx.Response(200, json={
            "id": invoice_id,
            "external_id": body.get("external_id"),
            "status": "PENDING",
            "amount": body.get("amount"),
            "invoice_url": f"https://checkout.xendit.co/web/{invoice_id}",
            "expiry_date": self.expiry_date,
        })

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def xendit():
    fake = FakeXendit()
    client = XenditClient(
        api_key="xnd_development_test",
        base_url="https://api.xendit.test",
        transport=httpx.MockTransport(fake),
    )
    app.dependency_overrides[get_xendit_client] = lambda: client
    return fake


@pytest.fixture
def order(db, buyer_session, make_merchant, make_menu):
    merchant = make_merchant("Warung Bu Sri")
    menu = make_menu(merchant, "Nasi Goreng", 15000)
    return order_service.create_order(
        db,
        session_id=buyer_session.id,
        merchant_id=merchant.id,
        items=[OrderItemData(menu_id=menu.id, menu_name=menu.name, quantity=2, unit_price=15000)],
        customer_name="Budi",
        customer_phone="081234567890",
    )


def _webhook(client, invoice_id, status, token=WEBHOOK_TOKEN, **extra):
    payload = {"id": invoice_id, "external_id": "ORDER-x", "status": status, **extra}
    headers = {"x-callback-token": token} if token is not None else {}
    return client.post("/api/webhooks/xendit", json=payload, headers=headers)


class TestCreatePayment:
    def test_creates_invoice(self, client, db, xendit, order):
        response = client.post("/api/payments/create", json={"order_id": order.id})

        assert response.status_code == 200
        link = response.json()["data"]["order"]
        assert link["id"] == order.id
        assert link["payment_id"] == "inv_1"
        assert link["payment_url"] == "https://checkout.xendit.co/web/inv_1"

        payload = xendit.last_payload
        assert payload["amount"] == 30000
        assert payload["currency"] == "IDR"
        assert payload["external_id"].startswith(f"ORDER-{order.id}-")
        assert payload["customer"]["mobile_number"] == "+6281234567890"
        assert payload["items"] == [{"name": "Nasi Goreng", "quantity": 2, "price": 15000}]
        assert payload["success_redirect_url"].endswith(f"/payment-success?order_id={order.id}")
        assert xendit.requests[-1].headers["authorization"].startswith("Basic ")

        payment = db.query(OrderPayment).filter(OrderPayment.order_id == order.id).one()
        assert payment.status == "pending"
        assert payment.amount == 30000

    def test_reuses_unexpired_link(self, client, xendit, order):
        first = client.post("/api/payments/create", json={"order_id": order.id}).json()["data"]["order"]
        second = client.post("/api/payments/create", json={"order_id": order.id}).json()["data"]["order"]

        assert first["payment_id"] == second["payment_id"]
        assert len(xendit.requests) == 1

    def test_expired_link_replaced(self, client, db, xendit, order):
        xendit.expiry_date = "2000-01-01T00:00:00.000Z"
        client.post("/api/payments/create", json={"order_id": order.id})
        xendit.expiry_date = FAR_FUTURE

        second = client.post("/api/payments/create", json={"order_id": order.id}).json()["data"]["order"]

        assert second["payment_id"] == "inv_2"
        statuses = sorted(p.status for p in db.query(OrderPayment).filter(OrderPayment.order_id == order.id))
        assert statuses == ["expired", "pending"]

    def test_rejects_cancelled_order(self, client, db, xendit, order):
        order_service.cancel_order(db, order.id)

        response = client.post("/api/payments/create", json={"order_id": order.id})

        assert response.status_code == 400
        assert xendit.requests == []

    def test_rejects_paid_order(self, client, db, xendit, order):
        order_service.set_payment_status(db, order.id, "paid")

        response = client.post("/api/payments/create", json={"order_id": order.id})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Order is already paid"

    def test_unknown_order(self, client, xendit):
        response = client.post("/api/payments/create", json={"order_id": "missing"})

        assert response.status_code == 404

    def test_gateway_error(self, client, db, xendit, order):
        xendit.status_code = 400

        response = client.post("/api/payments/create", json={"order_id": order.id})

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "PAYMENT_GATEWAY_ERROR"
        assert "API_VALIDATION_ERROR" in error["message"]
        assert db.query(OrderPayment).count() == 0


class TestWebhook:
    @pytest.fixture
    def invoice_id(self, client, xendit, order):
        response = client.post("/api/payments/create", json={"order_id": order.id})
        return response.json()["data"]["order"]["payment_id"]

    def test_paid_accepts_pending_order(self, client, db, order, invoice_id):
        response = _webhook(
            client, invoice_id, "PAID",
            payment_method="BANK_TRANSFER", paid_at="2026-10-19T08:30:00.000Z",
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "paid"
        assert response.json()["data"]["order_status"] == "accepted"

        db.expire_all()
        payment = db.query(OrderPayment).filter(OrderPayment.xendit_invoice_id == invoice_id).one()
        assert payment.payment_method == "BANK_TRANSFER"
        assert payment.paid_at.isoformat() == "2026-10-19T08:30:00"
        assert json.loads(payment.webhook_data)["status"] == "PAID"
        assert db.get(Order, order.id).status == "accepted"

    def test_settled_counts_as_paid(self, client, invoice_id):
        response = _webhook(client, invoice_id, "SETTLED")

        assert response.json()["data"]["status"] == "paid"

    @pytest.mark.parametrize("status,payment_status", [("EXPIRED", "expired"), ("FAILED", "failed")])
    def test_expired_or_failed_cancels_pending_order(self, client, invoice_id, status, payment_status):
        response = _webhook(client, invoice_id, status)

        assert response.json()["data"]["status"] == payment_status
        assert response.json()["data"]["order_status"] == "cancelled"

    def test_paid_does_not_rewind_progressed_order(self, client, db, order, invoice_id):
        order_service.update_order_status(db, order.id, "preparing")

        response = _webhook(client, invoice_id, "PAID")

        assert response.json()["data"]["order_status"] == "preparing"

    @pytest.mark.parametrize("token", ["wrong-token", None])
    def test_bad_token_rejected(self, client, db, invoice_id, token):
        response = _webhook(client, invoice_id, "PAID", token=token)

        assert response.status_code == 401
        db.expire_all()
        assert db.query(OrderPayment).one().status == "pending"

    def test_unknown_invoice(self, client):
        response = _webhook(client, "inv_unknown", "PAID")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Payment record not found"


class TestXenditClient:
    @pytest.mark.parametrize("phone,expected", [
        ("081234567890", "+6281234567890"),
        ("6281234567890", "+6281234567890"),
        ("+6281234567890", "+6281234567890"),
        ("81234567890", "+6281234567890"),
        ("0812-3456 7890", "+6281234567890"),
    ])
    def test_to_international(self, phone, expected):
        assert to_international(phone) == expected

    def test_get_and_expire_invoice(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "inv_9", "status": "EXPIRED"})

        client = XenditClient(api_key="k", base_url="https://api.xendit.test", transport=httpx.MockTransport(handler))

        assert asyncio.run(client.get_invoice("inv_9"))["id"] == "inv_9"
        assert asyncio.run(client.expire_invoice("inv_9"))["status"] == "EXPIRED"
        assert seen == [("GET", "/v2/invoices/inv_9"), ("POST", "/invoices/inv_9/expire!")]
