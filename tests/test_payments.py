import base64
import json
import re

import httpx
import pytest

from only2u_api.app.core.config import settings
from only2u_api.app.services.payment_service import PaymentService, payment_signature, to_paise


@pytest.fixture
def razorpay(monkeypatch, provider):
    monkeypatch.setattr(settings, "razorpay_key_id", "rzp_test_key")
    monkeypatch.setattr(settings, "razorpay_key_secret", "rzp_secret")

    def create_order(request):
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "order_Test123",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )

    provider.handler = create_order
    return provider


async def _order(client, headers, **payload):
    payload.setdefault("amount", 49900)
    return await client.post("/api/v1/payments/razorpay/order", headers=headers, json=payload)


class TestAmounts:
    def test_rounds_half_up(self):
        assert to_paise(49899.5) == 49900
        assert to_paise(49899.49) == 49899
        assert to_paise(100) == 100


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_creates_order(self, client, razorpay, user_auth):
        user, headers = user_auth

        response = await _order(client, headers, amount=49899.5)

        assert response.status_code == 200
        data = response.json()
        assert data["order_id"] == data["id"] == "order_Test123"
        assert data["amount"] == 49900
        assert data["currency"] == "INR"
        assert re.fullmatch(r"receipt_\d+_[0-9a-f]{6}", data["receipt"])

        request = razorpay.requests[0]
        assert str(request.url) == "https://api.razorpay.com/v1/orders"
        expected_auth = base64.b64encode(b"rzp_test_key:rzp_secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"

        payments = await PaymentService.list_payments(user_id=user.id)
        assert len(payments) == 1
        assert payments[0].status == "created"
        assert payments[0].razorpay_order_id == "order_Test123"

    @pytest.mark.asyncio
    async def test_custom_receipt(self, client, razorpay, user_auth):
        _, headers = user_auth

        response = await _order(client, headers, receipt="order-77")

        assert response.json()["receipt"] == "order-77"

    @pytest.mark.asyncio
    async def test_not_configured(self, client, provider, user_auth):
        _, headers = user_auth

        response = await _order(client, headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Razorpay credentials not configured"
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, client, razorpay, user_auth):
        _, headers = user_auth

        response = await _order(client, headers, amount=0)

        assert response.status_code == 400
        assert response.json()["detail"] == "Amount must be greater than 0"

    @pytest.mark.asyncio
    async def test_provider_error_is_passed_through(self, client, razorpay, user_auth):
        _, headers = user_auth
        razorpay.handler = lambda request: httpx.Response(
            400,
            json={"error": {"code": "BAD_REQUEST_ERROR", "description": "Order amount less than minimum amount allowed"}},
        )

        response = await _order(client, headers, amount=50)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "Order amount less than minimum amount allowed"
        assert detail["details"]["code"] == "BAD_REQUEST_ERROR"

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, client, razorpay, user_auth):
        _, headers = user_auth

        def fail(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        razorpay.handler = fail

        response = await _order(client, headers)

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "Failed to reach Razorpay"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, razorpay):
        response = await _order(client, {})

        assert response.status_code == 401


class TestVerifyPayment:
    @pytest.mark.asyncio
    async def test_valid_signature_marks_paid(self, client, razorpay, user_auth):
        user, headers = user_auth
        await _order(client, headers)
        signature = payment_signature("order_Test123", "pay_ABC", "rzp_secret")

        response = await client.post(
            "/api/v1/payments/razorpay/verify",
            headers=headers,
            json={
                "razorpay_order_id": "order_Test123",
                "razorpay_payment_id": "pay_ABC",
                "razorpay_signature": signature,
            },
        )

        assert response.status_code == 200
        assert response.json() == {"verified": True, "message": "Payment verified successfully"}
        payment = (await PaymentService.list_payments(user_id=user.id))[0]
        assert payment.status == "paid"
        assert payment.razorpay_payment_id == "pay_ABC"

    @pytest.mark.asyncio
    async def test_bad_signature_marks_failed(self, client, razorpay, user_auth):
        user, headers = user_auth
        await _order(client, headers)

        response = await client.post(
            "/api/v1/payments/razorpay/verify",
            headers=headers,
            json={
                "razorpay_order_id": "order_Test123",
                "razorpay_payment_id": "pay_ABC",
                "razorpay_signature": "0" * 64,
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {"verified": False, "message": "Payment verification failed"}
        assert (await PaymentService.list_payments(user_id=user.id))[0].status == "failed"

    @pytest.mark.asyncio
    async def test_non_ascii_signature_is_a_mismatch(self, client, razorpay, user_auth):
        user, headers = user_auth
        await _order(client, headers)

        response = await client.post(
            "/api/v1/payments/razorpay/verify",
            headers=headers,
            json={
                "razorpay_order_id": "order_Test123",
                "razorpay_payment_id": "pay_ABC",
                "razorpay_signature": "é",
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"]["verified"] is False
        assert (await PaymentService.list_payments(user_id=user.id))[0].status == "failed"

    @pytest.mark.asyncio
    async def test_other_users_order_is_left_alone(self, client, razorpay, user_auth, other_auth):
        user, headers = user_auth
        _, other_headers = other_auth
        await _order(client, headers)

        response = await client.post(
            "/api/v1/payments/razorpay/verify",
            headers=other_headers,
            json={
                "razorpay_order_id": "order_Test123",
                "razorpay_payment_id": "pay_ABC",
                "razorpay_signature": "0" * 64,
            },
        )

        assert response.status_code == 400
        assert (await PaymentService.list_payments(user_id=user.id))[0].status == "created"

    @pytest.mark.asyncio
    async def test_admin_may_verify_any_order(self, client, razorpay, user_auth, admin_auth):
        user, headers = user_auth
        _, admin_headers = admin_auth
        await _order(client, headers)
        signature = payment_signature("order_Test123", "pay_ABC", "rzp_secret")

        response = await client.post(
            "/api/v1/payments/razorpay/verify",
            headers=admin_headers,
            json={
                "razorpay_order_id": "order_Test123",
                "razorpay_payment_id": "pay_ABC",
                "razorpay_signature": signature,
            },
        )

        assert response.status_code == 200
        assert (await PaymentService.list_payments(user_id=user.id))[0].status == "paid"

    @pytest.mark.asyncio
    async def test_paid_order_is_not_downgraded(self, razorpay, client, user_auth):
        user, headers = user_auth
        await _order(client, headers)
        good = payment_signature("order_Test123", "pay_ABC", "rzp_secret")
        await PaymentService.verify_payment("order_Test123", "pay_ABC", good)

        assert await PaymentService.verify_payment("order_Test123", "pay_XYZ", "bad") is False

        payment = (await PaymentService.list_payments(user_id=user.id))[0]
        assert payment.status == "paid"
        assert payment.razorpay_payment_id == "pay_ABC"


class TestListPayments:
    @pytest.mark.asyncio
    async def test_users_see_only_their_payments(self, client, razorpay, user_auth, other_auth, admin_auth):
        user, headers = user_auth
        _, other_headers = other_auth
        _, admin_headers = admin_auth
        await _order(client, headers)

        own = await client.get("/api/v1/payments", headers=headers)
        foreign = await client.get("/api/v1/payments", headers=other_headers, params={"user_id": user.id})
        everything = await client.get("/api/v1/payments", headers=admin_headers)

        assert len(own.json()) == 1
        assert foreign.json() == []
        assert len(everything.json()) == 1
