import json
from unittest.mock import Mock

import requests

from only2u_client import Only2UClient


def _response(status_code, body=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    response.url = "http://api.test/api/v1/x"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode("utf-8")
    return response


def _client(*responses):
    session = Mock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return Only2UClient("http://api.test/", session=session), session


class TestOnly2UClient:
    def test_verify_otp_stores_session_token(self):
        client, session = _client(
            _response(200, {"verified": True, "session_token": "tok-1", "user": {"id": "u1"}}),
            _response(200, {"reviews": [], "total": 0, "average_rating": 0, "page": 1, "limit": 20}),
        )

        data, error = client.verify_otp("+919876543210", "123456", "otp-1")
        reviews, _ = client.get_product_reviews("sku-1")

        assert error is None
        assert client.session_token == "tok-1"
        assert reviews["total"] == 0
        first_call = session.request.call_args_list[0].kwargs
        assert first_call["url"] == "http://api.test/api/v1/auth/verify-otp"
        assert first_call["json"] == {"phone": "+919876543210", "otp": "123456", "otp_id": "otp-1"}
        assert "Authorization" not in first_call["headers"]
        second_call = session.request.call_args_list[1].kwargs
        assert second_call["headers"]["Authorization"] == "Bearer tok-1"
        assert second_call["params"] == {"page": 1, "limit": 20}

    def test_structured_error_detail(self):
        client, _ = _client(
            _response(400, {"detail": {"code": "INVALID_OTP", "message": "Invalid OTP. 2 attempts remaining"}})
        )

        data, error = client.verify_otp("+919876543210", "000000")

        assert data is None
        assert error == {
            "status_code": 400,
            "code": "INVALID_OTP",
            "message": "Invalid OTP. 2 attempts remaining",
        }
        assert client.session_token is None

    def test_plain_error_detail(self):
        client, _ = _client(_response(409, {"detail": "User has already reviewed this product"}))
        client.session_token = "tok"

        _, error = client.create_review("sku-1", 5)

        assert error["code"] == "HTTP_ERROR"
        assert error["message"] == "User has already reviewed this product"

    def test_validation_error(self):
        client, _ = _client(
            _response(422, {"detail": [{"loc": ["body", "rating"], "msg": "Input should be less than or equal to 5"}]})
        )

        _, error = client.create_review("sku-1", 9)

        assert error["code"] == "INVALID_REQUEST"
        assert "less than or equal to 5" in error["message"]

    def test_network_error(self):
        client, _ = _client(requests.ConnectionError("connection refused"))

        data, error = client.send_otp("9876543210")

        assert data is None
        assert error["status_code"] is None
        assert error["code"] == "NETWORK_ERROR"

    def test_logout_clears_token(self):
        client, session = _client(_response(200, {"success": True}))
        client.session_token = "tok-1"

        data, error = client.logout()

        assert data == {"success": True}
        assert client.session_token is None
        assert session.request.call_args.kwargs["json"] == {"session_token": "tok-1"}

    def test_refresh_without_session(self):
        client, session = _client()

        _, error = client.refresh_session()

        assert error["code"] == "INVALID_SESSION"
        session.request.assert_not_called()

    def test_feedback_omits_empty_fields(self):
        client, session = _client(_response(201, {"id": "f1"}))

        client.create_feedback("Love it", category="general")

        assert session.request.call_args.kwargs["json"] == {"feedback_text": "Love it", "category": "general"}

    def test_razorpay_checkout(self):
        client, session = _client(
            _response(200, {"order_id": "order_1", "id": "order_1", "amount": 49900, "currency": "INR"}),
            _response(200, {"verified": True, "message": "Payment verified successfully"}),
        )

        order, _ = client.create_razorpay_order(49900)
        verified, _ = client.verify_razorpay_payment(order["order_id"], "pay_1", "sig")

        assert verified["verified"] is True
        assert session.request.call_args.kwargs["json"] == {
            "razorpay_order_id": "order_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "sig",
        }

    def test_product_browsing_drops_empty_filters(self):
        client, session = _client(
            _response(200, {"products": [], "total": 0, "page": 2, "limit": 10}),
            _response(200, {"id": "p1", "variants": []}),
        )

        page, _ = client.get_products(page=2, limit=10, search="saree", category_id=None)
        product, _ = client.get_product("p1")

        assert page["page"] == 2
        assert product["id"] == "p1"
        first_call, second_call = (call.kwargs for call in session.request.call_args_list)
        assert first_call["params"] == {"page": 2, "limit": 10, "search": "saree"}
        assert second_call["url"] == "http://api.test/api/v1/products/p1"

    def test_cart_and_order(self):
        client, session = _client(
            _response(201, {"items": [{"id": "c1"}], "item_count": 2, "subtotal": 800}),
            _response(201, {"id": "o1", "order_number": "ORD12345678001"}),
        )
        client.session_token = "tok"

        cart, _ = client.add_to_cart("p1", quantity=2)
        order, _ = client.create_order({"items": [], "clear_cart": True})

        assert cart["item_count"] == 2
        assert order["order_number"] == "ORD12345678001"
        add_call = session.request.call_args_list[0].kwargs
        assert add_call["json"] == {"product_id": "p1", "quantity": 2}
        assert add_call["headers"]["Authorization"] == "Bearer tok"
        assert session.request.call_args.kwargs["url"] == "http://api.test/api/v1/orders"
