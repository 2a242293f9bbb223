"""Only2U API client.

A small wrapper around the Only2U REST API for Python callers (scripts,
back-office tools, integration tests against a running server).  It
mirrors the calls the mobile app makes: OTP login, session refresh,
reviews, feedback, coupons, Razorpay checkout and the support chat.

Every method returns a ``(data, error)`` tuple.  On success ``error``
is ``None``; on failure ``data`` is ``None`` and ``error`` is a
dictionary with ``status_code``, ``code`` and ``message``.  Network
failures have ``status_code`` ``None`` and code ``NETWORK_ERROR``.

Example::

    client = Only2UClient("http://localhost:8000")
    sent, error = client.send_otp("9876543210")
    session, error = client.verify_otp("9876543210", "123456", sent["otp_id"])
    reviews, error = client.get_product_reviews("sku-1")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class Only2UClient:
    """Client for the Only2U API.

    The session token returned by :meth:`verify_otp` or
    :meth:`refresh_session` is kept on the instance and sent as a
    bearer token with every following request.
    """

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        *,
        api_prefix: str = "/api/v1",
        timeout: float = 15,
    ) -> None:
        """Initialise the client.

        Args:
            base_url: Server URL, e.g. ``https://api.only2u.app``.
            session_token: Token of an existing session, if any.
            session: Optional ``requests.Session`` to reuse connections.
            api_prefix: Path prefix of the versioned API.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/") + api_prefix
        self.session_token = session_token
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------
    def _request(
        self, method: str, path: str, *, params: Dict[str, Any] | None = None,
        json_body: Any | None = None
    ) -> Result:
        """Perform an HTTP request and return ``(data, error)``."""
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        if self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            return None, self._http_error(exc.response)
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "code": "NETWORK_ERROR", "message": str(exc)}

    @staticmethod
    def _http_error(response: Optional[requests.Response]) -> Dict[str, Any]:
        if response is None:
            return {"status_code": None, "code": "NETWORK_ERROR", "message": "No response"}
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = body.get("detail") if isinstance(body, dict) else None
        if isinstance(detail, dict):
            code = detail.get("code")
            message = detail.get("message") or detail.get("error") or str(detail)
        elif isinstance(detail, list):
            # FastAPI request validation errors
            code = "INVALID_REQUEST"
            message = "; ".join(str(item.get("msg", item)) for item in detail)
        else:
            message = detail or response.text or response.reason
        logger.error("API request failed (%s): %s", response.status_code, message)
        return {"status_code": response.status_code, "code": code or "HTTP_ERROR", "message": message}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def send_otp(self, phone: str, country_code: Optional[str] = None) -> Result:
        payload = {"phone": phone}
        if country_code:
            payload["country_code"] = country_code
        return self._request("POST", "/auth/send-otp", json_body=payload)

    def verify_otp(self, phone: str, otp: str, otp_id: Optional[str] = None) -> Result:
        """Verify an OTP; on success the session token is stored on the client."""
        data, error = self._request(
            "POST", "/auth/verify-otp", json_body={"phone": phone, "otp": otp, "otp_id": otp_id}
        )
        if data and data.get("session_token"):
            self.session_token = data["session_token"]
        return data, error

    def refresh_session(self) -> Result:
        if not self.session_token:
            return None, {"status_code": None, "code": "INVALID_SESSION", "message": "No session token"}
        data, error = self._request(
            "POST", "/auth/refresh", json_body={"session_token": self.session_token}
        )
        if data and data.get("session_token"):
            self.session_token = data["session_token"]
        return data, error

    def logout(self) -> Result:
        if not self.session_token:
            return {"success": True}, None
        data, error = self._request(
            "POST", "/auth/logout", json_body={"session_token": self.session_token}
        )
        if not error:
            self.session_token = None
        return data, error

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def get_products(self, page: int = 1, limit: int = 20, **filters: Any) -> Result:
        """Browse products; ``filters`` are passed as query parameters
        (``category_id``, ``featured_type``, ``search``, ``min_price``,
        ``max_price``)."""
        params = {"page": page, "limit": limit}
        params.update({k: v for k, v in filters.items() if v is not None})
        return self._request("GET", "/products", params=params)

    def get_product(self, product_id: str) -> Result:
        return self._request("GET", f"/products/{product_id}")

    # ------------------------------------------------------------------
    # Reviews and feedback
    # ------------------------------------------------------------------
    def get_product_reviews(self, product_id: str, page: int = 1, limit: int = 20) -> Result:
        return self._request(
            "GET", f"/reviews/product/{product_id}", params={"page": page, "limit": limit}
        )

    def create_review(
        self,
        product_id: str,
        rating: int,
        comment: Optional[str] = None,
        reviewer_name: Optional[str] = None,
    ) -> Result:
        payload: Dict[str, Any] = {"product_id": product_id, "rating": rating}
        if comment is not None:
            payload["comment"] = comment
        if reviewer_name:
            payload["reviewer_name"] = reviewer_name
        return self._request("POST", "/reviews", json_body=payload)

    def create_feedback(
        self,
        feedback_text: str,
        *,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
        category: Optional[str] = None,
        image_urls: Optional[List[str]] = None,
    ) -> Result:
        payload = {
            "feedback_text": feedback_text,
            "user_name": user_name,
            "user_email": user_email,
            "category": category,
            "image_urls": image_urls,
        }
        return self._request(
            "POST", "/feedback", json_body={k: v for k, v in payload.items() if v is not None}
        )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def get_cart(self) -> Result:
        return self._request("GET", "/cart")

    def add_to_cart(self, product_id: str, quantity: int = 1, variant_id: Optional[str] = None) -> Result:
        payload: Dict[str, Any] = {"product_id": product_id, "quantity": quantity}
        if variant_id:
            payload["variant_id"] = variant_id
        return self._request("POST", "/cart/items", json_body=payload)

    def create_order(self, order: Dict[str, Any]) -> Result:
        """Place an order; ``order`` follows the ``POST /orders`` body."""
        return self._request("POST", "/orders", json_body=order)

    def validate_coupon(self, code: str, order_amount: float) -> Result:
        return self._request(
            "POST", "/coupons/validate", json_body={"code": code, "order_amount": order_amount}
        )

    def create_razorpay_order(
        self, amount: float, currency: str = "INR", receipt: Optional[str] = None
    ) -> Result:
        payload: Dict[str, Any] = {"amount": amount, "currency": currency}
        if receipt:
            payload["receipt"] = receipt
        return self._request("POST", "/payments/razorpay/order", json_body=payload)

    def verify_razorpay_payment(self, order_id: str, payment_id: str, signature: str) -> Result:
        return self._request(
            "POST",
            "/payments/razorpay/verify",
            json_body={
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            },
        )

    # ------------------------------------------------------------------
    # Support
    # ------------------------------------------------------------------
    def ask_support(self, message: str, history: Optional[List[Dict[str, str]]] = None) -> Result:
        """Send a message to the support assistant.

        ``history`` holds the earlier turns as ``{"role": "user" |
        "model", "parts": <text>}`` dictionaries.
        """
        return self._request(
            "POST", "/support/chat", json_body={"message": message, "history": history or []}
        )
