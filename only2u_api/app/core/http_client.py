"""
Outbound HTTP client factory.

All third-party calls (WhatsApp, Sisdial, Razorpay, Expo, Gemini) go
through ``provider_client`` so that timeouts are configured in one
place.
"""

import httpx

from .config import settings


def provider_client(**kwargs) -> httpx.AsyncClient:
    """Return a new ``httpx.AsyncClient`` using the configured timeout.

    Use as an async context manager so the connection pool is closed
    after the call.
    """
    kwargs.setdefault("timeout", settings.http_timeout)
    return httpx.AsyncClient(**kwargs)
