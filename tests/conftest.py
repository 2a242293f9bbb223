"""
Shared fixtures.

Every test gets a fresh SQLite file.  Calls to third-party providers
go through ``core.http_client.provider_client``, which the
``provider`` fixture replaces with a client backed by
``httpx.MockTransport`` so tests can inspect outgoing requests and
script the responses.
"""

import httpx
import pytest
import pytest_asyncio

from only2u_api.app.core import http_client
from only2u_api.app.core.config import settings
from only2u_api.app.core.db import get_connection, init_db
from only2u_api.app.core.security import ADMIN_ROLE
from only2u_api.app.main import app
from only2u_api.app.services.session_service import SessionService
from only2u_api.app.services.user_service import UserService


class MockProvider:
    """Records outgoing provider requests and answers them with ``handler``."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "test.db"))
    init_db()
    yield


@pytest.fixture
def provider(monkeypatch):
    mock = MockProvider()

    def factory(**kwargs):
        return httpx.AsyncClient(transport=httpx.MockTransport(mock), **kwargs)

    monkeypatch.setattr(http_client, "provider_client", factory)
    return mock


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def login(phone: str, role_id: int = None):
    """Create (or fetch) a user and open a session; returns ``(user, headers)``."""
    user, _ = await UserService.get_or_create_by_phone(phone)
    if role_id is not None:
        conn = get_connection()
        try:
            conn.execute("UPDATE users SET role_id = ? WHERE id = ?", (role_id, user.id))
            conn.commit()
        finally:
            conn.close()
    token, _ = await SessionService.create_session(phone, user.id)
    return user, {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def user_auth():
    return await login("+919800000001")


@pytest_asyncio.fixture
async def other_auth():
    return await login("+919800000002")


@pytest_asyncio.fixture
async def admin_auth():
    return await login("+919800000099", role_id=ADMIN_ROLE)
