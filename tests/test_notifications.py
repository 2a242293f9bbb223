import json

import httpx
import pytest

from only2u_api.app.core.config import settings
from only2u_api.app.services.notification_service import NotificationService, build_push_message, chunked

from .conftest import login


def _expo_ok(request):
    return httpx.Response(200, json={"data": [{"status": "ok"} for _ in json.loads(request.content)]})


class TestHelpers:
    def test_chunked(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunked([], 100) == []

    def test_push_message(self):
        assert build_push_message("ExponentPushToken[a]", "Hi", "Sale today") == {
            "to": "ExponentPushToken[a]",
            "sound": "default",
            "title": "Hi",
            "body": "Sale today",
            "data": {},
        }


class TestPushTokens:
    @pytest.mark.asyncio
    async def test_register_token(self, client, user_auth):
        _, headers = user_auth

        response = await client.post(
            "/api/v1/notifications/register-token", headers=headers, json={"token": "ExponentPushToken[abc]"}
        )

        assert response.json() == {"success": True}

    @pytest.mark.asyncio
    async def test_register_requires_session(self, client):
        response = await client.post("/api/v1/notifications/register-token", json={"token": "x"})

        assert response.status_code == 401


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_broadcast_in_chunks(self, client, monkeypatch, provider, admin_auth):
        _, admin_headers = admin_auth
        monkeypatch.setattr(settings, "expo_push_chunk_size", 2)
        for i in range(5):
            user, _ = await login(f"+91981000000{i}")
            # two users share a device
            token = f"ExponentPushToken[{min(i, 3)}]"
            await NotificationService.register_push_token(user.id, token)
        provider.handler = _expo_ok

        response = await client.post(
            "/api/v1/notifications/broadcast",
            headers=admin_headers,
            json={"title": "New drop", "body": "Fresh kurtis are live", "data": {"screen": "home"}},
        )

        assert response.status_code == 200
        assert response.json() == {"devices": 4, "chunks": 2, "failed_chunks": 0}
        assert len(provider.requests) == 2
        request = provider.requests[0]
        assert str(request.url) == "https://exp.host/--/api/v2/push/send"
        assert request.headers["Accept"] == "application/json"
        first_chunk = json.loads(request.content)
        assert len(first_chunk) == 2
        assert first_chunk[0]["title"] == "New drop"
        assert first_chunk[0]["data"] == {"screen": "home"}

    @pytest.mark.asyncio
    async def test_failed_chunk_does_not_stop_others(self, monkeypatch, provider, admin_auth):
        monkeypatch.setattr(settings, "expo_push_chunk_size", 1)
        for i in range(3):
            user, _ = await login(f"+91982000000{i}")
            await NotificationService.register_push_token(user.id, f"ExponentPushToken[{i}]")

        def fail_second(request):
            if len(provider.requests) == 2:
                return httpx.Response(500, json={"errors": [{"message": "boom"}]})
            return _expo_ok(request)

        provider.handler = fail_second

        result = await NotificationService.broadcast("Title", "Body")

        assert result.devices == 3
        assert result.chunks == 3
        assert result.failed_chunks == 1
        assert len(provider.requests) == 3

    @pytest.mark.asyncio
    async def test_broadcast_is_recorded_per_user(self, client, provider, user_auth):
        user, headers = user_auth
        await NotificationService.register_push_token(user.id, "ExponentPushToken[me]")
        provider.handler = _expo_ok

        await NotificationService.broadcast("Sale", "50% off", {"promo": "SALE50"})

        response = await client.get("/api/v1/notifications/me", headers=headers)
        notifications = response.json()["notifications"]
        assert len(notifications) == 1
        assert notifications[0]["type"] == "push"
        assert notifications[0]["data"] == {"promo": "SALE50"}
        assert notifications[0]["read"] is False

    @pytest.mark.asyncio
    async def test_no_devices(self, provider):
        result = await NotificationService.broadcast("Title", "Body")

        assert result.devices == 0
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_broadcast_requires_admin(self, client, user_auth):
        _, headers = user_auth

        response = await client.post(
            "/api/v1/notifications/broadcast", headers=headers, json={"title": "x", "body": "y"}
        )

        assert response.status_code == 403


class TestUserNotifications:
    @pytest.mark.asyncio
    async def test_push_notification_is_delivered(self, client, provider, admin_auth, user_auth):
        _, admin_headers = admin_auth
        user, _ = user_auth
        await NotificationService.register_push_token(user.id, "ExponentPushToken[me]")
        provider.handler = _expo_ok

        response = await client.post(
            "/api/v1/notifications/",
            headers=admin_headers,
            json={"user_id": user.id, "type": "push", "title": "Shipped", "body": "Your order is on its way"},
        )

        assert response.status_code == 201
        assert response.json()["type"] == "push"
        assert json.loads(provider.requests[0].content)[0]["to"] == "ExponentPushToken[me]"

    @pytest.mark.asyncio
    async def test_push_disabled_by_preferences(self, client, provider, user_auth):
        user, headers = user_auth
        await NotificationService.register_push_token(user.id, "ExponentPushToken[me]")
        await client.put("/api/v1/notifications/preferences", headers=headers, json={"push_enabled": False})

        await NotificationService.create_notification(user.id, "push", "Shipped", "On its way")

        assert provider.requests == []
        assert len(await NotificationService.get_user_notifications(user.id)) == 1

    @pytest.mark.asyncio
    async def test_in_app_notification_is_not_pushed(self, provider, user_auth):
        user, _ = user_auth
        await NotificationService.register_push_token(user.id, "ExponentPushToken[me]")

        notification = await NotificationService.create_notification(user.id, "in_app", "Hello", "Welcome")

        assert notification.type == "in_app"
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, admin_auth):
        _, admin_headers = admin_auth

        response = await client.post(
            "/api/v1/notifications/",
            headers=admin_headers,
            json={"user_id": "missing", "title": "Hi", "body": "There"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_mark_read(self, client, user_auth, other_auth):
        user, headers = user_auth
        _, other_headers = other_auth
        notification = await NotificationService.create_notification(user.id, "in_app", "Hello", "Welcome")

        foreign = await client.put(f"/api/v1/notifications/{notification.id}/read", headers=other_headers)
        own = await client.put(f"/api/v1/notifications/{notification.id}/read", headers=headers)

        assert foreign.status_code == 404
        assert own.json() == {"success": True}
        assert (await NotificationService.get_user_notifications(user.id))[0].read is True


class TestPreferences:
    @pytest.mark.asyncio
    async def test_defaults(self, client, user_auth):
        _, headers = user_auth

        response = await client.get("/api/v1/notifications/preferences", headers=headers)

        assert response.json() == {
            "push_enabled": True,
            "email_enabled": True,
            "order_updates": True,
            "promotions": True,
            "new_products": False,
        }

    @pytest.mark.asyncio
    async def test_update_is_persisted(self, client, user_auth):
        _, headers = user_auth
        await client.put("/api/v1/notifications/preferences", headers=headers, json={"promotions": False})

        await client.put(
            "/api/v1/notifications/preferences", headers=headers, json={"promotions": False, "new_products": True}
        )
        response = await client.get("/api/v1/notifications/preferences", headers=headers)

        assert response.json()["promotions"] is False
        assert response.json()["new_products"] is True
