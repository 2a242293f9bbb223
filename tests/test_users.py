import pytest

from only2u_api.app.core.config import settings
from only2u_api.app.core.security import ADMIN_ROLE, USER_ROLE
from only2u_api.app.services.otp_service import OtpService
from only2u_api.app.services.user_service import UserService

from .conftest import login


class TestProfile:
    @pytest.mark.asyncio
    async def test_read_me(self, client, user_auth):
        user, headers = user_auth

        response = await client.get("/api/v1/users/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["phone"] == user.phone
        assert response.json()["role_id"] == USER_ROLE

    @pytest.mark.asyncio
    async def test_update_only_supplied_fields(self, client, user_auth):
        _, headers = user_auth
        await client.put("/api/v1/users/me", headers=headers, json={"full_name": "Asha Rao", "size": "M"})

        response = await client.put("/api/v1/users/me", headers=headers, json={"skin_tone": "wheatish"})

        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Asha Rao"
        assert data["size"] == "M"
        assert data["skin_tone"] == "wheatish"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.get("/api/v1/users/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_static_token_has_no_profile(self, client, monkeypatch):
        monkeypatch.setattr(settings, "super_admin_static_token", "root-token")

        response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer root-token"})

        assert response.status_code == 403


class TestAdministration:
    @pytest.mark.asyncio
    async def test_admin_phone_gets_admin_role(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_phones", "+919811111111, +919822222222")

        admin, created = await UserService.get_or_create_by_phone("+919822222222")
        user, _ = await UserService.get_or_create_by_phone("+919833333333")

        assert created is True
        assert admin.role_id == ADMIN_ROLE
        assert user.role_id == USER_ROLE

    @pytest.mark.asyncio
    async def test_list_users_with_search(self, client, admin_auth, user_auth):
        _, headers = admin_auth
        user, _ = user_auth

        response = await client.get("/api/v1/users", headers=headers, params={"search": user.phone[-6:]})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["users"][0]["id"] == user.id

    @pytest.mark.asyncio
    async def test_regular_user_cannot_list(self, client, user_auth):
        _, headers = user_auth

        response = await client.get("/api/v1/users", headers=headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_static_token_is_super_admin(self, client, monkeypatch, user_auth):
        monkeypatch.setattr(settings, "super_admin_static_token", "root-token")

        response = await client.get("/api/v1/users", headers={"Authorization": "Bearer root-token"})

        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, client, admin_auth):
        _, headers = admin_auth

        response = await client.get("/api/v1/users/missing", headers=headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "User missing not found"

    @pytest.mark.asyncio
    async def test_delete_user_ends_sessions(self, client, admin_auth):
        admin, admin_headers = admin_auth
        user, headers = await login("+919855555555")

        response = await client.delete(f"/api/v1/users/{user.id}", headers=admin_headers)

        assert response.status_code == 204
        assert (await client.get("/api/v1/users/me", headers=headers)).status_code == 401
        again = await client.delete(f"/api/v1/users/{user.id}", headers=admin_headers)
        assert again.status_code == 404

        logs = await client.get(
            "/api/v1/audit", headers=admin_headers, params={"object_type": "user", "action": "delete"}
        )
        assert logs.status_code == 200
        entry = logs.json()["logs"][0]
        assert entry["user_id"] == admin.id
        assert entry["object_id"] == user.id

    @pytest.mark.asyncio
    async def test_disabled_user_is_locked_out(self, client, admin_auth):
        _, admin_headers = admin_auth
        user, headers = await login("+919866666666")

        response = await client.put(
            f"/api/v1/users/{user.id}/status", headers=admin_headers, json={"disabled": True}
        )

        assert response.status_code == 200
        assert response.json()["disabled"] is True
        me = await client.get("/api/v1/users/me", headers=headers)
        assert me.status_code == 401
        assert me.json()["detail"] == "User account disabled"

        otp_id, otp, _ = await OtpService.create_otp(user.phone)
        relogin = await client.post(
            "/api/v1/auth/verify-otp", json={"phone": user.phone, "otp": otp, "otp_id": otp_id}
        )
        assert relogin.status_code == 403
        assert relogin.json()["detail"]["message"] == "User account disabled"

        await client.put(f"/api/v1/users/{user.id}/status", headers=admin_headers, json={"disabled": False})
        assert (await client.get("/api/v1/users/me", headers=headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_regular_user_cannot_disable(self, client, user_auth, other_auth):
        _, headers = user_auth
        other, _ = other_auth

        response = await client.put(
            f"/api/v1/users/{other.id}/status", headers=headers, json={"disabled": True}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_disable_unknown_user(self, client, admin_auth):
        _, admin_headers = admin_auth

        response = await client.put("/api/v1/users/missing/status", headers=admin_headers, json={"disabled": True})

        assert response.status_code == 404


class TestAuditLog:
    @pytest.mark.asyncio
    async def test_profile_update_is_audited(self, client, admin_auth, user_auth):
        user, headers = user_auth
        _, admin_headers = admin_auth
        await client.put("/api/v1/users/me", headers=headers, json={"email": "asha@example.com"})

        response = await client.get(
            "/api/v1/audit", headers=admin_headers, params={"user_id": user.id, "action": "update"}
        )

        page = response.json()
        assert page["total"] == 1
        logs = page["logs"]
        assert logs[0]["object_type"] == "user"
        assert logs[0]["details"] == {"fields": ["email"]}

    @pytest.mark.asyncio
    async def test_regular_user_cannot_read_audit(self, client, user_auth):
        _, headers = user_auth

        response = await client.get("/api/v1/audit", headers=headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_date_filter(self, client, admin_auth, user_auth):
        _, admin_headers = admin_auth

        future = await client.get("/api/v1/audit", headers=admin_headers, params={"start_date": "2999-01-01"})
        everything = await client.get("/api/v1/audit", headers=admin_headers, params={"end_date": "2999-01-01"})

        assert future.json()["total"] == 0
        assert everything.json()["total"] == 2
        assert [log["object_type"] for log in everything.json()["logs"]] == ["user", "user"]
