import json
from datetime import timedelta

import httpx
import pytest

from only2u_api.app.core.config import settings
from only2u_api.app.core.db import get_connection, to_iso, utcnow
from only2u_api.app.services.otp_service import OtpService, normalize_phone
from only2u_api.app.services.session_service import SessionService
from only2u_api.app.services.whatsapp_service import whatsapp_recipient

PHONE = "+919876543210"


@pytest.fixture
def whatsapp(monkeypatch, provider):
    monkeypatch.setattr(settings, "whatsapp_access_token", "wa-token")
    monkeypatch.setattr(settings, "whatsapp_phone_number_id", "12345")
    provider.handler = lambda request: httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})
    return provider


def _stored_otp(otp_id):
    conn = get_connection()
    try:
        return conn.execute("SELECT * FROM otp_codes WHERE id = ?", (otp_id,)).fetchone()
    finally:
        conn.close()


class TestPhoneHelpers:
    def test_local_number_gets_default_country_code(self):
        assert normalize_phone("9876543210") == "+919876543210"

    def test_explicit_country_code(self):
        assert normalize_phone("2025550123", "+1") == "+12025550123"

    def test_international_number_is_kept(self):
        assert normalize_phone(" +447700900123 ") == "+447700900123"

    def test_whatsapp_recipient_drops_plus(self):
        assert whatsapp_recipient("+91 98765 43210") == "919876543210"


class TestSendOtp:
    @pytest.mark.asyncio
    async def test_sends_template_message(self, client, whatsapp):
        response = await client.post("/api/v1/auth/send-otp", json={"phone": "9876543210"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "OTP sent successfully"
        row = _stored_otp(data["otp_id"])
        assert row["phone"] == PHONE
        assert len(row["otp"]) == 6

        request = whatsapp.requests[0]
        assert str(request.url) == "https://graph.facebook.com/v24.0/12345/messages"
        assert request.headers["Authorization"] == "Bearer wa-token"
        body = json.loads(request.content)
        assert body["to"] == "919876543210"
        assert body["template"]["name"] == "otp_new"
        assert body["template"]["language"] == {"code": "en_US"}
        body_params = body["template"]["components"][0]["parameters"]
        button_params = body["template"]["components"][1]["parameters"]
        assert body_params == [{"type": "text", "text": row["otp"]}]
        assert button_params == body_params

    @pytest.mark.asyncio
    async def test_not_configured(self, client, provider):
        response = await client.post("/api/v1/auth/send-otp", json={"phone": "9876543210"})

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "code": "SEND_FAILED",
            "message": "WhatsApp service not configured",
        }
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_provider_error_message_is_returned(self, client, whatsapp):
        whatsapp.handler = lambda request: httpx.Response(
            400, json={"error": {"message": "Recipient phone number not in allowed list"}}
        )

        response = await client.post("/api/v1/auth/send-otp", json={"phone": "9876543210"})

        assert response.status_code == 500
        assert response.json()["detail"]["message"] == "Recipient phone number not in allowed list"

    @pytest.mark.asyncio
    async def test_short_phone_is_rejected(self, client, whatsapp):
        response = await client.post("/api/v1/auth/send-otp", json={"phone": "123"})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_REQUEST"

    @pytest.mark.asyncio
    async def test_blank_phone_is_rejected(self, client):
        response = await client.post("/api/v1/auth/send-otp", json={"phone": "   "})

        assert response.status_code == 422


class TestVerifyOtp:
    @pytest.mark.asyncio
    async def test_first_login_creates_user(self, client):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)

        response = await client.post(
            "/api/v1/auth/verify-otp", json={"phone": PHONE, "otp": otp, "otp_id": otp_id}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["verified"] is True
        assert data["user"]["phone"] == PHONE
        assert data["user"]["is_new_user"] is True

        me = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {data['session_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["id"] == data["user"]["id"]

    @pytest.mark.asyncio
    async def test_second_login_is_not_new(self, client):
        for expected in (True, False):
            otp_id, otp, _ = await OtpService.create_otp(PHONE)
            response = await client.post(
                "/api/v1/auth/verify-otp", json={"phone": PHONE, "otp": otp, "otp_id": otp_id}
            )
            assert response.json()["user"]["is_new_user"] is expected

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempts(self, client):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)
        wrong = "000000" if otp != "000000" else "111111"
        messages = []
        for _ in range(5):
            response = await client.post(
                "/api/v1/auth/verify-otp", json={"phone": PHONE, "otp": wrong, "otp_id": otp_id}
            )
            assert response.status_code == 400
            assert response.json()["detail"]["code"] == "INVALID_OTP"
            messages.append(response.json()["detail"]["message"])

        assert messages == [
            "Invalid OTP. 2 attempts remaining",
            "Invalid OTP. 1 attempts remaining",
            "Invalid OTP. 0 attempts remaining",
            "Maximum attempts exceeded",
            "OTP session not found",
        ]

    @pytest.mark.asyncio
    async def test_non_ascii_code_is_rejected(self, client):
        otp_id, _, _ = await OtpService.create_otp(PHONE)

        response = await client.post(
            "/api/v1/auth/verify-otp", json={"phone": PHONE, "otp": "١٢٣٤٥٦", "otp_id": otp_id}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "code": "INVALID_OTP",
            "message": "Invalid OTP. 2 attempts remaining",
        }
        assert _stored_otp(otp_id)["attempts"] == 1

    @pytest.mark.asyncio
    async def test_non_ascii_code_without_otp_id(self):
        await OtpService.create_otp(PHONE)

        with pytest.raises(ValueError, match="Invalid or expired OTP"):
            await OtpService.verify_otp(PHONE, "é")

    @pytest.mark.asyncio
    async def test_code_cannot_be_reused(self):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)
        await OtpService.verify_otp(PHONE, otp, otp_id)

        with pytest.raises(ValueError, match="OTP already used"):
            await OtpService.verify_otp(PHONE, otp, otp_id)

    @pytest.mark.asyncio
    async def test_phone_mismatch(self):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)

        with pytest.raises(ValueError, match="Phone number mismatch"):
            await OtpService.verify_otp("+919999999999", otp, otp_id)

    @pytest.mark.asyncio
    async def test_expired_code_is_removed(self):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)
        conn = get_connection()
        conn.execute(
            "UPDATE otp_codes SET expires_at = ? WHERE id = ?",
            (to_iso(utcnow() - timedelta(minutes=1)), otp_id),
        )
        conn.commit()
        conn.close()

        with pytest.raises(ValueError, match="OTP expired"):
            await OtpService.verify_otp(PHONE, otp, otp_id)
        assert _stored_otp(otp_id) is None

    @pytest.mark.asyncio
    async def test_verify_without_otp_id(self):
        _, otp, _ = await OtpService.create_otp(PHONE)

        await OtpService.verify_otp(PHONE, otp)

        with pytest.raises(ValueError, match="Invalid or expired OTP"):
            await OtpService.verify_otp(PHONE, otp)

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired_rows(self):
        otp_id, _, _ = await OtpService.create_otp(PHONE)
        conn = get_connection()
        conn.execute(
            "UPDATE otp_codes SET expires_at = ? WHERE id = ?",
            (to_iso(utcnow() - timedelta(hours=1)), otp_id),
        )
        conn.commit()
        conn.close()

        removed = await OtpService.cleanup()

        assert removed["otp_codes"] == 1


class TestSessions:
    async def _login(self, client):
        otp_id, otp, _ = await OtpService.create_otp(PHONE)
        response = await client.post(
            "/api/v1/auth/verify-otp", json={"phone": PHONE, "otp": otp, "otp_id": otp_id}
        )
        return response.json()["session_token"]

    @pytest.mark.asyncio
    async def test_validate(self, client):
        token = await self._login(client)

        response = await client.post("/api/v1/auth/validate", json={"session_token": token})

        assert response.json() == {"valid": True, "phone": PHONE, "error": None}

    @pytest.mark.asyncio
    async def test_refresh_replaces_session(self, client):
        token = await self._login(client)

        response = await client.post("/api/v1/auth/refresh", json={"session_token": token})

        assert response.status_code == 200
        new_token = response.json()["session_token"]
        assert new_token != token
        assert (await SessionService.validate_session(token)) == {
            "valid": False,
            "error": "Session not found",
        }
        assert (await SessionService.validate_session(new_token))["valid"] is True

    @pytest.mark.asyncio
    async def test_refresh_with_garbage_token(self, client):
        response = await client.post("/api/v1/auth/refresh", json={"session_token": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_SESSION"

    @pytest.mark.asyncio
    async def test_logout_invalidates_token(self, client):
        token = await self._login(client)

        response = await client.post("/api/v1/auth/logout", json={"session_token": token})

        assert response.json() == {"success": True}
        validation = await client.post("/api/v1/auth/validate", json={"session_token": token})
        assert validation.json()["error"] == "Session invalidated"
        me = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_session(self, client):
        token = await self._login(client)
        conn = get_connection()
        conn.execute("UPDATE sessions SET expires_at = ?", (to_iso(utcnow() - timedelta(seconds=1)),))
        conn.commit()
        conn.close()

        validation = await client.post("/api/v1/auth/validate", json={"session_token": token})

        assert validation.json()["error"] == "Session expired"


class TestTokenScript:
    @pytest.mark.asyncio
    async def test_issue_token_opens_session(self, client):
        from create_token import issue_token

        token = await issue_token("9876543210")

        result = await SessionService.validate_session(token)
        assert result["valid"] is True
        assert result["phone"] == PHONE

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "ok"}
