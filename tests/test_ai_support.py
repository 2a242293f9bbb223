import json

import httpx
import pytest

from only2u_api.app.core.config import settings
from only2u_api.app.schemas.support import ChatTurn
from only2u_api.app.services.ai_support_service import (
    GREETING,
    SYSTEM_PROMPT,
    AiSupportService,
    build_contents,
    extract_text,
)


@pytest.fixture
def gemini(monkeypatch, provider):
    monkeypatch.setattr(settings, "gemini_api_key", "gemini-key")
    provider.handler = lambda request: httpx.Response(
        200,
        json={"candidates": [{"content": {"role": "model", "parts": [{"text": "Check 'My Orders'."}]}}]},
    )
    return provider


class TestPromptAssembly:
    def test_contents_order(self):
        history = [ChatTurn(role="user", parts="Hi"), ChatTurn(role="model", parts="Hello!")]

        contents = build_contents("Where is my order?", history)

        assert contents[0] == {"role": "user", "parts": [{"text": SYSTEM_PROMPT + "\n\nHello"}]}
        assert contents[1] == {"role": "model", "parts": [{"text": GREETING}]}
        assert contents[2:4] == [
            {"role": "user", "parts": [{"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello!"}]},
        ]
        assert contents[-1] == {"role": "user", "parts": [{"text": "Where is my order?"}]}

    def test_extract_text(self):
        data = {"candidates": [{"content": {"parts": [{"text": "Part one. "}, {"text": "Part two."}]}}]}

        assert extract_text(data) == "Part one. Part two."
        assert extract_text({"candidates": []}) is None
        assert extract_text({}) is None


class TestChat:
    @pytest.mark.asyncio
    async def test_reply(self, client, gemini, user_auth):
        _, headers = user_auth

        response = await client.post(
            "/api/v1/support/chat",
            headers=headers,
            json={"message": "Where is my order?", "history": [{"role": "user", "parts": "Hi"}]},
        )

        assert response.status_code == 200
        assert response.json() == {"reply": "Check 'My Orders'."}
        request = gemini.requests[0]
        assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.url.params["key"] == "gemini-key"
        contents = json.loads(request.content)["contents"]
        assert len(contents) == 4
        assert contents[-1]["parts"][0]["text"] == "Where is my order?"

    @pytest.mark.asyncio
    async def test_unavailable_without_key(self, client, provider, user_auth):
        _, headers = user_auth

        response = await client.post("/api/v1/support/chat", headers=headers, json={"message": "Hi"})

        assert response.status_code == 503
        assert response.json()["detail"] == "AI support is currently unavailable"
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_provider_error(self, gemini):
        gemini.handler = lambda request: httpx.Response(429, json={"error": {"message": "quota"}})

        assert await AiSupportService.generate_response("Hi") is None

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, gemini):
        def fail(request):
            raise httpx.ReadTimeout("timed out", request=request)

        gemini.handler = fail

        assert await AiSupportService.generate_response("Hi") is None

    @pytest.mark.asyncio
    async def test_empty_answer(self, gemini):
        gemini.handler = lambda request: httpx.Response(200, json={"candidates": []})

        assert await AiSupportService.generate_response("Hi") is None

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, gemini):
        response = await client.post("/api/v1/support/chat", json={"message": "Hi"})

        assert response.status_code == 401
