"""
AI support chat backed by Google Gemini.

The assistant has no memory of its own: the client sends the previous
turns with every message and the service replays them after a fixed
system prompt.
"""

import logging
from typing import Iterable, List, Optional

import httpx

from ..core import http_client
from ..core.config import settings
from ..schemas.support import ChatTurn

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are the AI Support Assistant for "Only2U", a premier reseller platform.
Your goal is to help users (resellers) with their inquiries about orders, margins, products, and app usage.

**App Context:**
- **Only2U** is a platform where users can resell products (clothing, accessories) and earn a profit.
- **Resellers** share catalogs/products on social media (WhatsApp, Instagram).
- **Margins:** Resellers set their own profit margin on top of the base price.
- **Payouts:** Earnings are paid out to the reseller's bank account after the return period (usually 7 days) is over.
- **Orders:** Resellers place orders on behalf of their customers.

**Guidelines:**
1. **Be Helpful & Polite:** Always be courteous and professional.
2. **Concise Answers:** Keep responses short and easy to read on a mobile screen.
3. **Escalation:** If you cannot answer a question or if it requires human intervention (e.g., specific refund status, technical bug, account ban), politely say you will flag this for a human agent.
4. **Formatting:** You can use simple bolding or lists if needed, but avoid complex markdown.
5. **Identity:** Identify yourself as "Only2U Assistant" if asked.

**Common Topics:**
- *Tracking:* "Check 'My Orders' section for live tracking."
- *Returns:* "We accept returns within 7 days. Go to 'My Orders' -> Select Order -> 'Return'."
- *Payments:* "Payouts are processed every Tuesday/Friday after the return period ends."

If the user asks about a specific Order ID, a generic answer on how to check its status is best unless you are provided context.
"""

GREETING = "Hello! I am the Only2U Support Assistant. How can I help you today?"


def build_contents(message: str, history: Iterable[ChatTurn] = ()) -> List[dict]:
    """Assemble the ``contents`` array of a ``generateContent`` request."""
    contents = [
        {"role": "user", "parts": [{"text": SYSTEM_PROMPT + "\n\nHello"}]},
        {"role": "model", "parts": [{"text": GREETING}]},
    ]
    contents.extend({"role": turn.role, "parts": [{"text": turn.parts}]} for turn in history)
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents


def extract_text(data: dict) -> Optional[str]:
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts)
    return text or None


class AiSupportService:
    """Generate support answers with Gemini."""

    @classmethod
    async def generate_response(cls, message: str, history: Iterable[ChatTurn] = ()) -> Optional[str]:
        """Return the assistant's reply, or ``None`` when it is unavailable."""
        if not settings.gemini_api_key:
            logger.warning("Gemini API key is missing; AI support is disabled")
            return None
        url = f"{settings.gemini_api_url}/models/{settings.gemini_model}:generateContent"
        payload = {"contents": build_contents(message, history)}
        try:
            async with http_client.provider_client() as client:
                response = await client.post(url, params={"key": settings.gemini_api_key}, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Gemini returned %s", exc.response.status_code)
            return None
        except httpx.HTTPError as exc:
            # The request URL carries the API key, so only the type is logged.
            logger.error("Gemini request failed: %s", type(exc).__name__)
            return None
        except ValueError:
            logger.error("Gemini returned a non-JSON body")
            return None
        reply = extract_text(data)
        if reply is None:
            logger.warning("Gemini response contained no text")
        return reply
