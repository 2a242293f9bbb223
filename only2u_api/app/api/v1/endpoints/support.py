"""
Support chat endpoint for API v1.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from only2u_api.app.core.security import get_current_user
from only2u_api.app.schemas.support import ChatRequest, ChatResponse
from only2u_api.app.services.ai_support_service import AiSupportService

router = APIRouter()


@router.post("/chat", response_model=ChatResponse, summary="Ask the AI support assistant")
async def chat(data: ChatRequest, current_user: dict = Depends(get_current_user)) -> ChatResponse:
    """Answer a support question.

    The client sends the earlier turns of the conversation in
    ``history``.  Returns 503 when the assistant is unavailable.
    """
    reply = await AiSupportService.generate_response(data.message, data.history)
    if reply is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI support is currently unavailable",
        )
    return ChatResponse(reply=reply)
