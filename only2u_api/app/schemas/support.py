"""
Pydantic schemas for the AI support chat.
"""

from typing import List, Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    parts: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    history: List[ChatTurn] = Field(default_factory=list, max_length=50)


class ChatResponse(BaseModel):
    reply: str
