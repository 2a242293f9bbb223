"""
Pydantic schemas for app feedback.

Feedback can be submitted anonymously.  Support staff move each item
through the ``pending -> reviewed -> resolved/closed`` statuses.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

FeedbackStatus = Literal["pending", "reviewed", "resolved", "closed"]


class FeedbackCreate(BaseModel):
    user_email: Optional[str] = Field(None, max_length=254)
    user_name: Optional[str] = Field(None, max_length=120)
    feedback_text: str = Field(..., min_length=1, max_length=5000)
    image_urls: Optional[List[str]] = Field(None, max_length=10)
    category: Optional[str] = Field(None, max_length=50, examples=["bug", "general", "suggestion"])

    @field_validator("feedback_text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Feedback text must not be empty")
        return v


class FeedbackStatusUpdate(BaseModel):
    status: FeedbackStatus


class FeedbackRead(BaseModel):
    id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: str
    feedback_text: str
    image_urls: Optional[List[str]] = None
    category: str
    status: FeedbackStatus
    created_at: str
    updated_at: Optional[str] = None


class FeedbackPage(BaseModel):
    feedback: List[FeedbackRead]
    total: int
    page: int
    limit: int
