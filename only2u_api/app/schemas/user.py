"""
Pydantic models for user profiles.

Users are identified by their phone number; there are no passwords.
The profile carries the onboarding selections made in the mobile app
(size and skin tone) used to personalise product results.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=120, examples=["Asha Rao"])
    email: Optional[str] = Field(None, max_length=254, examples=["asha@example.com"])
    profile_image_url: Optional[str] = None
    size: Optional[str] = Field(None, max_length=16, examples=["M"])
    skin_tone: Optional[str] = Field(None, max_length=32, examples=["wheatish"])


class UserStatusUpdate(BaseModel):
    disabled: bool = Field(..., description="True blocks login and refuses existing tokens")


class UserRead(BaseModel):
    id: str
    phone: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    profile_image_url: Optional[str] = None
    size: Optional[str] = None
    skin_tone: Optional[str] = None
    role_id: int
    disabled: bool = False
    created_at: str

    model_config = {
        "from_attributes": True,
    }


class UserList(BaseModel):
    users: List[UserRead]
    total: int
    page: int
    limit: int
