import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    display_name: str | None
    avatar_url: str | None

    model_config = {"from_attributes": True}


class UserResponse(UserSummary):
    bio: str | None
    created_at: datetime


class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.]+$")
    display_name: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)
    bio: str | None = None


class CandidateResponse(UserSummary):
    friendship_status: str | None = None  # None: no relationship yet
    friendship_id: uuid.UUID | None = None
    is_requester: bool = False
