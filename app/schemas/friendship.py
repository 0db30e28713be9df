import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from app.schemas.user import UserSummary


class FriendRequestCreate(BaseModel):
    addressee_id: uuid.UUID


class FriendRequestRespond(BaseModel):
    decision: Literal["accept", "decline"]


class FriendshipResponse(BaseModel):
    id: uuid.UUID
    requester_id: uuid.UUID
    addressee_id: uuid.UUID
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FriendEntryResponse(BaseModel):
    friendship_id: uuid.UUID
    status: str
    since: datetime
    friend: UserSummary


class FriendViewResponse(BaseModel):
    friends: list[FriendEntryResponse] = []
    incoming: list[FriendEntryResponse] = []
    outgoing: list[FriendEntryResponse] = []
