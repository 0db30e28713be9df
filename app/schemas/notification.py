import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    actor_id: uuid.UUID | None
    type: str
    title: str
    message: str
    data: dict | None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
