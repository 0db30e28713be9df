import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.user import UserSummary


class PlaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    category: str | None = None
    types: list[str] | None = None  # Google Places types, used when category is missing
    description: str | None = None
    address: str | None = Field(default=None, max_length=500)
    google_place_id: str | None = None
    photo_url: str | None = Field(default=None, max_length=1024)
    rating: float | None = Field(default=None, ge=0, le=5)
    price_level: int | None = Field(default=None, ge=0, le=4)
    notes: str | None = None
    visited: bool = False


class PlaceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    category: str | None = None
    description: str | None = None
    notes: str | None = None
    visited: bool | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price_level: int | None = Field(default=None, ge=0, le=4)


class PlaceResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: str | None
    category: str
    address: str | None
    lat: float
    lng: float
    google_place_id: str | None
    photo_url: str | None
    rating: float | None
    price_level: int | None
    notes: str | None
    visited: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NearbyPlaceResponse(PlaceResponse):
    distance_meters: float


class VisitResponse(BaseModel):
    visitor: UserSummary
    visited_at: datetime


class CommentCreate(BaseModel):
    comment: str = Field(min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: uuid.UUID
    place_id: uuid.UUID
    comment: str
    author: UserSummary
    created_at: datetime
