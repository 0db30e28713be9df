import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotAuthorizedError, NotFoundError, ValidationError
from app.models.place import PLACE_CATEGORIES, Place
from app.schemas.place import PlaceCreate, PlaceUpdate
from app.services import visibility_service

logger = logging.getLogger(__name__)

# Checked in order; first match wins
_CATEGORY_TYPES = [
    ("restaurant", {"restaurant", "food"}),
    ("cafe", {"cafe", "coffee"}),
    ("hotel", {"hotel", "lodging"}),
    ("shopping", {"shopping_mall", "store"}),
    ("museum", {"museum", "art_gallery"}),
    ("nature", {"park", "natural_feature"}),
    ("viewpoint", {"tourist_attraction"}),
]


def detect_category(types: list[str] | None) -> str:
    """Guess a category from Google Places types."""
    found = set(types or [])
    for category, markers in _CATEGORY_TYPES:
        if found & markers:
            return category
    return "other"


def _validate_category(category: str) -> str:
    if category not in PLACE_CATEGORIES:
        raise ValidationError(f"Unknown category: {category}")
    return category


async def create_place(db: AsyncSession, owner_id: uuid.UUID, data: PlaceCreate) -> Place:
    fields = data.model_dump(exclude={"types"})
    if data.category:
        fields["category"] = _validate_category(data.category)
    else:
        fields["category"] = detect_category(data.types)

    place = Place(user_id=owner_id, **fields)
    db.add(place)
    await db.commit()
    return place


async def list_own_places(db: AsyncSession, owner_id: uuid.UUID) -> list[Place]:
    result = await db.execute(
        select(Place).where(Place.user_id == owner_id).order_by(Place.created_at.desc())
    )
    return list(result.scalars().all())


async def get_visible_place(
    db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID
) -> Place:
    """A single place, 404 whether it does not exist or is not visible."""
    place = await db.get(Place, place_id)
    if place is None or not await visibility_service.can_see_owner(db, viewer_id, place.user_id):
        raise NotFoundError("Place not found")
    return place


async def _get_owned_place(db: AsyncSession, owner_id: uuid.UUID, place_id: uuid.UUID) -> Place:
    place = await get_visible_place(db, owner_id, place_id)
    if place.user_id != owner_id:
        logger.warning("User %s tried to modify place %s they do not own", owner_id, place_id)
        raise NotAuthorizedError("You can only modify your own places")
    return place


async def update_place(
    db: AsyncSession, owner_id: uuid.UUID, place_id: uuid.UUID, data: PlaceUpdate
) -> Place:
    place = await _get_owned_place(db, owner_id, place_id)
    changes = data.model_dump(exclude_unset=True)
    for key in ("name", "category", "visited"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be null")
    if "category" in changes:
        changes["category"] = _validate_category(changes["category"])
    for key, value in changes.items():
        setattr(place, key, value)
    place.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return place


async def delete_place(db: AsyncSession, owner_id: uuid.UUID, place_id: uuid.UUID) -> None:
    place = await _get_owned_place(db, owner_id, place_id)
    await db.delete(place)
    await db.commit()
