import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.place import (
    CommentCreate,
    CommentResponse,
    NearbyPlaceResponse,
    PlaceCreate,
    PlaceResponse,
    PlaceUpdate,
    VisitResponse,
)
from app.schemas.user import UserSummary
from app.services import place_activity_service, place_service, visibility_service
from app.services.place_activity_service import CommentEntry

router = APIRouter(tags=["places"])


def _comment(entry: CommentEntry) -> CommentResponse:
    return CommentResponse(
        id=entry.comment.id,
        place_id=entry.comment.place_id,
        comment=entry.comment.comment,
        author=UserSummary.model_validate(entry.author),
        created_at=entry.comment.created_at,
    )


@router.get("/places", response_model=list[PlaceResponse])
async def list_feed(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """My places and my friends' places."""
    return await visibility_service.feed(db, user.id)


@router.get("/places/mine", response_model=list[PlaceResponse])
async def list_my_places(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await place_service.list_own_places(db, user.id)


@router.get("/places/nearby", response_model=list[NearbyPlaceResponse])
async def list_nearby_friend_places(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius: float = Query(
        default=settings.NEARBY_DEFAULT_RADIUS_METERS,
        gt=0,
        le=settings.NEARBY_MAX_RADIUS_METERS,
    ),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    nearby = await visibility_service.nearby_friend_places(db, user.id, lat, lng, radius)
    return [
        NearbyPlaceResponse(
            **PlaceResponse.model_validate(n.place).model_dump(),
            distance_meters=round(n.distance_meters, 1),
        )
        for n in nearby
    ]


@router.post("/places", response_model=PlaceResponse, status_code=status.HTTP_201_CREATED)
async def create_place(
    data: PlaceCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await place_service.create_place(db, user.id, data)


@router.get("/places/{place_id}", response_model=PlaceResponse)
async def get_place(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await place_service.get_visible_place(db, user.id, place_id)


@router.patch("/places/{place_id}", response_model=PlaceResponse)
async def update_place(
    place_id: uuid.UUID,
    data: PlaceUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await place_service.update_place(db, user.id, place_id, data)


@router.delete("/places/{place_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_place(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await place_service.delete_place(db, user.id, place_id)


@router.get("/places/{place_id}/visits", response_model=list[VisitResponse])
async def list_place_visits(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entries = await place_activity_service.list_visits(db, user.id, place_id)
    return [
        VisitResponse(visitor=UserSummary.model_validate(e.visitor), visited_at=e.visit.created_at)
        for e in entries
    ]


@router.post(
    "/places/{place_id}/visit",
    response_model=VisitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def mark_place_visited(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    visitor = UserSummary.model_validate(user)
    visit = await place_activity_service.mark_visited(db, user.id, place_id)
    return VisitResponse(visitor=visitor, visited_at=visit.created_at)


@router.delete("/places/{place_id}/visit", status_code=status.HTTP_204_NO_CONTENT)
async def unmark_place_visited(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await place_activity_service.unmark_visited(db, user.id, place_id)


@router.get("/places/{place_id}/comments", response_model=list[CommentResponse])
async def list_place_comments(
    place_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entries = await place_activity_service.list_comments(db, user.id, place_id)
    return [_comment(e) for e in entries]


@router.post(
    "/places/{place_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_place_comment(
    place_id: uuid.UUID,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _comment(await place_activity_service.add_comment(db, user.id, place_id, data.comment))


@router.get("/friends/{friend_id}/places", response_model=list[PlaceResponse])
async def list_friend_places(
    friend_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await visibility_service.friend_places(db, user.id, friend_id)
