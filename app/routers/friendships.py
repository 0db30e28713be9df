import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.friendship import (
    FriendEntryResponse,
    FriendRequestCreate,
    FriendRequestRespond,
    FriendshipResponse,
    FriendViewResponse,
)
from app.schemas.user import UserSummary
from app.services import friendship_service
from app.services.friendship_service import FriendEntry

router = APIRouter(prefix="/friendships", tags=["friendships"])


def _entry(entry: FriendEntry) -> FriendEntryResponse:
    return FriendEntryResponse(
        friendship_id=entry.friendship.id,
        status=entry.friendship.status,
        since=entry.friendship.updated_at,
        friend=UserSummary.model_validate(entry.user),
    )


@router.get("", response_model=FriendViewResponse)
async def list_friendships(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    view = await friendship_service.list_view(db, user.id)
    return FriendViewResponse(
        friends=[_entry(e) for e in view.friends],
        incoming=[_entry(e) for e in view.incoming],
        outgoing=[_entry(e) for e in view.outgoing],
    )


@router.post("", response_model=FriendshipResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    data: FriendRequestCreate,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.send_request(
        db,
        user.id,
        data.addressee_id,
        redis_client=getattr(req.app.state, "redis", None),
    )


@router.post("/{friendship_id}/respond", response_model=FriendshipResponse)
async def respond_to_friend_request(
    friendship_id: uuid.UUID,
    data: FriendRequestRespond,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.respond(db, friendship_id, user.id, data.decision)


@router.post("/{friendship_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_friend_request(
    friendship_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friendship_service.cancel_request(db, friendship_id, user.id)


@router.delete("/{friendship_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(
    friendship_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await friendship_service.remove(db, friendship_id, user.id)
