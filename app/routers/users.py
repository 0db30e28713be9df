from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.user import CandidateResponse, UserResponse, UserUpdate
from app.services import directory_service, friendship_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await directory_service.update_profile(db, user.id, data.model_dump(exclude_unset=True))


@router.get("/search", response_model=list[CandidateResponse])
async def search_users(
    q: str = Query(default="", max_length=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Find people to add, each tagged Add / Pending / Friends for the UI."""
    candidates = await friendship_service.search_candidates(db, user.id, q)
    return [
        CandidateResponse(
            id=c.user.id,
            username=c.user.username,
            display_name=c.user.display_name,
            avatar_url=c.user.avatar_url,
            friendship_status=c.status,
            friendship_id=c.friendship_id,
            is_requester=c.is_requester,
        )
        for c in candidates
    ]
