import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, UsernameTakenError, ValidationError
from app.models.user import User

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await db.get(User, user_id)


async def get_users(db: AsyncSession, user_ids) -> dict[uuid.UUID, User]:
    """Load profiles by id in one round trip, keyed by id."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_users(
    db: AsyncSession, query: str, exclude_id: uuid.UUID, limit: int
) -> list[User]:
    """Case-insensitive substring match on username and display name."""
    pattern = f"%{_escape_like(query)}%"
    result = await db.execute(
        select(User)
        .where(
            or_(
                User.username.ilike(pattern, escape="\\"),
                User.display_name.ilike(pattern, escape="\\"),
            ),
            User.id != exclude_id,
        )
        .order_by(User.username)
        .limit(limit)
    )
    return list(result.scalars().all())


async def update_profile(db: AsyncSession, user_id: uuid.UUID, changes: dict) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if "username" in changes and changes["username"] is None:
        raise ValidationError("username cannot be null")

    for key, value in changes.items():
        setattr(user, key, value)
    user.updated_at = datetime.now(timezone.utc)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.info("User %s tried to take an existing username", user_id)
        raise UsernameTakenError() from e
    return user
