import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.notification import FRIEND_ACCEPTED, FRIEND_REQUEST, Notification
from app.models.user import User

logger = logging.getLogger(__name__)


def _render(kind: str, actor: User | None) -> tuple[str, str]:
    name = (actor.display_name or actor.username) if actor else "Someone"
    if kind == FRIEND_REQUEST:
        return "Friend Request", f"{name} wants to be your friend"
    if kind == FRIEND_ACCEPTED:
        return "Friend Request Accepted", f"{name} accepted your friend request"
    return "Syrena", f"New activity from {name}"


async def notify(
    db: AsyncSession,
    to_user_id: uuid.UUID,
    kind: str,
    actor_id: uuid.UUID | None = None,
    data: dict | None = None,
) -> Notification | None:
    """Write an in-app notification. Best-effort: never raises.

    Must be called after the triggering change is committed, since a failure
    here rolls back the session.
    """
    try:
        actor = await db.get(User, actor_id) if actor_id else None
        title, message = _render(kind, actor)
        notification = Notification(
            user_id=to_user_id,
            actor_id=actor_id,
            type=kind,
            title=title,
            message=message,
            data=data or {},
        )
        db.add(notification)
        await db.commit()
        return notification
    except SQLAlchemyError as e:
        logger.warning("Failed to notify user %s (%s): %s", to_user_id, kind, e)
        await db.rollback()
        return None


async def list_notifications(
    db: AsyncSession, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read == False)  # noqa: E712
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def mark_read(
    db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    notification.read = True
    await db.commit()
    return notification
