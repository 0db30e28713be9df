"""Visits and comments on a place.

Both are reachable only through a place the viewer can see, so the same
visibility rule that hides a place also hides who went there and what they
said about it.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.place_comment import PlaceComment
from app.models.place_visit import PlaceVisit
from app.models.user import User
from app.services import directory_service, place_service

logger = logging.getLogger(__name__)


@dataclass
class VisitEntry:
    visit: PlaceVisit
    visitor: User


@dataclass
class CommentEntry:
    comment: PlaceComment
    author: User


async def _get_visit(
    db: AsyncSession, place_id: uuid.UUID, visitor_id: uuid.UUID
) -> PlaceVisit | None:
    result = await db.execute(
        select(PlaceVisit).where(
            PlaceVisit.place_id == place_id,
            PlaceVisit.visitor_id == visitor_id,
        )
    )
    return result.scalar_one_or_none()


async def mark_visited(
    db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID
) -> PlaceVisit:
    """Record the viewer's visit. Marking again keeps the first one."""
    await place_service.get_visible_place(db, viewer_id, place_id)

    existing = await _get_visit(db, place_id, viewer_id)
    if existing is not None:
        return existing

    visit = PlaceVisit(place_id=place_id, visitor_id=viewer_id)
    db.add(visit)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent mark by the same viewer
        await db.rollback()
        existing = await _get_visit(db, place_id, viewer_id)
        if existing is None:
            raise
        return existing
    logger.info("User %s visited place %s", viewer_id, place_id)
    return visit


async def unmark_visited(db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID) -> None:
    await place_service.get_visible_place(db, viewer_id, place_id)
    await db.execute(
        delete(PlaceVisit).where(
            PlaceVisit.place_id == place_id,
            PlaceVisit.visitor_id == viewer_id,
        )
    )
    await db.commit()


async def list_visits(
    db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID
) -> list[VisitEntry]:
    await place_service.get_visible_place(db, viewer_id, place_id)
    result = await db.execute(
        select(PlaceVisit)
        .where(PlaceVisit.place_id == place_id)
        .order_by(PlaceVisit.created_at.desc())
    )
    visits = list(result.scalars().all())
    users = await directory_service.get_users(db, (v.visitor_id for v in visits))
    return [VisitEntry(visit=v, visitor=users[v.visitor_id]) for v in visits if v.visitor_id in users]


async def list_comments(
    db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID
) -> list[CommentEntry]:
    """Newest first."""
    await place_service.get_visible_place(db, viewer_id, place_id)
    result = await db.execute(
        select(PlaceComment)
        .where(PlaceComment.place_id == place_id)
        .order_by(PlaceComment.created_at.desc())
    )
    comments = list(result.scalars().all())
    users = await directory_service.get_users(db, (c.author_id for c in comments))
    return [
        CommentEntry(comment=c, author=users[c.author_id])
        for c in comments
        if c.author_id in users
    ]


async def add_comment(
    db: AsyncSession, viewer_id: uuid.UUID, place_id: uuid.UUID, text: str
) -> CommentEntry:
    text = text.strip()
    if not text:
        raise ValidationError("Comment cannot be empty")

    await place_service.get_visible_place(db, viewer_id, place_id)
    author = await directory_service.get_user(db, viewer_id)

    comment = PlaceComment(place_id=place_id, author_id=viewer_id, comment=text)
    db.add(comment)
    await db.commit()
    return CommentEntry(comment=comment, author=author)
