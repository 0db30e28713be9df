import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AlreadyFriendsError,
    AlreadyRespondedError,
    FriendshipStateError,
    NotAuthorizedError,
    NotFoundError,
    RateLimitExceededError,
    RequestAlreadyPendingError,
    ValidationError,
)
from app.models.friendship import ACCEPTED, DECLINED, PENDING, Friendship, pair_key
from app.models.notification import FRIEND_ACCEPTED, FRIEND_REQUEST
from app.models.user import User
from app.services import directory_service, notification_service

logger = logging.getLogger(__name__)

DECISIONS = {"accept": ACCEPTED, "decline": DECLINED}


@dataclass
class FriendEntry:
    friendship: Friendship
    user: User


@dataclass
class FriendView:
    friends: list[FriendEntry] = field(default_factory=list)
    incoming: list[FriendEntry] = field(default_factory=list)
    outgoing: list[FriendEntry] = field(default_factory=list)


@dataclass
class Candidate:
    user: User
    status: str | None = None
    friendship_id: uuid.UUID | None = None
    is_requester: bool = False


async def get_friendship(db: AsyncSession, friendship_id: uuid.UUID) -> Friendship | None:
    return await db.get(Friendship, friendship_id)


async def get_pair(db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> Friendship | None:
    """The row for the unordered pair {a, b}, in either orientation."""
    low, high = pair_key(a, b)
    result = await db.execute(
        select(Friendship).where(
            Friendship.user_low == low,
            Friendship.user_high == high,
        )
    )
    return result.scalar_one_or_none()


def _conflict_for(existing: Friendship, requester_id: uuid.UUID) -> Exception:
    if existing.status == ACCEPTED:
        return AlreadyFriendsError()
    if existing.requester_id == requester_id:
        return RequestAlreadyPendingError("Friend request already sent")
    return RequestAlreadyPendingError("Friend request already pending from this user")


async def _check_daily_limit(redis_client, requester_id: uuid.UUID) -> str | None:
    if redis_client is None:
        return None
    today_key = f"friend_requests:{requester_id}:{datetime.now(timezone.utc).date()}"
    count = await redis_client.get(today_key)
    if count and int(count) >= settings.FRIEND_REQUEST_DAILY_LIMIT:
        raise RateLimitExceededError(
            f"Daily friend request limit reached ({settings.FRIEND_REQUEST_DAILY_LIMIT}/day)"
        )
    return today_key


async def _notify_best_effort(
    db: AsyncSession,
    notifier,
    friendship: Friendship,
    to_user_id: uuid.UUID,
    kind: str,
    actor_id: uuid.UUID,
) -> None:
    try:
        delivered = await notifier(
            db,
            to_user_id,
            kind,
            actor_id=actor_id,
            data={"friendship_id": str(friendship.id)},
        )
    except Exception as e:
        logger.warning("Notifier failed for friendship %s (%s): %s", friendship.id, kind, e)
        delivered = None

    if delivered is None:
        # The friendship is already committed; only the notification was lost.
        await db.rollback()
        await db.refresh(friendship)


async def send_request(
    db: AsyncSession,
    requester_id: uuid.UUID,
    addressee_id: uuid.UUID,
    redis_client=None,
    notifier=notification_service.notify,
) -> Friendship:
    """Send a friend request from requester to addressee.

    The unique constraint on the normalized pair is what guarantees one row per
    pair; the read below only picks the right error for the common case.
    """
    if requester_id == addressee_id:
        raise ValidationError("Cannot send a friend request to yourself")

    if await directory_service.get_user(db, addressee_id) is None:
        raise NotFoundError("User not found")

    today_key = await _check_daily_limit(redis_client, requester_id)

    existing = await get_pair(db, requester_id, addressee_id)
    if existing is not None and existing.status != DECLINED:
        raise _conflict_for(existing, requester_id)

    if existing is not None:
        friendship = await _reopen_declined(db, existing, requester_id, addressee_id)
    else:
        friendship = await _insert_pending(db, requester_id, addressee_id)

    await db.commit()
    logger.info("Friend request %s: %s -> %s", friendship.id, requester_id, addressee_id)

    if today_key is not None:
        await redis_client.incr(today_key)
        await redis_client.expire(today_key, 86400)

    await _notify_best_effort(
        db, notifier, friendship, addressee_id, FRIEND_REQUEST, requester_id
    )
    return friendship


async def _insert_pending(
    db: AsyncSession, requester_id: uuid.UUID, addressee_id: uuid.UUID
) -> Friendship:
    friendship = Friendship.request(requester_id, addressee_id)
    db.add(friendship)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost the race against a concurrent request for the same pair
        await db.rollback()
        winner = await get_pair(db, requester_id, addressee_id)
        if winner is None:
            raise
        logger.info("Concurrent friend request for pair %s/%s", requester_id, addressee_id)
        raise _conflict_for(winner, requester_id) from e
    return friendship


async def _reopen_declined(
    db: AsyncSession,
    existing: Friendship,
    requester_id: uuid.UUID,
    addressee_id: uuid.UUID,
) -> Friendship:
    """Turn a declined row back into a pending request in the new direction."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Friendship)
        .where(Friendship.id == existing.id, Friendship.status == DECLINED)
        .values(
            requester_id=requester_id,
            addressee_id=addressee_id,
            status=PENDING,
            created_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(existing)
    if result.rowcount == 0:
        raise _conflict_for(existing, requester_id)
    return existing


async def respond(
    db: AsyncSession,
    friendship_id: uuid.UUID,
    responder_id: uuid.UUID,
    decision: str,
    notifier=notification_service.notify,
) -> Friendship:
    """Accept or decline a pending request. Only the addressee may respond."""
    new_status = DECISIONS.get(decision)
    if new_status is None:
        raise ValidationError('decision must be either "accept" or "decline"')

    friendship = await get_friendship(db, friendship_id)
    if friendship is None:
        raise NotFoundError("Friend request not found")

    if friendship.addressee_id != responder_id:
        logger.warning(
            "User %s tried to respond to friendship %s they did not receive",
            responder_id,
            friendship_id,
        )
        raise NotAuthorizedError("Only the recipient can respond to a friend request")

    # Conditional update: of two concurrent responses exactly one wins
    result = await db.execute(
        update(Friendship)
        .where(Friendship.id == friendship_id, Friendship.status == PENDING)
        .values(status=new_status, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyRespondedError()

    await db.commit()
    await db.refresh(friendship)
    logger.info("Friendship %s %s by %s", friendship_id, new_status, responder_id)

    if new_status == ACCEPTED:
        await _notify_best_effort(
            db, notifier, friendship, friendship.requester_id, FRIEND_ACCEPTED, responder_id
        )
    return friendship


async def remove(db: AsyncSession, friendship_id: uuid.UUID, actor_id: uuid.UUID) -> None:
    """Unfriend. Hard delete, so a later request starts a fresh pending cycle."""
    friendship = await get_friendship(db, friendship_id)
    if friendship is None:
        raise NotFoundError("Friendship not found")

    if not friendship.involves(actor_id):
        logger.warning(
            "User %s tried to remove friendship %s they are not part of",
            actor_id,
            friendship_id,
        )
        raise NotAuthorizedError("You are not part of this friendship")

    if friendship.status != ACCEPTED:
        raise FriendshipStateError("Only accepted friendships can be removed")

    result = await db.execute(
        delete(Friendship).where(
            Friendship.id == friendship_id,
            Friendship.status == ACCEPTED,
        )
    )
    if result.rowcount == 0:
        # Removed concurrently by the other party
        raise NotFoundError("Friendship not found")
    await db.commit()
    logger.info("Friendship %s removed by %s", friendship_id, actor_id)


async def cancel_request(
    db: AsyncSession, friendship_id: uuid.UUID, actor_id: uuid.UUID
) -> None:
    """Withdraw a pending request. Only the requester may cancel."""
    friendship = await get_friendship(db, friendship_id)
    if friendship is None:
        raise NotFoundError("Friend request not found")

    if friendship.requester_id != actor_id:
        logger.warning(
            "User %s tried to cancel friend request %s they did not send",
            actor_id,
            friendship_id,
        )
        raise NotAuthorizedError("Only the sender can cancel a friend request")

    result = await db.execute(
        delete(Friendship).where(
            Friendship.id == friendship_id,
            Friendship.status == PENDING,
        )
    )
    if result.rowcount == 0:
        raise AlreadyRespondedError()
    await db.commit()
    logger.info("Friend request %s cancelled by %s", friendship_id, actor_id)


async def _rows_for(db: AsyncSession, viewer_id: uuid.UUID) -> list[Friendship]:
    result = await db.execute(
        select(Friendship)
        .where(
            or_(
                Friendship.requester_id == viewer_id,
                Friendship.addressee_id == viewer_id,
            ),
            Friendship.status.in_((PENDING, ACCEPTED)),
        )
        .order_by(Friendship.updated_at.desc())
    )
    return list(result.scalars().all())


async def list_view(db: AsyncSession, viewer_id: uuid.UUID) -> FriendView:
    """Partition the viewer's relationships into friends, incoming, outgoing."""
    rows = await _rows_for(db, viewer_id)
    users = await directory_service.get_users(db, (f.counterpart(viewer_id) for f in rows))

    view = FriendView()
    for f in rows:
        other = users.get(f.counterpart(viewer_id))
        if other is None:
            logger.warning("Friend user %s not found", f.counterpart(viewer_id))
            continue
        entry = FriendEntry(friendship=f, user=other)
        if f.status == ACCEPTED:
            view.friends.append(entry)
        elif f.addressee_id == viewer_id:
            view.incoming.append(entry)
        else:
            view.outgoing.append(entry)
    return view


async def accepted_friend_ids(db: AsyncSession, viewer_id: uuid.UUID) -> set[uuid.UUID]:
    result = await db.execute(
        select(Friendship.requester_id, Friendship.addressee_id).where(
            or_(
                Friendship.requester_id == viewer_id,
                Friendship.addressee_id == viewer_id,
            ),
            Friendship.status == ACCEPTED,
        )
    )
    return {
        addressee if requester == viewer_id else requester
        for requester, addressee in result.all()
    }


async def search_candidates(
    db: AsyncSession, viewer_id: uuid.UUID, query: str
) -> list[Candidate]:
    """Directory search annotated with the viewer's relationship to each hit."""
    query = (query or "").strip()
    if len(query) < settings.SEARCH_MIN_QUERY_LENGTH:
        raise ValidationError(
            f"Query must be at least {settings.SEARCH_MIN_QUERY_LENGTH} characters"
        )

    users = await directory_service.search_users(
        db, query, exclude_id=viewer_id, limit=settings.SEARCH_RESULT_LIMIT
    )
    if not users:
        return []

    ids = [u.id for u in users]
    result = await db.execute(
        select(Friendship).where(
            or_(
                (Friendship.requester_id == viewer_id) & Friendship.addressee_id.in_(ids),
                (Friendship.addressee_id == viewer_id) & Friendship.requester_id.in_(ids),
            )
        )
    )
    by_other = {f.counterpart(viewer_id): f for f in result.scalars().all()}

    candidates = []
    for u in users:
        f = by_other.get(u.id)
        if f is None:
            candidates.append(Candidate(user=u))
        else:
            candidates.append(
                Candidate(
                    user=u,
                    status=f.status,
                    friendship_id=f.id,
                    is_requester=f.requester_id == viewer_id,
                )
            )
    return candidates
