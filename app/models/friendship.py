import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
FRIENDSHIP_STATUSES = (PENDING, ACCEPTED, DECLINED)


def pair_key(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Normalize an unordered pair of users to (low, high)."""
    return (min(a, b), max(a, b))


class Friendship(Base):
    __tablename__ = "friendships"

    requester_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addressee_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Canonical ordering of the pair: user_low < user_high, one row per pair
    user_low: Mapped[uuid.UUID] = mapped_column(nullable=False)
    user_high: Mapped[uuid.UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PENDING
    )  # pending, accepted, declined
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", name="uq_friendships_pair"),
        CheckConstraint("user_low < user_high", name="ck_friendships_canonical_order"),
        CheckConstraint("requester_id <> addressee_id", name="ck_friendships_distinct_users"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')", name="ck_friendships_status"
        ),
    )

    @classmethod
    def request(cls, requester_id: uuid.UUID, addressee_id: uuid.UUID) -> "Friendship":
        low, high = pair_key(requester_id, addressee_id)
        return cls(
            requester_id=requester_id,
            addressee_id=addressee_id,
            user_low=low,
            user_high=high,
            status=PENDING,
        )

    def counterpart(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.addressee_id if self.requester_id == user_id else self.requester_id

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.requester_id, self.addressee_id)
