"""Add place visits and comments

Revision ID: 002
Revises: 001
Create Date: 2026-10-20
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Visits: one per (place, visitor)
    op.create_table(
        "place_visits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("place_id", sa.Uuid(), nullable=False),
        sa.Column("visitor_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_place_visits"),
        sa.ForeignKeyConstraint(["place_id"], ["places.id"], name="fk_place_visits_place_id_places", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["visitor_id"], ["users.id"], name="fk_place_visits_visitor_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("place_id", "visitor_id", name="uq_place_visits_place_visitor"),
    )
    op.create_index("ix_place_visits_place_id", "place_visits", ["place_id"])
    op.create_index("ix_place_visits_visitor_id", "place_visits", ["visitor_id"])

    # Comments
    op.create_table(
        "place_comments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("place_id", sa.Uuid(), nullable=False),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_place_comments"),
        sa.ForeignKeyConstraint(["place_id"], ["places.id"], name="fk_place_comments_place_id_places", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_place_comments_author_id_users", ondelete="CASCADE"),
    )
    op.create_index("ix_place_comments_place_id", "place_comments", ["place_id"])


def downgrade() -> None:
    op.drop_table("place_comments")
    op.drop_table("place_visits")
