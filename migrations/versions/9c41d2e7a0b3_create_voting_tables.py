"""create voting tables

Revision ID: 9c41d2e7a0b3
Revises:
Create Date: 2026-10-16 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9c41d2e7a0b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _score_columns() -> list[sa.Column]:
    return [
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
    ]


def _vote_table(name: str, target_column: str, target_table: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(target_column, sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("vote_type", sa.String(length=8), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "vote_type IN ('upvote', 'downvote')", name=f"ck_{name}_vote_type"
        ),
        sa.ForeignKeyConstraint([target_column], [f"{target_table}.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(target_column, "user_id", name=f"uq_{name}_target_user"),
    )
    op.create_index(f"ix_{name}_{target_column}", name, [target_column])


def upgrade() -> None:
    """Create users, discussions, replies and their vote tables."""
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("username"),
    )
    op.create_table(
        "discussions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        *_score_columns(),
        sa.Column("hot_score", sa.Float(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_discussions_hot_score", "discussions", ["hot_score"])
    op.create_index("ix_discussions_score", "discussions", ["score"])
    op.create_table(
        "replies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("discussion_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        *_score_columns(),
        sa.ForeignKeyConstraint(["discussion_id"], ["discussions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_replies_discussion_id", "replies", ["discussion_id"])

    _vote_table("discussion_votes", "discussion_id", "discussions")
    _vote_table("reply_votes", "reply_id", "replies")


def downgrade() -> None:
    """Drop the voting schema."""
    op.drop_index("ix_reply_votes_reply_id", table_name="reply_votes")
    op.drop_table("reply_votes")
    op.drop_index("ix_discussion_votes_discussion_id", table_name="discussion_votes")
    op.drop_table("discussion_votes")
    op.drop_index("ix_replies_discussion_id", table_name="replies")
    op.drop_table("replies")
    op.drop_index("ix_discussions_score", table_name="discussions")
    op.drop_index("ix_discussions_hot_score", table_name="discussions")
    op.drop_table("discussions")
    op.drop_table("users")
