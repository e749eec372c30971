# src/agora_votes/models/vote.py
"""Models capturing up/down votes on discussions and replies."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import ClassVar

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from agora_votes.db.session import Base
from agora_votes.db.time import utcnow


class VoteType(str, enum.Enum):
    """Stance a user takes on a target."""

    UPVOTE = "upvote"
    DOWNVOTE = "downvote"


class TargetType(str, enum.Enum):
    """Kinds of content that carry a score."""

    DISCUSSION = "discussion"
    REPLY = "reply"


class _VoteColumns:
    """Columns shared by both vote tables.

    The natural key is (target, user); the unique constraint is declared on
    each concrete table so duplicate inserts fail at the storage layer.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(
            String(64),
            ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        )

    vote_type: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def stance(self) -> VoteType:
        """Return the vote type as an enum member."""
        return VoteType(self.vote_type)


class DiscussionVote(_VoteColumns, Base):
    """Per-user vote on a discussion."""

    __tablename__ = "discussion_votes"
    __table_args__ = (
        UniqueConstraint("discussion_id", "user_id", name="uq_discussion_votes_target_user"),
        CheckConstraint(
            "vote_type IN ('upvote', 'downvote')", name="ck_discussion_votes_vote_type"
        ),
        Index("ix_discussion_votes_discussion_id", "discussion_id"),
    )

    target_type: ClassVar[TargetType] = TargetType.DISCUSSION
    target_field: ClassVar[str] = "discussion_id"

    discussion_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("discussions.id", ondelete="CASCADE"),
        nullable=False,
    )

    @property
    def target_id(self) -> int:
        return self.discussion_id


class ReplyVote(_VoteColumns, Base):
    """Per-user vote on a reply."""

    __tablename__ = "reply_votes"
    __table_args__ = (
        UniqueConstraint("reply_id", "user_id", name="uq_reply_votes_target_user"),
        CheckConstraint("vote_type IN ('upvote', 'downvote')", name="ck_reply_votes_vote_type"),
        Index("ix_reply_votes_reply_id", "reply_id"),
    )

    target_type: ClassVar[TargetType] = TargetType.REPLY
    target_field: ClassVar[str] = "reply_id"

    reply_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("replies.id", ondelete="CASCADE"),
        nullable=False,
    )

    @property
    def target_id(self) -> int:
        return self.reply_id


Vote = DiscussionVote | ReplyVote

VOTE_MODELS: dict[TargetType, type[DiscussionVote] | type[ReplyVote]] = {
    TargetType.DISCUSSION: DiscussionVote,
    TargetType.REPLY: ReplyVote,
}
