# src/agora_votes/models/discussion.py
"""SQLAlchemy models for discussions and their replies."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agora_votes.db.session import Base
from agora_votes.db.time import utcnow


class Discussion(Base):
    """Top-level thread; the unit a real-time room is scoped to.

    ``upvotes``, ``downvotes`` and ``score`` are a cached tally of the
    ``discussion_votes`` rows and are only ever written by the score
    aggregator.
    """

    __tablename__ = "discussions"
    __table_args__ = (
        Index("ix_discussions_hot_score", "hot_score"),
        Index("ix_discussions_score", "score"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    upvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    score: Mapped[int] = mapped_column(default=0, nullable=False)
    hot_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    replies: Mapped[list[Reply]] = relationship(
        "Reply",
        back_populates="discussion",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Reply.id",
    )

    @property
    def room(self) -> str:
        """Return the broadcast room name for this discussion."""
        return discussion_room(self.id)


class Reply(Base):
    """Response posted under a discussion; shares the discussion's room."""

    __tablename__ = "replies"
    __table_args__ = (Index("ix_replies_discussion_id", "discussion_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discussion_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("discussions.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    upvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    score: Mapped[int] = mapped_column(default=0, nullable=False)

    discussion: Mapped[Discussion] = relationship("Discussion", back_populates="replies")

    @property
    def room(self) -> str:
        """Return the broadcast room of the parent discussion."""
        return discussion_room(self.discussion_id)


def discussion_room(discussion_id: int) -> str:
    """Return the room name clients join to follow ``discussion_id``."""
    return f"discussion_{discussion_id}"
