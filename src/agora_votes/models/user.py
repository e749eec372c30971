# src/agora_votes/models/user.py
"""SQLAlchemy model for forum members referenced by votes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from agora_votes.db.session import Base
from agora_votes.db.time import utcnow


class User(Base):
    """Forum member keyed by an opaque identifier such as ``AGORA-0002``.

    Accounts and sessions are owned by the authentication service; this row
    exists so vote rows can reference and cascade with their author.
    """

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
