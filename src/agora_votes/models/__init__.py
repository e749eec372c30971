# src/agora_votes/models/__init__.py
"""SQLAlchemy models for the Agora voting service."""

from .discussion import Discussion, Reply, discussion_room
from .user import User
from .vote import VOTE_MODELS, DiscussionVote, ReplyVote, TargetType, Vote, VoteType

__all__ = [
    "Discussion", "Reply", "discussion_room",
    "User",
    "DiscussionVote", "ReplyVote", "Vote", "VOTE_MODELS",
    "TargetType", "VoteType",
]
