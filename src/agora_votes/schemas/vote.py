"""Vote-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from agora_votes.models.discussion import discussion_room
from agora_votes.models.vote import TargetType, VoteType


class VoteCast(BaseModel):
    """Schema for casting, changing or removing a vote."""

    user_id: str = Field(..., min_length=1, max_length=64, description="Voting user's identifier")
    # Validated by VoteService; unknown types are a 400.
    vote_type: str = Field(..., description='"upvote" or "downvote"')


class VoteResponse(BaseModel):
    """Outcome of a vote cast along with the target's fresh tally."""

    message: str
    action: Literal["created", "updated", "removed"]
    vote: VoteType | None
    score: int
    upvotes: int
    downvotes: int


class MyVoteResponse(BaseModel):
    """The requesting user's current stance on a target."""

    vote: VoteType | None = None


class ScoreChangeEvent(BaseModel):
    """Payload pushed to a discussion room when a target's score changes."""

    target_id: int
    target_type: TargetType
    discussion_id: int
    upvotes: int = Field(..., ge=0)
    downvotes: int = Field(..., ge=0)
    score: int

    model_config = ConfigDict(frozen=True)

    @property
    def room(self) -> str:
        """Return the room the event is broadcast to."""
        return discussion_room(self.discussion_id)
