"""Discussion and reply Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DiscussionSort(str, Enum):
    """Orderings offered by the discussion listing."""

    HOT = "hot"
    TOP = "top"
    NEW = "new"


class DiscussionCreate(BaseModel):
    """Schema for starting a new discussion."""

    user_id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, max_length=10000)


class ReplyCreate(BaseModel):
    """Schema for replying to a discussion."""

    user_id: str = Field(..., min_length=1, max_length=64)
    content: str = Field(..., min_length=1, max_length=10000)


class ReplyResponse(BaseModel):
    """Reply with its current tally."""

    id: int
    discussion_id: int
    user_id: str | None
    content: str
    created_at: datetime
    upvotes: int
    downvotes: int
    score: int

    model_config = ConfigDict(from_attributes=True)


class DiscussionResponse(BaseModel):
    """Discussion summary with its current tally."""

    id: int
    user_id: str | None
    title: str
    content: str
    created_at: datetime
    upvotes: int
    downvotes: int
    score: int
    hot_score: float

    model_config = ConfigDict(from_attributes=True)


class DiscussionDetailResponse(DiscussionResponse):
    """Discussion together with its replies."""

    replies: list[ReplyResponse] = Field(default_factory=list)
