"""Discussion and reply endpoints that carry score snapshots."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import desc, select
from sqlalchemy.orm import Session, selectinload

from agora_votes.db.session import get_db
from agora_votes.models import Discussion, Reply, User
from agora_votes.schemas.discussion import (
    DiscussionCreate,
    DiscussionDetailResponse,
    DiscussionResponse,
    DiscussionSort,
    ReplyCreate,
    ReplyResponse,
)
from agora_votes.services.scoring import hot_score

router = APIRouter(prefix="/discussions", tags=["discussions"])

SessionDep = Annotated[Session, Depends(get_db)]

_SORT_COLUMNS = {
    DiscussionSort.HOT: (desc(Discussion.hot_score), desc(Discussion.id)),
    DiscussionSort.TOP: (desc(Discussion.score), desc(Discussion.id)),
    DiscussionSort.NEW: (desc(Discussion.created_at), desc(Discussion.id)),
}


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _get_discussion_or_404(db: Session, discussion_id: int) -> Discussion:
    discussion = db.execute(
        select(Discussion)
        .options(selectinload(Discussion.replies))
        .where(Discussion.id == discussion_id)
    ).scalars().first()
    if discussion is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discussion not found")
    return discussion


@router.get("/", response_model=list[DiscussionResponse])
async def list_discussions(
    db: SessionDep,
    sort: DiscussionSort = Query(DiscussionSort.HOT, description="hot, top or new"),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of discussions"),
) -> list[Discussion]:
    """List discussions ordered by hot score, net score or recency."""
    stmt = select(Discussion).order_by(*_SORT_COLUMNS[sort]).limit(limit)
    return list(db.execute(stmt).scalars())


@router.post("/", response_model=DiscussionResponse, status_code=status.HTTP_201_CREATED)
async def create_discussion(payload: DiscussionCreate, db: SessionDep) -> Discussion:
    """Start a discussion with an empty tally."""
    _get_user_or_404(db, payload.user_id)
    discussion = Discussion(
        user_id=payload.user_id,
        title=payload.title,
        content=payload.content,
    )
    db.add(discussion)
    db.flush()
    discussion.hot_score = hot_score(0, discussion.created_at)
    db.commit()
    db.refresh(discussion)
    return discussion


@router.get("/{discussion_id}", response_model=DiscussionDetailResponse)
async def get_discussion(discussion_id: int, db: SessionDep) -> Discussion:
    """Return a discussion with its replies and their current scores."""
    return _get_discussion_or_404(db, discussion_id)


@router.post(
    "/{discussion_id}/replies",
    response_model=ReplyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reply(discussion_id: int, payload: ReplyCreate, db: SessionDep) -> Reply:
    """Reply to a discussion; the reply starts with an empty tally."""
    _get_user_or_404(db, payload.user_id)
    if db.get(Discussion, discussion_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discussion not found")
    reply = Reply(discussion_id=discussion_id, user_id=payload.user_id, content=payload.content)
    db.add(reply)
    db.commit()
    db.refresh(reply)
    return reply
