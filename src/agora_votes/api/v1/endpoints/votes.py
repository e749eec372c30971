"""Vote endpoints for discussions and replies."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agora_votes.db.session import get_db
from agora_votes.models import TargetType, User
from agora_votes.schemas.vote import MyVoteResponse, VoteCast, VoteResponse
from agora_votes.services.realtime import ScoreNotifier, get_notifier
from agora_votes.services.voting import (
    TargetNotFoundError,
    VoteError,
    VoteService,
    VoteValidationError,
)

router = APIRouter(tags=["votes"])
logger = logging.getLogger(__name__)


def get_notifier_dep() -> ScoreNotifier:
    """Return the shared score notifier."""
    return get_notifier()


SessionDep = Annotated[Session, Depends(get_db)]
NotifierDep = Annotated[ScoreNotifier, Depends(get_notifier_dep)]


def get_vote_service(db: SessionDep, notifier: NotifierDep) -> VoteService:
    """Build a vote service bound to the request's session."""
    return VoteService(db, notifier=notifier)


VoteServiceDep = Annotated[VoteService, Depends(get_vote_service)]


def _require_user(db: Session, user_id: str) -> None:
    if db.get(User, user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


def _cast(
    service: VoteService,
    target_type: TargetType,
    target_id: int,
    vote_data: VoteCast,
) -> VoteResponse:
    _require_user(service.db, vote_data.user_id)
    try:
        result = service.cast_vote(target_type, target_id, vote_data.user_id, vote_data.vote_type)
    except VoteValidationError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except TargetNotFoundError as err:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(err)) from err
    except (VoteError, SQLAlchemyError) as err:
        logger.exception("Error processing vote on %s %d", target_type.value, target_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing vote",
        ) from err
    return VoteResponse(**result.as_dict())


def _my_vote(
    service: VoteService,
    target_type: TargetType,
    target_id: int,
    user_id: str,
) -> MyVoteResponse:
    try:
        vote = service.get_user_vote(target_type, target_id, user_id)
    except SQLAlchemyError as err:
        logger.exception("Error fetching vote on %s %d", target_type.value, target_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching vote",
        ) from err
    return MyVoteResponse(vote=vote)


@router.post("/discussions/{discussion_id}/vote", response_model=VoteResponse)
def vote_on_discussion(
    discussion_id: int,
    vote_data: VoteCast,
    service: VoteServiceDep,
) -> VoteResponse:
    """Cast, switch or toggle off a vote on a discussion.

    Re-sending the caller's current vote type removes the vote.
    """
    return _cast(service, TargetType.DISCUSSION, discussion_id, vote_data)


@router.get("/discussions/{discussion_id}/vote/{user_id}", response_model=MyVoteResponse)
def get_discussion_vote(
    discussion_id: int,
    user_id: str,
    service: VoteServiceDep,
) -> MyVoteResponse:
    """Return the user's vote on a discussion, or null."""
    return _my_vote(service, TargetType.DISCUSSION, discussion_id, user_id)


@router.post("/replies/{reply_id}/vote", response_model=VoteResponse)
def vote_on_reply(
    reply_id: int,
    vote_data: VoteCast,
    service: VoteServiceDep,
) -> VoteResponse:
    """Cast, switch or toggle off a vote on a reply.

    The score update is broadcast to the parent discussion's room.
    """
    return _cast(service, TargetType.REPLY, reply_id, vote_data)


@router.get("/replies/{reply_id}/vote/{user_id}", response_model=MyVoteResponse)
def get_reply_vote(
    reply_id: int,
    user_id: str,
    service: VoteServiceDep,
) -> MyVoteResponse:
    """Return the user's vote on a reply, or null."""
    return _my_vote(service, TargetType.REPLY, reply_id, user_id)
