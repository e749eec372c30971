"""Exceptions raised by the voting subsystem.

The API layer maps these to HTTP status codes; service callers outside HTTP
can catch :class:`VoteError` to handle every voting failure at once.
"""

from __future__ import annotations


class VoteError(RuntimeError):
    """Base exception raised for voting failures."""


class VoteValidationError(VoteError, ValueError):
    """Raised when a vote request is rejected before touching storage."""


class InvalidVoteTypeError(VoteValidationError):
    """Raised when the requested vote type is neither upvote nor downvote."""

    def __init__(self, vote_type: object) -> None:
        super().__init__('Vote type must be "upvote" or "downvote"')
        self.vote_type = vote_type


class DuplicateVoteError(VoteError):
    """Raised when inserting a vote whose natural key already exists."""


class VoteNotFoundError(VoteError):
    """Raised when updating or removing a vote that does not exist."""


class TargetNotFoundError(VoteError):
    """Raised when the discussion or reply being voted on does not exist."""

    def __init__(self, target_type: object, target_id: int) -> None:
        label = getattr(target_type, "value", target_type)
        super().__init__(f"{str(label).capitalize()} {target_id} not found")
        self.target_type = target_type
        self.target_id = target_id
