"""Repositories wrapping database access."""

from .vote_repo import VoteStore

__all__ = ["VoteStore"]
