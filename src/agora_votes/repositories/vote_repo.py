"""Data access helpers for working with vote rows."""
from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora_votes.models.vote import VOTE_MODELS, TargetType, Vote, VoteType
from agora_votes.services.errors import DuplicateVoteError, VoteNotFoundError

__all__ = ["VoteStore"]


class VoteStore:
    """Storage for one vote per (target type, target id, user id).

    None of the methods commit; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the store with a SQLAlchemy session."""
        self.session = session

    @staticmethod
    def _model(target_type: TargetType):
        return VOTE_MODELS[TargetType(target_type)]

    def _key_clause(self, target_type: TargetType, target_id: int, user_id: str):
        model = self._model(target_type)
        target_column = getattr(model, model.target_field)
        return model, (target_column == target_id, model.user_id == user_id)

    def find(self, target_type: TargetType, target_id: int, user_id: str) -> Vote | None:
        """Return the vote for the natural key, or None.

        A row already in the session is refreshed, so writes committed by other
        sessions are visible.
        """
        model, clause = self._key_clause(target_type, target_id, user_id)
        result = self.session.execute(
            select(model).where(*clause).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    def insert(
        self,
        target_type: TargetType,
        target_id: int,
        user_id: str,
        vote_type: VoteType,
    ) -> Vote:
        """Insert a new vote row.

        The flush runs inside a SAVEPOINT so a unique-constraint violation only
        unwinds this insert and leaves the caller's transaction usable.

        Raises:
            DuplicateVoteError: If a vote for the natural key already exists.
        """
        model = self._model(target_type)
        vote = model(user_id=user_id, vote_type=VoteType(vote_type).value)
        setattr(vote, model.target_field, target_id)
        try:
            with self.session.begin_nested():
                self.session.add(vote)
                self.session.flush()
        except IntegrityError as err:
            if self.find(target_type, target_id, user_id) is None:
                # Not a natural-key clash (e.g. dangling foreign key).
                raise
            raise DuplicateVoteError(
                f"{TargetType(target_type).value} {target_id} already has a vote from {user_id}"
            ) from err
        return vote

    def update_type(
        self,
        target_type: TargetType,
        target_id: int,
        user_id: str,
        new_type: VoteType,
    ) -> Vote:
        """Flip the stance of an existing vote.

        Raises:
            VoteNotFoundError: If no vote matches the natural key.
        """
        vote = self.find(target_type, target_id, user_id)
        if vote is None:
            raise VoteNotFoundError(
                f"No vote from {user_id} on {TargetType(target_type).value} {target_id}"
            )
        vote.vote_type = VoteType(new_type).value
        self.session.flush()
        return vote

    def remove(self, target_type: TargetType, target_id: int, user_id: str) -> None:
        """Delete the vote for the natural key.

        Raises:
            VoteNotFoundError: If there was nothing to delete.
        """
        model, clause = self._key_clause(target_type, target_id, user_id)
        result = self.session.execute(
            delete(model).where(*clause).execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise VoteNotFoundError(
                f"No vote from {user_id} on {TargetType(target_type).value} {target_id}"
            )

    def count_by_type(self, target_type: TargetType, target_id: int) -> dict[VoteType, int]:
        """Return the number of rows per vote type for a target."""
        model = self._model(target_type)
        target_column = getattr(model, model.target_field)
        rows = self.session.execute(
            select(model.vote_type, func.count())
            .where(target_column == target_id)
            .group_by(model.vote_type)
        ).all()
        counts = {vote_type: 0 for vote_type in VoteType}
        for vote_type, total in rows:
            counts[VoteType(vote_type)] = int(total)
        return counts

    def count(self, target_type: TargetType, target_id: int) -> int:
        """Return the total number of vote rows for a target."""
        return sum(self.count_by_type(target_type, target_id).values())
