"""Vote casting with toggle, change and remove semantics.

``VoteService.cast_vote`` is the only write path for votes. Per natural key
``(target_type, target_id, user_id)`` it runs find, decide, mutate and
recompute as one critical section, then commits and hands the new tally to
the real-time notifier.

Transitions for a requested type V against the existing vote E:

======================  ============  ===============
E                       action        resulting vote
======================  ============  ===============
absent                  insert V      V
same type as V          remove        None
other type than V       update to V   V
======================  ============  ===============

Only a caller that already saw V before queueing on the key lock toggles it
off. If V appeared while the caller waited, or an insert loses a race on the
unique constraint (decided again once against the winning row), the request
is treated as recorded rather than as a toggle-off.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agora_votes.core.settings import settings
from agora_votes.models import Discussion, Reply, TargetType, VoteType
from agora_votes.repositories.vote_repo import VoteStore
from agora_votes.schemas.vote import ScoreChangeEvent
from agora_votes.services.errors import (
    DuplicateVoteError,
    InvalidVoteTypeError,
    TargetNotFoundError,
    VoteError,
    VoteNotFoundError,
    VoteValidationError,
)
from agora_votes.services.realtime import ScoreNotifier, get_notifier
from agora_votes.services.scoring import ScoreAggregator, ScoreSnapshot

__all__ = [
    "DuplicateVoteError",
    "InvalidVoteTypeError",
    "KeyedLock",
    "TargetNotFoundError",
    "VoteAction",
    "VoteError",
    "VoteNotFoundError",
    "VoteResult",
    "VoteService",
    "VoteValidationError",
    "get_vote_locks",
]

logger = logging.getLogger(__name__)


class VoteAction(str, enum.Enum):
    """What a cast did to the caller's vote row."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


_ACTION_MESSAGES = {
    VoteAction.CREATED: "Vote recorded",
    VoteAction.UPDATED: "Vote updated",
    VoteAction.REMOVED: "Vote removed",
}


@dataclass(frozen=True)
class VoteResult:
    """The caller's resulting vote and the target's fresh tally."""

    action: VoteAction
    vote: VoteType | None
    snapshot: ScoreSnapshot

    @property
    def upvotes(self) -> int:
        return self.snapshot.upvotes

    @property
    def downvotes(self) -> int:
        return self.snapshot.downvotes

    @property
    def score(self) -> int:
        return self.snapshot.score

    @property
    def message(self) -> str:
        return _ACTION_MESSAGES[self.action]

    def as_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "action": self.action.value,
            "vote": self.vote.value if self.vote is not None else None,
            **self.snapshot.as_dict(),
        }


class KeyedLock:
    """One re-entrant lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, list] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        lock: threading.RLock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def pending(self, key: Hashable) -> int:
        """Return how many callers hold or wait on ``key``."""
        with self._guard:
            entry = self._locks.get(key)
            return entry[1] if entry is not None else 0

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_VOTE_LOCKS = KeyedLock()


def get_vote_locks() -> KeyedLock:
    """Return the process-wide natural-key lock table."""
    return _VOTE_LOCKS


def _coerce_vote_type(vote_type: object) -> VoteType:
    if isinstance(vote_type, VoteType):
        return vote_type
    try:
        return VoteType(str(vote_type).lower())
    except ValueError:
        raise InvalidVoteTypeError(vote_type) from None


def _coerce_target_type(target_type: object) -> TargetType:
    if isinstance(target_type, TargetType):
        return target_type
    try:
        return TargetType(str(target_type).lower())
    except ValueError:
        raise VoteValidationError(
            f'Target type must be "discussion" or "reply", got {target_type!r}'
        ) from None


class VoteService:
    """Applies vote transitions and keeps score snapshots consistent."""

    def __init__(
        self,
        db: Session,
        *,
        notifier: ScoreNotifier | None = None,
        locks: KeyedLock | None = None,
        store: VoteStore | None = None,
        aggregator: ScoreAggregator | None = None,
        conflict_retries: int | None = None,
    ) -> None:
        self.db = db
        self.store = store or VoteStore(db)
        self.aggregator = aggregator or ScoreAggregator(db, self.store)
        self.notifier = notifier if notifier is not None else get_notifier()
        self.locks = locks or get_vote_locks()
        self.conflict_retries = (
            settings.vote_conflict_retries if conflict_retries is None else conflict_retries
        )

    def cast_vote(
        self,
        target_type: TargetType | str,
        target_id: int,
        user_id: str,
        vote_type: VoteType | str,
    ) -> VoteResult:
        """Cast, switch or toggle off ``user_id``'s vote on a target.

        Args:
            target_type: ``discussion`` or ``reply``.
            target_id: Identifier of the target row.
            user_id: Voting user's identifier.
            vote_type: ``upvote`` or ``downvote``.

        Returns:
            The resulting vote (``None`` after a toggle-off) and the
            recomputed tally.

        Raises:
            InvalidVoteTypeError: If ``vote_type`` is not a known vote type.
            VoteValidationError: If ``target_type`` or ``user_id`` is invalid.
            TargetNotFoundError: If the target does not exist or vanished
                before the tally was written.
            SQLAlchemyError: On store failures; the transaction is rolled back.
        """
        requested = _coerce_vote_type(vote_type)
        kind = _coerce_target_type(target_type)
        if not isinstance(user_id, str) or not user_id.strip():
            raise VoteValidationError("User ID is required")

        try:
            # What the caller saw before queueing decides whether a matching
            # row found under the lock is a toggle-off or a racing duplicate.
            observed = self.store.find(kind, target_id, user_id)
            seen = observed.stance if observed is not None else None
            with self.locks.hold((kind, target_id, user_id)):
                target = self.aggregator.locate(kind, target_id)
                discussion_id = self._discussion_id(target)
                action = self._transition(kind, target_id, user_id, requested, seen)
                snapshot = self.aggregator.recompute(kind, target_id)
                self.db.commit()
        except (VoteError, SQLAlchemyError):
            self.db.rollback()
            raise

        result = VoteResult(
            action=action,
            vote=None if action is VoteAction.REMOVED else requested,
            snapshot=snapshot,
        )
        logger.info(
            "Vote %s on %s %d by %s: upvotes=%d downvotes=%d score=%d",
            action.value,
            kind.value,
            target_id,
            user_id,
            result.upvotes,
            result.downvotes,
            result.score,
        )
        self._publish(kind, target_id, discussion_id, snapshot)
        return result

    def get_user_vote(
        self,
        target_type: TargetType | str,
        target_id: int,
        user_id: str,
    ) -> VoteType | None:
        """Return ``user_id``'s current vote on a target, if any."""
        vote = self.store.find(_coerce_target_type(target_type), target_id, user_id)
        return vote.stance if vote is not None else None

    def _transition(
        self,
        kind: TargetType,
        target_id: int,
        user_id: str,
        requested: VoteType,
        seen: VoteType | None,
    ) -> VoteAction:
        attempts = 0
        while True:
            try:
                return self._apply(
                    kind, target_id, user_id, requested, seen, after_conflict=attempts > 0
                )
            except DuplicateVoteError:
                # A concurrent request inserted first; decide again against its row.
                if attempts >= self.conflict_retries:
                    raise
                attempts += 1
                logger.warning(
                    "Concurrent vote on %s %d by %s; re-deciding against the stored vote",
                    kind.value,
                    target_id,
                    user_id,
                )

    def _apply(
        self,
        kind: TargetType,
        target_id: int,
        user_id: str,
        requested: VoteType,
        seen: VoteType | None,
        *,
        after_conflict: bool = False,
    ) -> VoteAction:
        existing = self.store.find(kind, target_id, user_id)
        if existing is None:
            self.store.insert(kind, target_id, user_id, requested)
            return VoteAction.CREATED
        if existing.stance is requested:
            if after_conflict or seen is None:
                # A racing request already recorded this exact vote.
                return VoteAction.CREATED
            if seen is not requested:
                return VoteAction.UPDATED
            self.store.remove(kind, target_id, user_id)
            return VoteAction.REMOVED
        self.store.update_type(kind, target_id, user_id, requested)
        return VoteAction.UPDATED

    @staticmethod
    def _discussion_id(target: Discussion | Reply) -> int:
        if isinstance(target, Reply):
            return target.discussion_id
        return target.id

    def _publish(
        self,
        kind: TargetType,
        target_id: int,
        discussion_id: int,
        snapshot: ScoreSnapshot,
    ) -> None:
        event = ScoreChangeEvent(
            target_id=target_id,
            target_type=kind,
            discussion_id=discussion_id,
            upvotes=snapshot.upvotes,
            downvotes=snapshot.downvotes,
            score=snapshot.score,
        )
        try:
            self.notifier.publish(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to publish score change for %s %d", kind.value, target_id)
