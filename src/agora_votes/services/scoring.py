"""Score aggregation for discussions and replies.

Snapshots are always re-derived from the vote rows; nothing here adjusts a
tally by a delta.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from agora_votes.core.settings import settings
from agora_votes.db.time import epoch_seconds
from agora_votes.models import Discussion, Reply, TargetType, VoteType
from agora_votes.repositories.vote_repo import VoteStore
from agora_votes.services.errors import TargetNotFoundError

logger = logging.getLogger(__name__)

TARGET_MODELS: dict[TargetType, type[Discussion] | type[Reply]] = {
    TargetType.DISCUSSION: Discussion,
    TargetType.REPLY: Reply,
}


@dataclass(frozen=True)
class ScoreSnapshot:
    """Vote tally materialized on a target."""

    upvotes: int = 0
    downvotes: int = 0

    def __post_init__(self) -> None:
        if self.upvotes < 0 or self.downvotes < 0:
            raise ValueError("vote counts cannot be negative")

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def total(self) -> int:
        return self.upvotes + self.downvotes

    def as_dict(self) -> dict[str, int]:
        return {"upvotes": self.upvotes, "downvotes": self.downvotes, "score": self.score}


def hot_score(
    score: int,
    created_at: datetime,
    *,
    epoch: int | None = None,
    decay_seconds: float | None = None,
) -> float:
    """Return the time-decayed ranking value used to sort discussions.

    Each order of magnitude of net score is worth ``decay_seconds`` of age.
    """
    epoch = settings.hot_score_epoch if epoch is None else epoch
    decay_seconds = settings.hot_score_decay_seconds if decay_seconds is None else decay_seconds
    order = math.log10(max(abs(score), 1))
    sign = 1 if score > 0 else -1 if score < 0 else 0
    age = epoch_seconds(created_at) - epoch
    return round(sign * order + age / decay_seconds, 7)


class ScoreAggregator:
    """Recomputes and persists score snapshots for vote targets."""

    def __init__(self, session: Session, store: VoteStore | None = None) -> None:
        self.session = session
        self.store = store or VoteStore(session)

    def locate(self, target_type: TargetType, target_id: int) -> Discussion | Reply:
        """Return the target row.

        Raises:
            TargetNotFoundError: If the discussion or reply does not exist.
        """
        model = TARGET_MODELS[TargetType(target_type)]
        target = self.session.get(model, target_id, populate_existing=True)
        if target is None:
            raise TargetNotFoundError(target_type, target_id)
        return target

    def tally(self, target_type: TargetType, target_id: int) -> ScoreSnapshot:
        """Count the vote rows for a target without persisting anything."""
        counts = self.store.count_by_type(target_type, target_id)
        return ScoreSnapshot(
            upvotes=counts[VoteType.UPVOTE],
            downvotes=counts[VoteType.DOWNVOTE],
        )

    def recompute(self, target_type: TargetType, target_id: int) -> ScoreSnapshot:
        """Derive the snapshot from vote rows and write it onto the target.

        Raises:
            TargetNotFoundError: If the target was deleted before the write.
        """
        target = self.locate(target_type, target_id)
        snapshot = self.tally(target_type, target_id)

        target.upvotes = snapshot.upvotes
        target.downvotes = snapshot.downvotes
        target.score = snapshot.score
        if isinstance(target, Discussion):
            target.hot_score = hot_score(snapshot.score, target.created_at)
        self.session.flush()

        logger.debug(
            "Recomputed %s %d: upvotes=%d downvotes=%d score=%d",
            TargetType(target_type).value,
            target_id,
            snapshot.upvotes,
            snapshot.downvotes,
            snapshot.score,
        )
        return snapshot
