# mypy: ignore-errors
"""Tests for vote endpoints."""

import threading
import time

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError

from agora_votes.db.session import get_db
from agora_votes.models import TargetType
from agora_votes.services.voting import VoteService, get_vote_locks


def _vote(client, path: str, user, vote_type: str):
    return client.post(f"/api/v1/{path}/vote", json={"user_id": user.user_id, "vote_type": vote_type})


def test_cast_upvote_on_discussion(client, discussion, bob) -> None:
    """Test that a first upvote is recorded and tallied."""
    response = _vote(client, f"discussions/{discussion.id}", bob, "upvote")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "message": "Vote recorded",
        "action": "created",
        "vote": "upvote",
        "score": 1,
        "upvotes": 1,
        "downvotes": 0,
    }


def test_scenario_through_the_api(client, discussion, alice, bob) -> None:
    """Test the upvote, downvote, toggle-off sequence end to end."""
    path = f"discussions/{discussion.id}"

    first = _vote(client, path, alice, "upvote").json()
    second = _vote(client, path, bob, "downvote").json()
    third = _vote(client, path, alice, "upvote").json()

    assert (first["upvotes"], first["downvotes"], first["score"]) == (1, 0, 1)
    assert (second["upvotes"], second["downvotes"], second["score"]) == (1, 1, 0)
    assert (third["upvotes"], third["downvotes"], third["score"]) == (0, 1, -1)
    assert third["vote"] is None
    assert third["action"] == "removed"
    assert third["message"] == "Vote removed"


def test_switching_vote_reports_update(client, discussion, carol) -> None:
    """Test that voting the other way updates the existing vote."""
    path = f"discussions/{discussion.id}"
    _vote(client, path, carol, "upvote")

    response = _vote(client, path, carol, "downvote")

    data = response.json()
    assert response.status_code == status.HTTP_200_OK
    assert data["action"] == "updated"
    assert data["message"] == "Vote updated"
    assert data["vote"] == "downvote"
    assert (data["upvotes"], data["downvotes"], data["score"]) == (0, 1, -1)


def test_reply_votes_are_tallied_separately(client, discussion, reply, alice) -> None:
    """Test that reply votes do not touch the discussion tally."""
    response = _vote(client, f"replies/{reply.id}", alice, "downvote")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["score"] == -1

    detail = client.get(f"/api/v1/discussions/{discussion.id}").json()
    assert detail["score"] == 0
    assert detail["replies"][0]["score"] == -1


def test_get_my_vote(client, discussion, reply, bob) -> None:
    """Test fetching the caller's current vote on discussions and replies."""
    url = f"/api/v1/discussions/{discussion.id}/vote/{bob.user_id}"
    assert client.get(url).json() == {"vote": None}

    _vote(client, f"discussions/{discussion.id}", bob, "upvote")
    assert client.get(url).json() == {"vote": "upvote"}

    _vote(client, f"replies/{reply.id}", bob, "downvote")
    reply_url = f"/api/v1/replies/{reply.id}/vote/{bob.user_id}"
    assert client.get(reply_url).json() == {"vote": "downvote"}


@pytest.mark.parametrize(
    "payload",
    [
        {"user_id": "AGORA-0001"},
        {"vote_type": "upvote"},
        {"user_id": "", "vote_type": "upvote"},
    ],
)
def test_malformed_vote_is_rejected(client, discussion, payload) -> None:
    """Test that malformed bodies are rejected before reaching the service."""
    response = client.post(f"/api/v1/discussions/{discussion.id}/vote", json=payload)

    assert response.status_code == 422


def test_vote_from_unknown_user(client, discussion) -> None:
    """Test voting as a user that does not exist."""
    response = client.post(
        f"/api/v1/discussions/{discussion.id}/vote",
        json={"user_id": "nobody", "vote_type": "upvote"},
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "User not found"


def test_vote_on_nonexistent_discussion(client, bob) -> None:
    """Test voting on a discussion that does not exist."""
    response = _vote(client, "discussions/99999", bob, "upvote")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Discussion 99999 not found"


def test_vote_on_nonexistent_reply(client, bob) -> None:
    """Test voting on a reply that does not exist."""
    response = _vote(client, "replies/99999", bob, "downvote")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Reply 99999 not found"


def test_blank_user_id_is_a_bad_request(client, discussion, monkeypatch) -> None:
    """Test that service-level validation failures map to 400."""
    monkeypatch.setattr("agora_votes.api.v1.endpoints.votes._require_user", lambda db, user_id: None)

    response = client.post(
        f"/api/v1/discussions/{discussion.id}/vote",
        json={"user_id": "   ", "vote_type": "upvote"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "User ID is required"


def test_store_failure_returns_500(client, discussion, bob, monkeypatch) -> None:
    """Test that storage errors surface as a generic internal error."""

    def broken(self, *args, **kwargs):
        raise OperationalError("INSERT INTO discussion_votes", {}, Exception("disk I/O error"))

    monkeypatch.setattr(VoteService, "cast_vote", broken)

    response = _vote(client, f"discussions/{discussion.id}", bob, "upvote")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Error processing vote"


def test_vote_publishes_score_change(client, recording_notifier, discussion, reply, carol) -> None:
    """Test that committed votes are handed to the notifier."""
    _vote(client, f"replies/{reply.id}", carol, "upvote")

    (event,) = recording_notifier.events
    assert event.target_type.value == "reply"
    assert event.target_id == reply.id
    assert event.discussion_id == discussion.id
    assert (event.upvotes, event.downvotes, event.score) == (1, 0, 1)


def test_rejected_vote_publishes_nothing(client, recording_notifier, bob) -> None:
    """Test that failed casts never reach the notifier."""
    _vote(client, "discussions/99999", bob, "upvote")

    assert recording_notifier.events == []


@pytest.mark.parametrize("vote_type", ["sideways", "", "up"])
def test_unknown_vote_type_is_a_bad_request(client, discussion, bob, vote_type) -> None:
    """Test that unknown vote types are rejected with the service's message."""
    response = _vote(client, f"discussions/{discussion.id}", bob, vote_type)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == 'Vote type must be "upvote" or "downvote"'


def test_vote_type_is_case_insensitive(client, reply, alice) -> None:
    """Test that the vote type is matched regardless of case."""
    response = _vote(client, f"replies/{reply.id}", alice, "DOWNVOTE")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["vote"] == "downvote"


def test_concurrent_identical_posts_record_one_vote(
    app, client, file_session_factory, contested_discussion
) -> None:
    """Test that two simultaneous identical upvotes leave a single vote."""
    user_id, discussion_id = contested_discussion

    def _file_session():
        session = file_session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _file_session
    locks = get_vote_locks()
    key = (TargetType.DISCUSSION, discussion_id, user_id)
    barrier = threading.Barrier(2)
    responses = []

    def post() -> None:
        barrier.wait(timeout=5)
        responses.append(
            client.post(
                f"/api/v1/discussions/{discussion_id}/vote",
                json={"user_id": user_id, "vote_type": "upvote"},
            )
        )

    threads = [threading.Thread(target=post) for _ in range(2)]
    # Hold the key until both requests have looked up their vote and queued.
    with locks.hold(key):
        for thread in threads:
            thread.start()
        deadline = time.monotonic() + 5
        while locks.pending(key) < 3 and time.monotonic() < deadline:
            time.sleep(0.005)
        assert locks.pending(key) == 3
    for thread in threads:
        thread.join(timeout=10)

    assert [response.status_code for response in responses] == [200, 200]
    assert [response.json()["action"] for response in responses] == ["created", "created"]
    assert [response.json()["upvotes"] for response in responses] == [1, 1]

    detail = client.get(f"/api/v1/discussions/{discussion_id}").json()
    assert (detail["upvotes"], detail["downvotes"], detail["score"]) == (1, 0, 1)
    my_vote = client.get(f"/api/v1/discussions/{discussion_id}/vote/{user_id}").json()
    assert my_vote == {"vote": "upvote"}
