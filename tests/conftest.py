# tests/conftest.py
from __future__ import annotations

from collections.abc import Generator, Iterator
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agora_votes.api.v1.endpoints import votes as votes_endpoints
from agora_votes.db.session import Base
from agora_votes.db.session import get_db as app_get_session
from agora_votes.main import app as fastapi_app
from agora_votes.models import Discussion, Reply, User
from agora_votes.schemas.vote import ScoreChangeEvent
from agora_votes.services.realtime import get_connection_registry
from agora_votes.services.voting import KeyedLock, VoteService

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


class RecordingNotifier:
    """Notifier double that keeps every published event."""

    def __init__(self) -> None:
        self.events: list[ScoreChangeEvent] = []

    def publish(self, event: ScoreChangeEvent) -> None:
        self.events.append(event)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; take over so SAVEPOINTs nest correctly.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits leaked out.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def file_session_factory(tmp_path) -> Iterator[sessionmaker]:
    """Sessions on a file-backed SQLite database, each with its own connection."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'agora.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)
    try:
        yield sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)
    finally:
        file_engine.dispose()


@pytest.fixture()
def contested_discussion(file_session_factory: sessionmaker) -> tuple[str, int]:
    """Seed a user and a discussion in the file database; return their ids."""
    with file_session_factory() as session:
        user = User(user_id="AGORA-9001", username="racer")
        session.add(user)
        session.flush()
        discussion = Discussion(
            user_id=user.user_id,
            title="Who votes first?",
            content="Two tabs, one click each.",
        )
        session.add(discussion)
        session.commit()
        return user.user_id, discussion.id


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_connection_registry() -> Iterator[None]:
    registry = get_connection_registry()
    registry.clear()
    yield
    registry.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def recording_notifier(app: FastAPI, notifier: RecordingNotifier) -> Iterator[RecordingNotifier]:
    """Route the API's score events into a RecordingNotifier."""
    app.dependency_overrides[votes_endpoints.get_notifier_dep] = lambda: notifier
    try:
        yield notifier
    finally:
        app.dependency_overrides.pop(votes_endpoints.get_notifier_dep, None)


@pytest.fixture()
def vote_service(db_session: Session, notifier: RecordingNotifier) -> VoteService:
    return VoteService(db_session, notifier=notifier, locks=KeyedLock())


def make_user(db_session: Session, name: str) -> User:
    user = User(user_id=f"AGORA-{next(_USER_COUNTER):04d}", username=name)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def alice(db_session: Session) -> User:
    return make_user(db_session, "alice")


@pytest.fixture()
def bob(db_session: Session) -> User:
    return make_user(db_session, "bob")


@pytest.fixture()
def carol(db_session: Session) -> User:
    return make_user(db_session, "carol")


@pytest.fixture()
def discussion(db_session: Session, alice: User) -> Discussion:
    """Create a discussion with an empty tally."""
    discussion = Discussion(
        user_id=alice.user_id,
        title="What is justice?",
        content="Is it the advantage of the stronger?",
    )
    db_session.add(discussion)
    db_session.commit()
    return discussion


@pytest.fixture()
def reply(db_session: Session, discussion: Discussion, bob: User) -> Reply:
    """Create a reply under ``discussion``."""
    reply = Reply(
        discussion_id=discussion.id,
        user_id=bob.user_id,
        content="Justice is giving each what is owed.",
    )
    db_session.add(reply)
    db_session.commit()
    return reply
