"""Real-time propagation of score changes to discussion rooms.

Connections register under a room (``discussion_<id>``) for as long as their
socket is open. Delivery is best effort: no ordering across clients, no
persistence of missed events, no retries. A client that misses an update
picks up the right tally on its next fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from threading import Lock
from typing import Any, Protocol

from agora_votes.core.settings import settings
from agora_votes.schemas.vote import ScoreChangeEvent

logger = logging.getLogger(__name__)

VOTE_UPDATE_EVENT = "vote_update"


class RoomConnection(Protocol):
    """Anything that can receive JSON frames, e.g. a Starlette ``WebSocket``."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class ScoreNotifier(Protocol):
    """Receives score changes once they are committed."""

    def publish(self, event: ScoreChangeEvent) -> None: ...


class ConnectionRegistry:
    """Room membership for open connections.

    A connection sits in at most one discussion room at a time; joining a new
    one leaves the previous room.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[RoomConnection]] = defaultdict(set)
        self._membership: dict[RoomConnection, str] = {}
        self._lock = Lock()

    def join(self, room: str, connection: RoomConnection) -> int:
        """Add ``connection`` to ``room`` and return the room's new size."""
        with self._lock:
            previous = self._membership.get(connection)
            if previous is not None and previous != room:
                self._discard(previous, connection)
            self._rooms[room].add(connection)
            self._membership[connection] = room
            return len(self._rooms[room])

    def leave(self, room: str, connection: RoomConnection) -> None:
        """Remove ``connection`` from ``room`` if it is there."""
        with self._lock:
            if self._membership.get(connection) == room:
                self._membership.pop(connection, None)
            self._discard(room, connection)

    def disconnect(self, connection: RoomConnection) -> str | None:
        """Forget ``connection`` entirely; return the room it was in."""
        with self._lock:
            room = self._membership.pop(connection, None)
            if room is not None:
                self._discard(room, connection)
            return room

    def room_of(self, connection: RoomConnection) -> str | None:
        with self._lock:
            return self._membership.get(connection)

    def members(self, room: str) -> tuple[RoomConnection, ...]:
        """Return a snapshot of the connections in ``room``."""
        with self._lock:
            return tuple(self._rooms.get(room, ()))

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def rooms(self) -> dict[str, int]:
        """Return the occupied rooms and their sizes."""
        with self._lock:
            return {room: len(conns) for room, conns in self._rooms.items() if conns}

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()
            self._membership.clear()

    def _discard(self, room: str, connection: RoomConnection) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]


class NullNotifier:
    """Notifier used when real-time updates are switched off."""

    def publish(self, event: ScoreChangeEvent) -> None:
        logger.debug("Real-time disabled; dropping update for %s", event.room)


class RoomBroadcastNotifier:
    """Fans score changes out to every connection in the event's room.

    ``publish`` only schedules the broadcast, so the caller never waits on
    socket writes. Called off the event loop (e.g. from a threadpool route),
    it hands the event to the loop given to :meth:`bind`.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.registry = registry
        self._loop = loop
        self._pending: set[asyncio.Task[int]] = set()

    def bind(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Set the loop that broadcasts published from other threads run on."""
        self._loop = loop

    def publish(self, event: ScoreChangeEvent) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            self._schedule(event)
            return

        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop bound; dropping update for %s", event.room)
            return
        try:
            loop.call_soon_threadsafe(self._schedule, event)
        except RuntimeError:
            logger.debug("Event loop closed; dropping update for %s", event.room)

    def _schedule(self, event: ScoreChangeEvent) -> None:
        task = asyncio.get_running_loop().create_task(self.broadcast(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast(self, event: ScoreChangeEvent) -> int:
        """Send ``event`` to its room; return how many connections received it."""
        frame = {"event": VOTE_UPDATE_EVENT, "data": event.model_dump(mode="json")}
        delivered = 0
        for connection in self.registry.members(event.room):
            try:
                await connection.send_json(frame)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Dropping connection from %s after failed send: %s", event.room, exc)
                self.registry.disconnect(connection)
                continue
            delivered += 1
        logger.debug("Broadcast %s to %d connection(s) in %s", VOTE_UPDATE_EVENT, delivered, event.room)
        return delivered

    async def drain(self) -> None:
        """Wait for in-flight broadcasts; used on shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_REGISTRY = ConnectionRegistry()
_NOTIFIER: ScoreNotifier | None = None


def get_connection_registry() -> ConnectionRegistry:
    """Return the process-wide connection registry."""
    return _REGISTRY


def get_notifier() -> ScoreNotifier:
    """Return the process-wide score notifier."""
    global _NOTIFIER
    if _NOTIFIER is None:
        _NOTIFIER = (
            RoomBroadcastNotifier(_REGISTRY) if settings.realtime_enabled else NullNotifier()
        )
    return _NOTIFIER
