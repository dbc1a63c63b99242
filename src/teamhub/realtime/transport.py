"""Publish/subscribe transport collaborator.

The gateway talks to a :class:`Transport`; wire encoding is the
transport's business. :class:`InMemoryTransport` is the in-process
implementation: each session has a sink callable that receives
``(topic, payload)`` for every delivery.

Delivery to one session never waits on another. Closing a session stops
delivery to it immediately; broadcasts already in progress continue for
everyone else.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

Sink = Callable[[str, dict[str, Any]], None]


def channel_topic(channel_type: str, channel_id: int) -> str:
    return f"chat/{channel_type}/{channel_id}"


ERRORS_TOPIC = "errors"


class Transport(Protocol):
    """What the gateway needs from a real-time transport."""

    def open_session(self, user_id: int, sink: Sink | None = None) -> str: ...

    def close_session(self, session_id: str) -> None: ...

    def subscribe(self, session_id: str, topic: str) -> None: ...

    def unsubscribe(self, session_id: str, topic: str) -> None: ...

    def publish(self, topic: str, payload: dict[str, Any]) -> int: ...

    def publish_to_user(self, user_id: int, topic: str, payload: dict[str, Any]) -> int: ...

    def publish_to_session(self, session_id: str, topic: str, payload: dict[str, Any]) -> int: ...


@dataclass
class Session:
    """One live connection. Without a sink, deliveries collect in ``received``."""

    id: str
    user_id: int
    sink: Sink | None = None
    topics: set[str] = field(default_factory=set)
    received: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    open: bool = True

    def deliver(self, topic: str, payload: dict[str, Any]) -> bool:
        if not self.open:
            return False
        if self.sink is not None:
            self.sink(topic, payload)
        else:
            self.received.append((topic, payload))
        return True


class InMemoryTransport:
    """Thread-safe in-process pub/sub."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._subscribers: dict[str, set[str]] = {}

    def open_session(self, user_id: int, sink: Sink | None = None) -> str:
        session = Session(id=uuid.uuid4().hex, user_id=user_id, sink=sink)
        with self._lock:
            self._sessions[session.id] = session
        logger.debug("Session %s opened for user %s", session.id, user_id)
        return session.id

    def close_session(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return
            session.open = False
            for topic in session.topics:
                subscribers = self._subscribers.get(topic)
                if subscribers is not None:
                    subscribers.discard(session_id)
                    if not subscribers:
                        del self._subscribers[topic]
        logger.debug("Session %s closed", session_id)

    def get_session(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def subscribe(self, session_id: str, topic: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Unknown session: {session_id}")
            session.topics.add(topic)
            self._subscribers.setdefault(topic, set()).add(session_id)

    def unsubscribe(self, session_id: str, topic: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.topics.discard(topic)
            subscribers = self._subscribers.get(topic)
            if subscribers is not None:
                subscribers.discard(session_id)
                if not subscribers:
                    del self._subscribers[topic]

    def subscribers(self, topic: str) -> list[str]:
        with self._lock:
            return sorted(self._subscribers.get(topic, ()))

    def _deliver(self, targets: list[Session], topic: str, payload: dict[str, Any]) -> int:
        delivered = 0
        for session in targets:
            try:
                if session.deliver(topic, payload):
                    delivered += 1
            except Exception:
                # A broken sink only loses its own delivery.
                logger.warning("Delivery to session %s failed", session.id, exc_info=True)
        return delivered

    def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """Deliver to every current subscriber of *topic*. Returns the count."""
        with self._lock:
            targets = [
                self._sessions[sid]
                for sid in sorted(self._subscribers.get(topic, ()))
                if sid in self._sessions
            ]
        return self._deliver(targets, topic, payload)

    def publish_to_user(self, user_id: int, topic: str, payload: dict[str, Any]) -> int:
        """Deliver privately to every live session of *user_id*."""
        with self._lock:
            targets = [s for s in self._sessions.values() if s.user_id == user_id]
        return self._deliver(targets, topic, payload)

    def publish_to_session(self, session_id: str, topic: str, payload: dict[str, Any]) -> int:
        """Deliver to one session only, whatever it is subscribed to."""
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return 0
        return self._deliver([session], topic, payload)
