"""ChatGateway — the real-time channel access guard.

Lifecycle of a session:

1. ``connect``: the bearer credential is validated once and the resulting
   user is bound to the session for its lifetime. Every later action is
   attributed to that user.
2. ``join``: access is re-verified, the recent history is sent to the
   joining session alone (oldest first), the session is subscribed, and a system "joined"
   notice is broadcast to the channel.
3. ``post_message``: access is re-verified and the message persisted
   before it is broadcast.
4. ``leave``: advisory; broadcasts a "left" notice without re-checking.
5. ``disconnect``: delivery to the session stops at once.

Failures of ``join`` and ``post_message`` go to the failing session on
the ``errors`` topic only; they are never broadcast to the channel. The
user's other sessions see neither history replays nor errors.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from teamhub.domain.models import User
from teamhub.domain.types import ErrorKind
from teamhub.realtime.auth import CredentialValidator, parse_bearer
from teamhub.realtime.transport import ERRORS_TOPIC, Sink, Transport, channel_topic
from teamhub.services._helpers import now_iso
from teamhub.services.base import BaseService
from teamhub.services.chat import ChatService
from teamhub.services.identity import IdentityService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

if TYPE_CHECKING:
    from teamhub.infrastructure.store import Store

logger = logging.getLogger(__name__)

_JOIN_ERROR_PREFIXES = {
    ErrorKind.NOT_FOUND: "Channel not found",
    ErrorKind.FORBIDDEN: "Access denied",
}


class ChatGateway(BaseService):
    """Bind identities to sessions and gate channel traffic."""

    def __init__(
        self,
        store: Store,
        transport: Transport,
        validator: CredentialValidator,
    ) -> None:
        super().__init__(store)
        self._transport = transport
        self._validator = validator
        self._chat = ChatService(store)
        self._identity = IdentityService(store)
        self._sessions: dict[str, User] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def _system_payload(
        self, text: str, channel_type: str | None = None, channel_id: int | None = None
    ) -> dict[str, Any]:
        return {
            "kind": "system",
            "id": None,
            "channel_type": channel_type,
            "channel_id": channel_id,
            "sender_id": self._store.settings.chat.system_sender,
            "sender_email": None,
            "text": text,
            "created_at": now_iso(),
        }

    @staticmethod
    def _message_payload(message: dict[str, Any]) -> dict[str, Any]:
        return {
            "kind": "message",
            "id": message["id"],
            "channel_type": message["channel_type"],
            "channel_id": message["channel_id"],
            "sender_id": message["sender_id"],
            "sender_email": message["sender_email"],
            "text": message["content"],
            "created_at": message["created_at"],
        }

    def _send_error(self, session_id: str, result: ServiceResult, prefix: str) -> None:
        message = result.error.message if result.error else "unknown error"
        self._transport.publish_to_session(
            session_id, ERRORS_TOPIC, self._system_payload(f"{prefix}: {message}")
        )

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @traced
    def connect(self, authorization: str | None, sink: Sink | None = None) -> ServiceResult:
        """Validate the bearer credential and open a session bound to its user."""
        op = "connect"
        token = parse_bearer(authorization)
        if token is None:
            logger.warning("Connection rejected: missing or malformed credential")
            return self._fail(
                op, ErrorKind.FORBIDDEN, "Missing or malformed credential", "MISSING_CREDENTIALS"
            )
        user_id = self._validator.validate(token)
        user = self._identity.resolve_by_id(user_id) if user_id is not None else None
        if user is None:
            logger.warning("Connection rejected: invalid credential")
            return self._fail(op, ErrorKind.FORBIDDEN, "Invalid credential", "INVALID_CREDENTIALS")

        session_id = self._transport.open_session(user.id, sink)
        with self._lock:
            self._sessions[session_id] = user
        logger.info("User %s connected (session %s)", user.id, session_id)
        return ServiceResult(ok=True, op=op, data={"session_id": session_id, "user_id": user.id})

    def identity(self, session_id: str) -> User | None:
        """The user bound to *session_id*, if connected."""
        with self._lock:
            return self._sessions.get(session_id)

    def _require_session(self, op: str, session_id: str) -> User | ServiceResult:
        user = self.identity(session_id)
        if user is None:
            return self._fail(op, ErrorKind.FORBIDDEN, "Session is not connected", "NOT_CONNECTED")
        return user

    def disconnect(self, session_id: str) -> None:
        with self._lock:
            user = self._sessions.pop(session_id, None)
        self._transport.close_session(session_id)
        if user is not None:
            logger.info("User %s disconnected (session %s)", user.id, session_id)

    # ------------------------------------------------------------------
    # Channel actions
    # ------------------------------------------------------------------

    @traced
    def join(self, session_id: str, channel_type: str, channel_id: int) -> ServiceResult:
        op = "join_channel"
        user = self._require_session(op, session_id)
        if isinstance(user, ServiceResult):
            return user

        recent = self._chat.recent_messages(channel_type, channel_id, user.id)
        if not recent.ok:
            code = recent.error.code if recent.error else ""
            prefix = _JOIN_ERROR_PREFIXES.get(code, "Cannot join channel")
            self._send_error(session_id, recent, prefix)
            return recent.model_copy(update={"op": op})

        topic = channel_topic(channel_type, channel_id)
        for message in recent.data["items"]:
            self._transport.publish_to_session(session_id, topic, self._message_payload(message))

        self._transport.subscribe(session_id, topic)
        self._transport.publish(
            topic,
            self._system_payload(f"{user.email} joined the channel", channel_type, channel_id),
        )
        logger.info("User %s joined %s", user.id, topic)
        return ServiceResult(
            ok=True,
            op=op,
            data={"topic": topic, "history_count": recent.data["count"]},
        )

    @traced
    def leave(self, session_id: str, channel_type: str, channel_id: int) -> ServiceResult:
        """Announce the departure and unsubscribe. No access check."""
        op = "leave_channel"
        user = self._require_session(op, session_id)
        if isinstance(user, ServiceResult):
            return user

        topic = channel_topic(channel_type, channel_id)
        self._transport.publish(
            topic,
            self._system_payload(f"{user.email} left the channel", channel_type, channel_id),
        )
        self._transport.unsubscribe(session_id, topic)
        logger.info("User %s left %s", user.id, topic)
        return ServiceResult(ok=True, op=op, data={"topic": topic})

    @traced
    def post_message(
        self, session_id: str, channel_type: str, channel_id: int, text: str
    ) -> ServiceResult:
        """Persist then broadcast. Failures go privately to the sender."""
        op = "post_message"
        user = self._require_session(op, session_id)
        if isinstance(user, ServiceResult):
            return user

        try:
            saved = self._chat.save_message(channel_type, channel_id, user.id, text)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to persist message on %s/%s", channel_type, channel_id, exc_info=True
            )
            saved = self._fail(
                op, ErrorKind.INVALID_STATE, f"Message could not be saved: {exc}", "PERSIST_FAILED"
            )
        if not saved.ok:
            self._send_error(session_id, saved, "Failed to send message")
            return saved.model_copy(update={"op": op})

        topic = channel_topic(channel_type, channel_id)
        delivered = self._transport.publish(topic, self._message_payload(saved.data))
        return ServiceResult(
            ok=True,
            op=op,
            data={"message": saved.data, "topic": topic, "delivered": delivered},
        )
