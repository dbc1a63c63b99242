"""ChatService — channel access and message persistence.

A channel is ``(channel_type, channel_id)`` with type one of ``team``,
``project`` or ``task``. Access follows the same rules as the rest of
the core:

- team: the manager or a roster member.
- project: project access.
- task: task access, falling back to access on the task's project.
- anything else: rejected.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, insert, select

from teamhub.domain.permissions import (
    can_access_task_channel,
    has_project_access,
    is_team_member,
)
from teamhub.domain.types import ChannelType
from teamhub.infrastructure.database.schema import messages, users
from teamhub.infrastructure.store import StoreTransaction
from teamhub.services._helpers import now_iso, paginate
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def _message_query() -> Any:
    return select(
        messages.c.id,
        messages.c.channel_type,
        messages.c.channel_id,
        messages.c.sender_id,
        users.c.email.label("sender_email"),
        messages.c.content,
        messages.c.created_at,
    ).select_from(messages.outerjoin(users, users.c.id == messages.c.sender_id))


def _message_data(row: Any) -> dict[str, Any]:
    return {
        "id": row.id,
        "channel_type": row.channel_type,
        "channel_id": row.channel_id,
        "sender_id": row.sender_id,
        "sender_email": row.sender_email,
        "content": row.content,
        "created_at": row.created_at,
    }


class ChatService(BaseService):
    """Guard channel access and read/write channel messages."""

    def _check_access(
        self, op: str, txn: StoreTransaction, channel_type: str, channel_id: int, user_id: int
    ) -> ServiceResult | None:
        """Return a failed result if *user_id* may not use the channel."""
        try:
            kind = ChannelType(channel_type)
        except ValueError:
            return self._forbidden(op, f"Invalid channel type: {channel_type}", "INVALID_CHANNEL")

        allowed = False
        if kind == ChannelType.TEAM:
            team = txn.load_team(channel_id)
            if team is None:
                return self._not_found(op, "team", channel_id)
            allowed = is_team_member(team, user_id)
        elif kind == ChannelType.PROJECT:
            project, team = txn.load_project_context(channel_id)
            if project is None:
                return self._not_found(op, "project", channel_id)
            allowed = has_project_access(project, team, user_id)
        else:
            task = txn.load_task(channel_id)
            if task is None:
                return self._not_found(op, "task", channel_id)
            project, team = txn.load_project_context(task.project_id)
            allowed = project is not None and can_access_task_channel(task, project, team, user_id)

        if not allowed:
            logger.warning(
                "User %s denied access to %s channel %s", user_id, channel_type, channel_id
            )
            return self._forbidden(
                op, f"You do not have access to this {channel_type} channel", "NO_CHANNEL_ACCESS"
            )
        return None

    @traced
    def verify_channel_access(
        self, channel_type: str, channel_id: int, user_id: int
    ) -> ServiceResult:
        op = "verify_channel_access"
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, channel_type, channel_id, user_id)
        if denied is not None:
            return denied
        return ServiceResult(
            ok=True,
            op=op,
            data={"channel_type": channel_type, "channel_id": channel_id, "user_id": user_id},
        )

    @traced
    def history(
        self,
        channel_type: str,
        channel_id: int,
        user_id: int,
        *,
        page: int = 0,
        size: int | None = None,
    ) -> ServiceResult:
        """A page of channel messages, newest first."""
        op = "chat_history"
        offset, limit = paginate(page, size or self._store.settings.chat.history_limit)
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, channel_type, channel_id, user_id)
            if denied is not None:
                return denied
            where = (messages.c.channel_type == channel_type, messages.c.channel_id == channel_id)
            total = txn.conn.execute(
                select(func.count()).select_from(messages).where(*where)
            ).scalar_one()
            rows = txn.conn.execute(
                _message_query()
                .where(*where)
                .order_by(messages.c.created_at.desc(), messages.c.id.desc())
                .offset(offset)
                .limit(limit)
            ).fetchall()

        items = [_message_data(r) for r in rows]
        return ServiceResult(
            ok=True,
            op=op,
            data={"items": items, "count": len(items), "total": int(total), "page": max(page, 0)},
        )

    @traced
    def recent_messages(self, channel_type: str, channel_id: int, user_id: int) -> ServiceResult:
        """The last ``chat.history_limit`` messages, oldest first."""
        op = "recent_messages"
        limit = self._store.settings.chat.history_limit
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, channel_type, channel_id, user_id)
            if denied is not None:
                return denied
            rows = txn.conn.execute(
                _message_query()
                .where(messages.c.channel_type == channel_type, messages.c.channel_id == channel_id)
                .order_by(messages.c.created_at.desc(), messages.c.id.desc())
                .limit(limit)
            ).fetchall()

        items = [_message_data(r) for r in reversed(rows)]
        return ServiceResult(ok=True, op=op, data={"items": items, "count": len(items)})

    @traced
    def save_message(
        self, channel_type: str, channel_id: int, user_id: int, content: str
    ) -> ServiceResult:
        """Persist a message after re-checking access."""
        op = "save_message"
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, channel_type, channel_id, user_id)
            if denied is not None:
                return denied
            row = txn.conn.execute(
                insert(messages).values(
                    channel_type=channel_type,
                    channel_id=channel_id,
                    sender_id=user_id,
                    content=content,
                    created_at=now_iso(),
                )
            )
            message_id = int(row.inserted_primary_key[0])
            saved = txn.conn.execute(
                _message_query().where(messages.c.id == message_id)
            ).one()

        logger.debug("Saved message %s on %s/%s", message_id, channel_type, channel_id)
        return ServiceResult(ok=True, op=op, data=_message_data(saved))
