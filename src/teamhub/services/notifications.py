"""NotificationService — the notification fan-out engine and inbox.

The ``notify_*`` methods load a fresh snapshot of the entities an event
concerns, ask :mod:`teamhub.domain.fanout` who must be told, and persist
one record per recipient. They are invoked after the triggering mutation
has committed (by the built-in notifier plugin), so a failure here never
undoes that mutation.

Repeated calls for the same event write duplicate records; callers must
fire each event once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import func, insert, select, update

from teamhub.domain import fanout
from teamhub.domain.fanout import NotificationDraft
from teamhub.domain.types import TaskStatus
from teamhub.infrastructure.database.schema import notifications
from teamhub.services._helpers import now_iso, paginate
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def _notification_data(row: Any) -> dict[str, Any]:
    return {
        "id": row.id,
        "recipient_id": row.recipient_id,
        "type": row.type,
        "title": row.title,
        "message": row.message,
        "reference_id": row.reference_id,
        "reference_type": row.reference_type,
        "secondary_reference_id": row.secondary_reference_id,
        "read": bool(row.read),
        "created_at": row.created_at,
    }


class NotificationService(BaseService):
    """Fan events out to recipients and serve each user's inbox."""

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def persist(self, op: str, drafts: Sequence[NotificationDraft]) -> ServiceResult:
        """Write one notification row per draft."""
        if drafts:
            created_at = now_iso()
            with self._store.transaction() as txn:
                txn.conn.execute(
                    insert(notifications),
                    [
                        {**d.model_dump(mode="json"), "read": 0, "created_at": created_at}
                        for d in drafts
                    ],
                )
        recipients = [d.recipient_id for d in drafts]
        logger.debug("%s: notified %s", op, recipients)
        return ServiceResult(
            ok=True,
            op=op,
            data={"count": len(drafts), "recipient_ids": recipients},
        )

    @traced
    def notify_project_created(self, project_id: int, actor_id: int) -> ServiceResult:
        op = "notify_project_created"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
        if project is None:
            return self._not_found(op, "project", project_id)
        return self.persist(op, fanout.plan_project_created(project, team, actor_id))

    @traced
    def notify_member_added(self, project_id: int, user_id: int, actor_id: int) -> ServiceResult:
        op = "notify_member_added"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
            added = txn.load_user(user_id)
        if project is None:
            return self._not_found(op, "project", project_id)
        if added is None:
            return self._not_found(op, "user", user_id)
        return self.persist(op, fanout.plan_member_added(project, team, added, actor_id))

    @traced
    def notify_task_created(self, task_id: int, actor_id: int) -> ServiceResult:
        op = "notify_task_created"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            project, team = (
                txn.load_project_context(task.project_id) if task is not None else (None, None)
            )
        if task is None or project is None:
            return self._not_found(op, "task", task_id)
        return self.persist(op, fanout.plan_task_created(task, project, team, actor_id))

    @traced
    def notify_task_status_changed(
        self,
        task_id: int,
        old_status: TaskStatus | str,
        new_status: TaskStatus | str,
        actor_id: int,
    ) -> ServiceResult:
        op = "notify_task_status_changed"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            project, team = (
                txn.load_project_context(task.project_id) if task is not None else (None, None)
            )
        if task is None or project is None:
            return self._not_found(op, "task", task_id)
        drafts = fanout.plan_task_status_changed(
            task, project, team, str(old_status), str(new_status), actor_id
        )
        return self.persist(op, drafts)

    @traced
    def notify_task_assigned(
        self, task_id: int, new_assignee_ids: Iterable[int], actor_id: int
    ) -> ServiceResult:
        op = "notify_task_assigned"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            project = txn.load_project(task.project_id) if task is not None else None
        if task is None or project is None:
            return self._not_found(op, "task", task_id)
        return self.persist(
            op, fanout.plan_task_assigned(task, project, set(new_assignee_ids), actor_id)
        )

    @traced
    def notify_task_due_soon(self, task_id: int) -> ServiceResult:
        op = "notify_task_due_soon"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            project = txn.load_project(task.project_id) if task is not None else None
        if task is None or project is None:
            return self._not_found(op, "task", task_id)
        return self.persist(op, fanout.plan_task_due_soon(task, project))

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    @traced
    def list_for_user(
        self,
        user_id: int,
        *,
        page: int = 0,
        size: int | None = None,
        unread_only: bool = False,
    ) -> ServiceResult:
        """A page of the user's notifications, newest first."""
        op = "list_notifications"
        offset, limit = paginate(page, size or self._store.settings.notifications.page_size)
        conditions = [notifications.c.recipient_id == user_id]
        if unread_only:
            conditions.append(notifications.c.read == 0)

        with self._store.transaction() as txn:
            total = txn.conn.execute(
                select(func.count()).select_from(notifications).where(*conditions)
            ).scalar_one()
            rows = txn.conn.execute(
                select(notifications)
                .where(*conditions)
                .order_by(notifications.c.created_at.desc(), notifications.c.id.desc())
                .offset(offset)
                .limit(limit)
            ).fetchall()

        items = [_notification_data(r) for r in rows]
        return ServiceResult(
            ok=True,
            op=op,
            data={"items": items, "count": len(items), "total": int(total), "page": max(page, 0)},
        )

    @traced
    def unread(self, user_id: int) -> ServiceResult:
        op = "unread_notifications"
        with self._store.transaction() as txn:
            rows = txn.conn.execute(
                select(notifications)
                .where(notifications.c.recipient_id == user_id, notifications.c.read == 0)
                .order_by(notifications.c.created_at.desc(), notifications.c.id.desc())
            ).fetchall()
        items = [_notification_data(r) for r in rows]
        return ServiceResult(ok=True, op=op, data={"items": items, "count": len(items)})

    def unread_count(self, user_id: int) -> int:
        with self._store.transaction() as txn:
            return int(
                txn.conn.execute(
                    select(func.count())
                    .select_from(notifications)
                    .where(notifications.c.recipient_id == user_id, notifications.c.read == 0)
                ).scalar_one()
            )

    @traced
    def recent(self, user_id: int, limit: int | None = None) -> ServiceResult:
        op = "recent_notifications"
        limit = limit or self._store.settings.notifications.recent_limit
        with self._store.transaction() as txn:
            rows = txn.conn.execute(
                select(notifications)
                .where(notifications.c.recipient_id == user_id)
                .order_by(notifications.c.created_at.desc(), notifications.c.id.desc())
                .limit(limit)
            ).fetchall()
        items = [_notification_data(r) for r in rows]
        return ServiceResult(ok=True, op=op, data={"items": items, "count": len(items)})

    @traced
    def mark_read(self, notification_id: int, user_id: int) -> ServiceResult:
        """Mark one notification read. Other users' notifications look missing."""
        op = "mark_read"
        with self._store.transaction() as txn:
            result = txn.conn.execute(
                update(notifications)
                .where(
                    notifications.c.id == notification_id,
                    notifications.c.recipient_id == user_id,
                )
                .values(read=1)
            )
        if result.rowcount == 0:
            return self._not_found(op, "notification", notification_id)
        return ServiceResult(ok=True, op=op, data={"id": notification_id, "read": True})

    @traced
    def mark_all_read(self, user_id: int) -> ServiceResult:
        op = "mark_all_read"
        with self._store.transaction() as txn:
            result = txn.conn.execute(
                update(notifications)
                .where(notifications.c.recipient_id == user_id, notifications.c.read == 0)
                .values(read=1)
            )
        return ServiceResult(ok=True, op=op, data={"updated": int(result.rowcount or 0)})
