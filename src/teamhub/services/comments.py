"""CommentService — threaded discussion on tasks.

Anyone with access to the task's project may comment. Replies point at a
parent comment on the same task.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, insert, select

from teamhub.domain.permissions import has_project_access
from teamhub.infrastructure.database.schema import comments
from teamhub.infrastructure.store import StoreTransaction
from teamhub.services._helpers import now_iso
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def _comment_data(row: Any) -> dict[str, Any]:
    return {
        "id": row.id,
        "task_id": row.task_id,
        "author_id": row.author_id,
        "parent_id": row.parent_id,
        "text": row.text,
        "created_at": row.created_at,
    }


class CommentService(BaseService):
    """Add, list, and count task comments."""

    def _check_access(
        self, op: str, txn: StoreTransaction, task_id: int, acting_id: int
    ) -> ServiceResult | None:
        task = txn.load_task(task_id)
        if task is None:
            return self._not_found(op, "task", task_id)
        project, team = txn.load_project_context(task.project_id)
        if project is None or not has_project_access(project, team, acting_id):
            return self._forbidden(
                op, "You must be a project member to comment on tasks", "NO_ACCESS"
            )
        return None

    @traced
    def add(
        self,
        task_id: int,
        acting_id: int,
        text: str,
        parent_id: int | None = None,
    ) -> ServiceResult:
        op = "add_comment"
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, task_id, acting_id)
            if denied is not None:
                return denied
            if parent_id is not None:
                parent = txn.conn.execute(
                    select(comments.c.id).where(
                        comments.c.id == parent_id, comments.c.task_id == task_id
                    )
                ).first()
                if parent is None:
                    return self._not_found(op, "parent comment", parent_id)

            row = txn.conn.execute(
                insert(comments).values(
                    task_id=task_id,
                    author_id=acting_id,
                    parent_id=parent_id,
                    text=text,
                    created_at=now_iso(),
                )
            )
            comment_id = int(row.inserted_primary_key[0])
            saved = txn.conn.execute(select(comments).where(comments.c.id == comment_id)).one()

        logger.info("User %s commented on task %s", acting_id, task_id)
        return ServiceResult(ok=True, op=op, data=_comment_data(saved))

    @traced
    def list_comments(
        self,
        task_id: int,
        acting_id: int,
        *,
        limit: int = 20,
        before: str | None = None,
    ) -> ServiceResult:
        """Newest first. *before* is a ``created_at`` cursor."""
        op = "list_comments"
        with self._store.transaction() as txn:
            denied = self._check_access(op, txn, task_id, acting_id)
            if denied is not None:
                return denied
            query = select(comments).where(comments.c.task_id == task_id)
            if before is not None:
                query = query.where(comments.c.created_at < before)
            rows = txn.conn.execute(
                query.order_by(comments.c.created_at.desc(), comments.c.id.desc()).limit(
                    max(limit, 1)
                )
            ).fetchall()

        items = [_comment_data(r) for r in rows]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    @traced
    def replies(self, comment_id: int, acting_id: int) -> ServiceResult:
        """Replies to a comment, oldest first."""
        op = "comment_replies"
        with self._store.transaction() as txn:
            parent = txn.conn.execute(select(comments).where(comments.c.id == comment_id)).first()
            if parent is None:
                return self._not_found(op, "comment", comment_id)
            denied = self._check_access(op, txn, parent.task_id, acting_id)
            if denied is not None:
                return denied
            rows = txn.conn.execute(
                select(comments)
                .where(comments.c.parent_id == comment_id)
                .order_by(comments.c.created_at, comments.c.id)
            ).fetchall()

        items = [_comment_data(r) for r in rows]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    def count(self, task_id: int) -> int:
        with self._store.transaction() as txn:
            return int(
                txn.conn.execute(
                    select(func.count()).select_from(comments).where(comments.c.task_id == task_id)
                ).scalar_one()
            )
