"""TaskService — the task assignment registry.

Permission rules:

- create, status-only update: project access.
- any other update, delete: task management (owner, team manager/leader).
- get: task access (assignee or task manager).
- list, search, overdue: project access, with the listing rule applied;
  callers without task management only ever see tasks assigned to them.
- list_assigned: any registered user; only their own assignments.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, delete, func, insert, or_, select, update

from teamhub.domain.models import Project, Task, Team
from teamhub.domain.permissions import (
    can_access_task,
    can_manage_tasks,
    can_update_task,
    effective_assignee_filter,
    has_project_access,
)
from teamhub.domain.types import ErrorKind, TaskPriority, TaskStatus
from teamhub.infrastructure.database.schema import (
    tags,
    task_assignees,
    task_tags,
    tasks,
    users,
)
from teamhub.infrastructure.store import StoreTransaction
from teamhub.services._helpers import iso_after, normalize_due_date, now_iso, paginate
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class _InputError(Exception):
    """Raised while resolving task input; carries the failed result."""

    def __init__(self, result: ServiceResult) -> None:
        super().__init__(result.error.message if result.error else "")
        self.result = result


def is_overdue(task: Task, now: str | None = None) -> bool:
    if task.due_date is None or task.status == TaskStatus.DONE:
        return False
    return task.due_date < (now or now_iso())


def task_data(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "project_id": task.project_id,
        "title": task.title,
        "description": task.description,
        "status": str(task.status),
        "priority": str(task.priority),
        "due_date": task.due_date,
        "created_by": task.created_by,
        "assignee_ids": sorted(task.assignee_ids),
        "tag_ids": sorted(task.tag_ids),
        "overdue": is_overdue(task),
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


class TaskService(BaseService):
    """Create, edit, list, and remove tasks inside projects."""

    # ------------------------------------------------------------------
    # Input resolution
    # ------------------------------------------------------------------

    def _parse_fields(
        self,
        op: str,
        *,
        status: str | None,
        priority: str | None,
        due_date: str | None,
    ) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if status is not None:
            try:
                values["status"] = str(TaskStatus(status))
            except ValueError:
                raise _InputError(
                    self._fail(
                        op, ErrorKind.INVALID_STATE, f"Unknown status: {status}", "INVALID_STATUS"
                    )
                ) from None
        if priority is not None:
            try:
                values["priority"] = str(TaskPriority(priority))
            except ValueError:
                raise _InputError(
                    self._fail(
                        op,
                        ErrorKind.INVALID_STATE,
                        f"Unknown priority: {priority}",
                        "INVALID_PRIORITY",
                    )
                ) from None
        if due_date is not None:
            try:
                values["due_date"] = normalize_due_date(due_date)
            except ValueError:
                raise _InputError(
                    self._fail(
                        op,
                        ErrorKind.INVALID_STATE,
                        f"Invalid due date: {due_date}",
                        "INVALID_DUE_DATE",
                    )
                ) from None
        return values

    def _resolve_assignees(
        self, op: str, txn: StoreTransaction, assignee_ids: Iterable[int]
    ) -> set[int]:
        ids = set(assignee_ids)
        if not ids:
            return ids
        found = {
            int(r.id)
            for r in txn.conn.execute(select(users.c.id).where(users.c.id.in_(ids))).fetchall()
        }
        missing = sorted(ids - found)
        if missing:
            raise _InputError(self._not_found(op, "user", missing[0]))
        return ids

    def _resolve_tags(
        self, op: str, txn: StoreTransaction, project_id: int, tag_ids: Iterable[int]
    ) -> set[int]:
        """Every tag must exist; tags of other projects are dropped."""
        ids = set(tag_ids)
        if not ids:
            return ids
        rows = txn.conn.execute(
            select(tags.c.id, tags.c.project_id).where(tags.c.id.in_(ids))
        ).fetchall()
        missing = sorted(ids - {int(r.id) for r in rows})
        if missing:
            raise _InputError(self._not_found(op, "tag", missing[0]))
        return {int(r.id) for r in rows if r.project_id == project_id}

    @staticmethod
    def _replace_links(
        txn: StoreTransaction, table: Any, column: str, task_id: int, ids: set[int]
    ) -> None:
        txn.conn.execute(delete(table).where(table.c.task_id == task_id))
        for linked_id in sorted(ids):
            txn.conn.execute(insert(table).values(task_id=task_id, **{column: linked_id}))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @traced
    def create(
        self,
        project_id: int,
        acting_id: int,
        title: str,
        *,
        description: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        due_date: str | None = None,
        assignee_ids: Iterable[int] = (),
        tag_ids: Iterable[int] = (),
    ) -> ServiceResult:
        op = "create_task"
        warnings: list[str] = []

        try:
            values = self._parse_fields(op, status=status, priority=priority, due_date=due_date)
            with self._store.transaction() as txn:
                project, team = txn.load_project_context(project_id)
                if project is None:
                    return self._not_found(op, "project", project_id)
                if not has_project_access(project, team, acting_id):
                    return self._forbidden(
                        op, "You are not a member of this project", "NO_ACCESS"
                    )
                assignees = self._resolve_assignees(op, txn, assignee_ids)
                tag_set = self._resolve_tags(op, txn, project_id, tag_ids)

                now = now_iso()
                row = txn.conn.execute(
                    insert(tasks).values(
                        project_id=project_id,
                        title=title,
                        description=description,
                        status=values.get("status", str(TaskStatus.TODO)),
                        priority=values.get("priority", str(TaskPriority.MEDIUM)),
                        due_date=values.get("due_date"),
                        created_by=acting_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                task_id = int(row.inserted_primary_key[0])
                self._replace_links(txn, task_assignees, "user_id", task_id, assignees)
                self._replace_links(txn, task_tags, "tag_id", task_id, tag_set)
                task = txn.load_task(task_id)
        except _InputError as exc:
            return exc.result

        assert task is not None
        logger.info("Created task %s '%s' in project %s", task_id, title, project_id)

        self._dispatch_event(
            "post_task_create",
            {"task_id": task_id, "actor_id": acting_id},
            warnings,
        )
        return ServiceResult(ok=True, op=op, data=task_data(task), warnings=warnings)

    @traced
    def update(
        self,
        task_id: int,
        acting_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        due_date: str | None = None,
        assignee_ids: Iterable[int] | None = None,
        tag_ids: Iterable[int] | None = None,
    ) -> ServiceResult:
        """Update a task. ``None`` leaves a field untouched.

        A change carrying only ``status`` is allowed to anyone with
        project access; anything else needs task management.
        """
        op = "update_task"
        warnings: list[str] = []
        others = (title, description, priority, due_date, assignee_ids, tag_ids)
        status_only = status is not None and all(v is None for v in others)

        try:
            values = self._parse_fields(op, status=status, priority=priority, due_date=due_date)
            with self._store.transaction() as txn:
                task = txn.load_task(task_id)
                if task is None:
                    return self._not_found(op, "task", task_id)
                project, team = txn.load_project_context(task.project_id)
                assert project is not None
                if not has_project_access(project, team, acting_id):
                    return self._forbidden(
                        op, "You are not a member of this project", "NO_ACCESS"
                    )
                if not can_update_task(project, team, acting_id, status_only=status_only):
                    return self._forbidden(
                        op,
                        "Only the project owner or team leaders can edit task details",
                        "NOT_PERMITTED",
                    )

                if title is not None:
                    values["title"] = title
                if description is not None:
                    values["description"] = description
                values["updated_at"] = now_iso()
                txn.conn.execute(update(tasks).where(tasks.c.id == task_id).values(**values))

                added: set[int] = set()
                if assignee_ids is not None:
                    new_assignees = self._resolve_assignees(op, txn, assignee_ids)
                    added = new_assignees - task.assignee_ids
                    self._replace_links(txn, task_assignees, "user_id", task_id, new_assignees)
                if tag_ids is not None:
                    tag_set = self._resolve_tags(op, txn, task.project_id, tag_ids)
                    self._replace_links(txn, task_tags, "tag_id", task_id, tag_set)
                updated = txn.load_task(task_id)
        except _InputError as exc:
            return exc.result

        assert updated is not None
        fields_changed = sorted(k for k in values if k != "updated_at")
        if assignee_ids is not None:
            fields_changed.append("assignee_ids")
        if tag_ids is not None:
            fields_changed.append("tag_ids")
        logger.info("Updated task %s: %s", task_id, ", ".join(fields_changed) or "no fields")

        self._dispatch_event(
            "post_task_update",
            {
                "task_id": task_id,
                "actor_id": acting_id,
                "old_status": str(task.status),
                "new_status": str(updated.status),
                "added_assignee_ids": sorted(added),
                "fields_changed": fields_changed,
            },
            warnings,
        )
        return ServiceResult(ok=True, op=op, data=task_data(updated), warnings=warnings)

    @traced
    def delete(self, task_id: int, acting_id: int) -> ServiceResult:
        """Delete a task with its comments. Task management only."""
        op = "delete_task"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            if task is None:
                return self._not_found(op, "task", task_id)
            project, team = txn.load_project_context(task.project_id)
            assert project is not None
            if not can_manage_tasks(project, team, acting_id):
                return self._forbidden(
                    op, "Only the project owner or team leaders can delete tasks", "NOT_PERMITTED"
                )
            txn.delete_tasks([task_id])

        logger.info("Deleted task %s by %s", task_id, acting_id)
        return ServiceResult(ok=True, op=op, data={"id": task_id, "project_id": task.project_id})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @traced
    def get(self, task_id: int, acting_id: int) -> ServiceResult:
        op = "get_task"
        with self._store.transaction() as txn:
            task = txn.load_task(task_id)
            if task is None:
                return self._not_found(op, "task", task_id)
            project, team = txn.load_project_context(task.project_id)
        assert project is not None
        if not can_access_task(task, project, team, acting_id):
            return self._forbidden(op, "You do not have access to this task", "NO_ACCESS")
        return ServiceResult(ok=True, op=op, data=task_data(task))

    def _listing_context(
        self, op: str, txn: StoreTransaction, project_id: int, acting_id: int
    ) -> tuple[Project, Team | None]:
        project, team = txn.load_project_context(project_id)
        if project is None:
            raise _InputError(self._not_found(op, "project", project_id))
        if not has_project_access(project, team, acting_id):
            raise _InputError(
                self._forbidden(op, "You are not a member of this project", "NO_ACCESS")
            )
        return project, team

    def _page(
        self,
        op: str,
        txn: StoreTransaction,
        conditions: list[ColumnElement[bool]],
        *,
        page: int,
        size: int | None,
        effective_assignee_id: int | None,
    ) -> ServiceResult:
        size = size or self._store.settings.tasks.page_size
        offset, limit = paginate(page, size)
        if effective_assignee_id is not None:
            conditions.append(
                tasks.c.id.in_(
                    select(task_assignees.c.task_id).where(
                        task_assignees.c.user_id == effective_assignee_id
                    )
                )
            )
        with trace_span("task_query"):
            total = txn.conn.execute(
                select(func.count()).select_from(tasks).where(*conditions)
            ).scalar_one()
            rows = txn.conn.execute(
                select(tasks.c.id)
                .where(*conditions)
                .order_by(tasks.c.id)
                .offset(offset)
                .limit(limit)
            ).fetchall()
            loaded = [txn.load_task(int(r.id)) for r in rows]

        items = [task_data(t) for t in loaded if t is not None]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "items": items,
                "count": len(items),
                "total": int(total),
                "page": max(page, 0),
                "size": limit,
                "effective_assignee_id": effective_assignee_id,
            },
        )

    @traced
    def list_tasks(
        self,
        project_id: int,
        acting_id: int,
        *,
        status: str | None = None,
        assignee_id: int | None = None,
        tag_id: int | None = None,
        priority: str | None = None,
        due_from: str | None = None,
        due_to: str | None = None,
        page: int = 0,
        size: int | None = None,
    ) -> ServiceResult:
        """List a project's tasks with filters, under the listing rule."""
        op = "list_tasks"
        try:
            values = self._parse_fields(op, status=status, priority=priority, due_date=None)
            bounds = {
                k: normalize_due_date(v) if v else None
                for k, v in (("from", due_from), ("to", due_to))
            }
        except _InputError as exc:
            return exc.result
        except ValueError:
            return self._fail(
                op, ErrorKind.INVALID_STATE, "Invalid due date range", "INVALID_DUE_DATE"
            )

        try:
            with self._store.transaction() as txn:
                project, team = self._listing_context(op, txn, project_id, acting_id)
                effective = effective_assignee_filter(project, team, acting_id, assignee_id)

                conditions: list[ColumnElement[bool]] = [tasks.c.project_id == project_id]
                if "status" in values:
                    conditions.append(tasks.c.status == values["status"])
                if "priority" in values:
                    conditions.append(tasks.c.priority == values["priority"])
                if tag_id is not None:
                    conditions.append(
                        tasks.c.id.in_(
                            select(task_tags.c.task_id).where(task_tags.c.tag_id == tag_id)
                        )
                    )
                if bounds["from"] is not None:
                    conditions.append(tasks.c.due_date >= bounds["from"])
                if bounds["to"] is not None:
                    conditions.append(tasks.c.due_date <= bounds["to"])

                return self._page(
                    op, txn, conditions, page=page, size=size, effective_assignee_id=effective
                )
        except _InputError as exc:
            return exc.result

    @traced
    def search(
        self,
        project_id: int,
        acting_id: int,
        text: str,
        *,
        page: int = 0,
        size: int | None = None,
    ) -> ServiceResult:
        """Case-insensitive substring search over title and description."""
        op = "search_tasks"
        try:
            with self._store.transaction() as txn:
                project, team = self._listing_context(op, txn, project_id, acting_id)
                effective = effective_assignee_filter(project, team, acting_id, None)
                conditions: list[ColumnElement[bool]] = [tasks.c.project_id == project_id]
                if text:
                    pattern = f"%{text.lower()}%"
                    conditions.append(
                        or_(
                            func.lower(tasks.c.title).like(pattern),
                            func.lower(tasks.c.description).like(pattern),
                        )
                    )
                return self._page(
                    op, txn, conditions, page=page, size=size, effective_assignee_id=effective
                )
        except _InputError as exc:
            return exc.result

    @traced
    def overdue(
        self,
        project_id: int,
        acting_id: int,
        *,
        page: int = 0,
        size: int | None = None,
    ) -> ServiceResult:
        """Tasks past their due date and not DONE."""
        op = "overdue_tasks"
        try:
            with self._store.transaction() as txn:
                project, team = self._listing_context(op, txn, project_id, acting_id)
                effective = effective_assignee_filter(project, team, acting_id, None)
                conditions: list[ColumnElement[bool]] = [
                    tasks.c.project_id == project_id,
                    tasks.c.due_date.is_not(None),
                    tasks.c.due_date < now_iso(),
                    tasks.c.status != str(TaskStatus.DONE),
                ]
                return self._page(
                    op, txn, conditions, page=page, size=size, effective_assignee_id=effective
                )
        except _InputError as exc:
            return exc.result

    @traced
    def list_assigned(
        self,
        acting_id: int,
        *,
        status: str | None = None,
        page: int = 0,
        size: int | None = None,
    ) -> ServiceResult:
        """Tasks assigned to the caller, across every project."""
        op = "list_assigned_tasks"
        try:
            values = self._parse_fields(op, status=status, priority=None, due_date=None)
        except _InputError as exc:
            return exc.result

        with self._store.transaction() as txn:
            if txn.load_user(acting_id) is None:
                return self._not_found(op, "user", acting_id)
            conditions: list[ColumnElement[bool]] = []
            if "status" in values:
                conditions.append(tasks.c.status == values["status"])
            return self._page(
                op, txn, conditions, page=page, size=size, effective_assignee_id=acting_id
            )

    @traced
    def statistics(self, project_id: int, acting_id: int) -> ServiceResult:
        """Project-wide counts by status, plus overdue."""
        op = "task_statistics"
        try:
            with self._store.transaction() as txn:
                self._listing_context(op, txn, project_id, acting_id)
                rows = txn.conn.execute(
                    select(tasks.c.status, func.count())
                    .where(tasks.c.project_id == project_id)
                    .group_by(tasks.c.status)
                ).fetchall()
                overdue = txn.conn.execute(
                    select(func.count())
                    .select_from(tasks)
                    .where(
                        tasks.c.project_id == project_id,
                        tasks.c.due_date.is_not(None),
                        tasks.c.due_date < now_iso(),
                        tasks.c.status != str(TaskStatus.DONE),
                    )
                ).scalar_one()
        except _InputError as exc:
            return exc.result

        by_status = {str(s).lower(): 0 for s in TaskStatus}
        for status, count in rows:
            by_status[str(status).lower()] = int(count)
        return ServiceResult(
            ok=True,
            op=op,
            data={"total": sum(by_status.values()), **by_status, "overdue": int(overdue)},
        )

    @traced
    def notify_due_soon(self, hours: float | None = None) -> ServiceResult:
        """Emit a due-soon event for every open task due within *hours*.

        Meant to be driven by an external scheduler. Each call fires
        again for every matching task; there is no memory of earlier runs.
        """
        op = "notify_due_soon"
        warnings: list[str] = []
        window = hours if hours is not None else self._store.settings.notifications.due_soon_hours
        now = datetime.now(UTC).isoformat()

        with self._store.transaction() as txn:
            rows = txn.conn.execute(
                select(tasks.c.id)
                .where(
                    tasks.c.due_date.is_not(None),
                    tasks.c.due_date >= now,
                    tasks.c.due_date <= iso_after(window),
                    tasks.c.status != str(TaskStatus.DONE),
                )
                .order_by(tasks.c.due_date)
            ).fetchall()
        task_ids = [int(r.id) for r in rows]

        for task_id in task_ids:
            self._dispatch_event("task_due_soon", {"task_id": task_id}, warnings)

        logger.info("Due-soon scan: %d tasks within %sh", len(task_ids), window)
        return ServiceResult(
            ok=True,
            op=op,
            data={"task_ids": task_ids, "count": len(task_ids), "hours": window},
            warnings=warnings,
        )
