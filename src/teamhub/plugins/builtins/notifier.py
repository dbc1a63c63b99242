"""Built-in notifier plugin: domain events -> notification records.

Each hook delegates to :class:`NotificationService`, which loads a fresh
snapshot, plans recipients with :mod:`teamhub.domain.fanout`, and writes
one record per recipient. The hooks run after the triggering mutation has
committed, so nothing here can roll it back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from teamhub.plugins.hookspecs import hookimpl
from teamhub.services.notifications import NotificationService

if TYPE_CHECKING:
    from teamhub.infrastructure.store import Store
    from teamhub.services.result import ServiceResult

logger = logging.getLogger(__name__)


class NotifierPlugin:
    """Fan project and task events out to the users who must hear about them."""

    def __init__(self, store: Store) -> None:
        self._service = NotificationService(store)

    @staticmethod
    def _report(result: ServiceResult) -> None:
        if not result.ok and result.error is not None:
            # The entity may be gone by the time an async hook runs.
            logger.warning("%s skipped: %s", result.op, result.error.message)

    @hookimpl
    def post_project_create(self, project_id: int, actor_id: int) -> None:
        self._report(self._service.notify_project_created(project_id, actor_id))

    @hookimpl
    def post_project_member_add(self, project_id: int, user_id: int, actor_id: int) -> None:
        self._report(self._service.notify_member_added(project_id, user_id, actor_id))

    @hookimpl
    def post_task_create(self, task_id: int, actor_id: int) -> None:
        self._report(self._service.notify_task_created(task_id, actor_id))

    @hookimpl
    def post_task_update(
        self,
        task_id: int,
        actor_id: int,
        old_status: str,
        new_status: str,
        added_assignee_ids: list[int],
        fields_changed: list[str],
    ) -> None:
        """Status changes and newly added assignees each notify separately."""
        if old_status != new_status:
            self._report(
                self._service.notify_task_status_changed(task_id, old_status, new_status, actor_id)
            )
        if added_assignee_ids:
            self._report(
                self._service.notify_task_assigned(task_id, added_assignee_ids, actor_id)
            )

    @hookimpl
    def task_due_soon(self, task_id: int) -> None:
        self._report(self._service.notify_task_due_soon(task_id))
