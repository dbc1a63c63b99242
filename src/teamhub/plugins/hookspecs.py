"""Pluggy hook specifications for teamhub domain events.

Every hook fires after the mutation that caused it has committed. Hook
implementations receive ids, not snapshots, and load whatever state they
need themselves.
"""

from __future__ import annotations

import pluggy

PROJECT_NAME = "teamhub"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class TeamhubHookSpec:
    """Hook specifications for the teamhub plugin system."""

    @hookspec
    def post_project_create(self, project_id: int, actor_id: int) -> None:
        """Called after a project is created."""

    @hookspec
    def post_project_member_add(self, project_id: int, user_id: int, actor_id: int) -> None:
        """Called after a user is added to a project."""

    @hookspec
    def post_task_create(self, task_id: int, actor_id: int) -> None:
        """Called after a task is created."""

    @hookspec
    def post_task_update(
        self,
        task_id: int,
        actor_id: int,
        old_status: str,
        new_status: str,
        added_assignee_ids: list[int],
        fields_changed: list[str],
    ) -> None:
        """Called after a task is updated."""

    @hookspec
    def task_due_soon(self, task_id: int) -> None:
        """Called by the due-date scan for each open task nearing its due date."""
