"""Command group: tasks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.commands._base import TeamhubGroup
from teamhub.domain.types import TaskPriority, TaskStatus
from teamhub.services.tasks import TaskService

if TYPE_CHECKING:
    from teamhub.commands._context import AppContext

_TASK_EXAMPLES = """\
  teamhub --as 1 task create 7 "Draft invoice schema" --assignee 2 --due 2026-11-01
  teamhub --as 2 task update 12 --status IN_PROGRESS
  teamhub --as 1 task update 12 --priority HIGH --assignee 2 --assignee 4
  teamhub --as 2 task list 7 --status TODO
  teamhub --as 2 task mine --status IN_PROGRESS
  teamhub --as 1 task search 7 invoice
  teamhub --as 1 task stats 7
  teamhub task remind-due --hours 12"""

_STATUS = click.Choice([s.value for s in TaskStatus])
_PRIORITY = click.Choice([p.value for p in TaskPriority])


@click.group(cls=TeamhubGroup, examples=_TASK_EXAMPLES)
def task() -> None:
    """Create, update, and list tasks."""


@task.command()
@click.argument("project_id", type=int)
@click.argument("title")
@click.option("--description", default=None)
@click.option("--status", type=_STATUS, default=None, help="Defaults to TODO.")
@click.option("--priority", type=_PRIORITY, default=None, help="Defaults to MEDIUM.")
@click.option("--due", "due_date", default=None, help="Due date (ISO date or datetime).")
@click.option("--assignee", "assignees", type=int, multiple=True, help="Assignee user id.")
@click.option("--tag", "tag_ids", type=int, multiple=True, help="Tag id.")
@click.pass_obj
def create(
    app: AppContext,
    project_id: int,
    title: str,
    description: str | None,
    status: str | None,
    priority: str | None,
    due_date: str | None,
    assignees: tuple[int, ...],
    tag_ids: tuple[int, ...],
) -> None:
    """Create a task in a project."""
    app.emit(
        TaskService(app.store).create(
            project_id,
            app.acting_user,
            title,
            description=description,
            status=status,
            priority=priority,
            due_date=due_date,
            assignee_ids=assignees,
            tag_ids=tag_ids,
        )
    )


@task.command()
@click.argument("task_id", type=int)
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--status", type=_STATUS, default=None)
@click.option("--priority", type=_PRIORITY, default=None)
@click.option("--due", "due_date", default=None)
@click.option("--assignee", "assignees", type=int, multiple=True, help="Replace assignees.")
@click.option("--clear-assignees", is_flag=True, help="Remove every assignee.")
@click.option("--tag", "tag_ids", type=int, multiple=True, help="Replace tags.")
@click.option("--clear-tags", is_flag=True, help="Remove every tag.")
@click.pass_obj
def update(
    app: AppContext,
    task_id: int,
    title: str | None,
    description: str | None,
    status: str | None,
    priority: str | None,
    due_date: str | None,
    assignees: tuple[int, ...],
    clear_assignees: bool,
    tag_ids: tuple[int, ...],
    clear_tags: bool,
) -> None:
    """Update a task. Status-only changes are open to every project member."""
    app.emit(
        TaskService(app.store).update(
            task_id,
            app.acting_user,
            title=title,
            description=description,
            status=status,
            priority=priority,
            due_date=due_date,
            assignee_ids=[] if clear_assignees else (list(assignees) or None),
            tag_ids=[] if clear_tags else (list(tag_ids) or None),
        )
    )


@task.command()
@click.argument("task_id", type=int)
@click.pass_obj
def show(app: AppContext, task_id: int) -> None:
    """Show a task."""
    app.emit(TaskService(app.store).get(task_id, app.acting_user))


@task.command(name="list")
@click.argument("project_id", type=int)
@click.option("--status", type=_STATUS, default=None)
@click.option("--priority", type=_PRIORITY, default=None)
@click.option("--assignee", "assignee_id", type=int, default=None)
@click.option("--tag", "tag_id", type=int, default=None)
@click.option("--due-from", default=None, help="Due on or after (ISO).")
@click.option("--due-to", default=None, help="Due on or before (ISO).")
@click.option("--page", default=0, type=int, show_default=True)
@click.option("--size", default=None, type=int, help="Page size.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    project_id: int,
    status: str | None,
    priority: str | None,
    assignee_id: int | None,
    tag_id: int | None,
    due_from: str | None,
    due_to: str | None,
    page: int,
    size: int | None,
) -> None:
    """List a project's tasks. Members without task management see only their own."""
    app.emit(
        TaskService(app.store).list_tasks(
            project_id,
            app.acting_user,
            status=status,
            priority=priority,
            assignee_id=assignee_id,
            tag_id=tag_id,
            due_from=due_from,
            due_to=due_to,
            page=page,
            size=size,
        )
    )


@task.command()
@click.argument("project_id", type=int)
@click.argument("text")
@click.pass_obj
def search(app: AppContext, project_id: int, text: str) -> None:
    """Search task titles and descriptions."""
    app.emit(TaskService(app.store).search(project_id, app.acting_user, text))


@task.command()
@click.argument("project_id", type=int)
@click.pass_obj
def overdue(app: AppContext, project_id: int) -> None:
    """List overdue tasks."""
    app.emit(TaskService(app.store).overdue(project_id, app.acting_user))


@task.command()
@click.option("--status", type=_STATUS, default=None)
@click.option("--page", default=0, type=int, show_default=True)
@click.option("--size", default=None, type=int, help="Page size.")
@click.pass_obj
def mine(app: AppContext, status: str | None, page: int, size: int | None) -> None:
    """List tasks assigned to you across all projects."""
    app.emit(
        TaskService(app.store).list_assigned(app.acting_user, status=status, page=page, size=size)
    )


@task.command()
@click.argument("task_id", type=int)
@click.pass_obj
def delete(app: AppContext, task_id: int) -> None:
    """Delete a task."""
    app.emit(TaskService(app.store).delete(task_id, app.acting_user))


@task.command()
@click.argument("project_id", type=int)
@click.pass_obj
def stats(app: AppContext, project_id: int) -> None:
    """Task counts by status for a project."""
    app.emit(TaskService(app.store).statistics(project_id, app.acting_user))


@task.command(name="remind-due")
@click.option("--hours", type=float, default=None, help="Look-ahead window in hours.")
@click.pass_obj
def remind_due(app: AppContext, hours: float | None) -> None:
    """Notify assignees of open tasks due soon."""
    app.emit(TaskService(app.store).notify_due_soon(hours))
