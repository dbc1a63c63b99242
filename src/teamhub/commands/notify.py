"""Command group: the notification inbox."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.commands._base import TeamhubGroup
from teamhub.services.notifications import NotificationService
from teamhub.services.result import ServiceResult

if TYPE_CHECKING:
    from teamhub.commands._context import AppContext


@click.group(
    cls=TeamhubGroup,
    examples="""\
  teamhub --as 2 notify list --unread
  teamhub --as 2 notify read 14
  teamhub --as 2 notify read-all
  teamhub --as 2 notify count""",
)
def notify() -> None:
    """Read and acknowledge notifications."""


@notify.command(name="list")
@click.option("--unread", "unread_only", is_flag=True, help="Only unread notifications.")
@click.option("--recent", is_flag=True, help="Only the most recent few.")
@click.option("--page", default=0, type=int, show_default=True)
@click.pass_obj
def list_cmd(app: AppContext, unread_only: bool, recent: bool, page: int) -> None:
    """List your notifications, newest first."""
    svc = NotificationService(app.store)
    if recent:
        app.emit(svc.recent(app.acting_user))
    else:
        app.emit(svc.list_for_user(app.acting_user, page=page, unread_only=unread_only))


@notify.command()
@click.argument("notification_id", type=int)
@click.pass_obj
def read(app: AppContext, notification_id: int) -> None:
    """Mark one notification as read."""
    app.emit(NotificationService(app.store).mark_read(notification_id, app.acting_user))


@notify.command(name="read-all")
@click.pass_obj
def read_all(app: AppContext) -> None:
    """Mark all your notifications as read."""
    app.emit(NotificationService(app.store).mark_all_read(app.acting_user))


@notify.command()
@click.pass_obj
def count(app: AppContext) -> None:
    """Show your unread notification count."""
    unread = NotificationService(app.store).unread_count(app.acting_user)
    app.emit(ServiceResult(ok=True, op="unread_count", data={"unread": unread}))
