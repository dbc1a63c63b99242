"""Command group: projects and their members."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.commands._base import TeamhubGroup
from teamhub.services.projects import ProjectService

if TYPE_CHECKING:
    from teamhub.commands._context import AppContext

_PROJECT_EXAMPLES = """\
  teamhub --as 1 project create "Billing revamp" --team 3
  teamhub --as 1 project add-member 7 2
  teamhub --as 1 project available 7
  teamhub --as 2 project list
  teamhub --as 2 project list --team 3"""


@click.group(cls=TeamhubGroup, examples=_PROJECT_EXAMPLES)
def project() -> None:
    """Create projects and manage project membership."""


@project.command()
@click.argument("name")
@click.option("--description", default=None, help="Project description.")
@click.option("--team", "team_id", type=int, default=None, help="Link the project to a team.")
@click.pass_obj
def create(app: AppContext, name: str, description: str | None, team_id: int | None) -> None:
    """Create a project owned by the acting user."""
    app.emit(
        ProjectService(app.store).create(
            app.acting_user, name, description=description, team_id=team_id
        )
    )


@project.command(name="add-member")
@click.argument("project_id", type=int)
@click.argument("user_id", type=int)
@click.pass_obj
def add_member(app: AppContext, project_id: int, user_id: int) -> None:
    """Add a user to the project."""
    app.emit(ProjectService(app.store).add_member(project_id, app.acting_user, user_id))


@project.command(name="remove-member")
@click.argument("project_id", type=int)
@click.argument("user_id", type=int)
@click.pass_obj
def remove_member(app: AppContext, project_id: int, user_id: int) -> None:
    """Remove a user from the project."""
    app.emit(ProjectService(app.store).remove_member(project_id, app.acting_user, user_id))


@project.command()
@click.argument("project_id", type=int)
@click.pass_obj
def available(app: AppContext, project_id: int) -> None:
    """List team members who are not yet in the project."""
    app.emit(ProjectService(app.store).available_team_members(project_id, app.acting_user))


@project.command()
@click.argument("project_id", type=int)
@click.confirmation_option(prompt="Delete the project with all its tasks?")
@click.pass_obj
def delete(app: AppContext, project_id: int) -> None:
    """Delete a project (owner only)."""
    app.emit(ProjectService(app.store).delete(project_id, app.acting_user))


@project.command()
@click.argument("project_id", type=int)
@click.pass_obj
def show(app: AppContext, project_id: int) -> None:
    """Show a project you have access to."""
    app.emit(ProjectService(app.store).get(project_id, app.acting_user))


@project.command(name="list")
@click.option("--team", "team_id", type=int, default=None, help="Only projects of this team.")
@click.pass_obj
def list_cmd(app: AppContext, team_id: int | None) -> None:
    """List projects visible to you."""
    svc = ProjectService(app.store)
    if team_id is not None:
        app.emit(svc.list_for_team(team_id, app.acting_user))
    else:
        app.emit(svc.list_for_user(app.acting_user))
