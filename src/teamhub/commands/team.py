"""Command group: team membership."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.commands._base import TeamhubGroup
from teamhub.domain.types import JoinMode
from teamhub.services.teams import TeamService

if TYPE_CHECKING:
    from teamhub.commands._context import AppContext

_TEAM_EXAMPLES = """\
  teamhub --as 1 team create "Platform" --join-mode EITHER
  teamhub --as 1 team invite 3 ada@example.com
  teamhub --as 2 team join 3
  teamhub --as 4 team join 3 --by-code
  teamhub --as 1 team promote 3 2
  teamhub --as 1 team kick 3 4
  teamhub --as 2 team list"""


@click.group(cls=TeamhubGroup, examples=_TEAM_EXAMPLES)
def team() -> None:
    """Create teams and manage their members."""


@team.command()
@click.argument("name")
@click.option(
    "--join-mode",
    type=click.Choice([m.value for m in JoinMode]),
    default=JoinMode.EITHER.value,
    show_default=True,
    help="Self-join policy.",
)
@click.pass_obj
def create(app: AppContext, name: str, join_mode: str) -> None:
    """Create a team managed by the acting user."""
    app.emit(TeamService(app.store).create(app.acting_user, name, join_mode))


@team.command()
@click.argument("team_id", type=int)
@click.argument("email")
@click.pass_obj
def invite(app: AppContext, team_id: int, email: str) -> None:
    """Invite an email address to the team (manager only)."""
    app.emit(TeamService(app.store).invite(team_id, app.acting_user, email))


@team.command()
@click.argument("team_id", type=int)
@click.option("--by-code", is_flag=True, help="Join with the team code instead of an invite.")
@click.pass_obj
def join(app: AppContext, team_id: int, by_code: bool) -> None:
    """Join a team."""
    app.emit(TeamService(app.store).join(team_id, app.acting_user, by_code=by_code))


@team.command()
@click.argument("team_id", type=int)
@click.pass_obj
def leave(app: AppContext, team_id: int) -> None:
    """Leave a team."""
    app.emit(TeamService(app.store).leave(team_id, app.acting_user))


@team.command()
@click.argument("team_id", type=int)
@click.argument("user_id", type=int)
@click.pass_obj
def promote(app: AppContext, team_id: int, user_id: int) -> None:
    """Make a member a team leader (manager only)."""
    app.emit(TeamService(app.store).promote(team_id, app.acting_user, user_id))


@team.command()
@click.argument("team_id", type=int)
@click.argument("user_id", type=int)
@click.pass_obj
def demote(app: AppContext, team_id: int, user_id: int) -> None:
    """Remove leader status (manager only)."""
    app.emit(TeamService(app.store).demote(team_id, app.acting_user, user_id))


@team.command()
@click.argument("team_id", type=int)
@click.argument("user_id", type=int)
@click.pass_obj
def kick(app: AppContext, team_id: int, user_id: int) -> None:
    """Remove a member from the team."""
    app.emit(TeamService(app.store).kick(team_id, app.acting_user, user_id))


@team.command()
@click.argument("team_id", type=int)
@click.confirmation_option(prompt="Delete the team with all its projects and tasks?")
@click.pass_obj
def delete(app: AppContext, team_id: int) -> None:
    """Delete a team and everything under it (manager only)."""
    app.emit(TeamService(app.store).delete(team_id, app.acting_user))


@team.command()
@click.argument("team_id", type=int)
@click.pass_obj
def show(app: AppContext, team_id: int) -> None:
    """Show a team you belong to."""
    app.emit(TeamService(app.store).get(team_id, app.acting_user))


@team.command(name="list")
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """List the teams you manage or belong to."""
    app.emit(TeamService(app.store).list_for_user(app.acting_user))
