"""Command group: the user directory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.commands._base import TeamhubGroup
from teamhub.services.identity import IdentityService

if TYPE_CHECKING:
    from teamhub.commands._context import AppContext


@click.group(
    cls=TeamhubGroup,
    examples="""\
  teamhub user register ada@example.com --name "Ada Lovelace"
  teamhub user show 1
  teamhub --as 1 user show""",
)
def user() -> None:
    """Register and look up users."""


@user.command()
@click.argument("email")
@click.option("--name", default=None, help="Display name.")
@click.pass_obj
def register(app: AppContext, email: str, name: str | None) -> None:
    """Add a user to the directory."""
    app.emit(IdentityService(app.store).register(email, name))


@user.command()
@click.argument("user_id", type=int, required=False)
@click.pass_obj
def show(app: AppContext, user_id: int | None) -> None:
    """Show a user (defaults to the acting user)."""
    app.emit(IdentityService(app.store).get(user_id if user_id is not None else app.acting_user))
