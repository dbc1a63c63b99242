"""Subcommand modules for teamhub.

Provides register_commands() which uses deferred imports to keep
``teamhub --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups on the root CLI group."""
    from teamhub.commands.notify import notify
    from teamhub.commands.project import project
    from teamhub.commands.task import task
    from teamhub.commands.team import team
    from teamhub.commands.user import user

    cli.add_command(user)
    cli.add_command(team)
    cli.add_command(project)
    cli.add_command(task)
    cli.add_command(notify)
