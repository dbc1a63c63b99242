"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Provides lazy Store initialization, the acting user,
and centralized result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from teamhub.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from teamhub.config.settings import TeamhubSettings
    from teamhub.infrastructure.store import Store
    from teamhub.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The store is created on first use so ``--help`` and ``--version``
    never touch the database.
    """

    def __init__(self, settings: TeamhubSettings) -> None:
        self.settings = settings
        self._store: Store | None = None

        from teamhub.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from teamhub.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def store(self) -> Store:
        """The store instance (created lazily on first access)."""
        if self._store is None:
            from teamhub.infrastructure.store import Store

            self._store = Store(self.settings)
            self._store.init_event_bus(sync=self.settings.sync)
        return self._store

    @property
    def acting_user(self) -> int:
        """The user id given by ``--as`` (or ``TEAMHUB_ACTING_USER``)."""
        if self.settings.acting_user is None:
            raise click.UsageError("This command needs an acting user: pass --as USER_ID")
        return self.settings.acting_user

    def close(self) -> None:
        """Flush pending events and release the database."""
        if self._store is not None:
            self._store.close()
            self._store = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: writes to stdout; warnings go to stderr.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
