"""Click base classes adding an ``--examples`` flag.

``--help`` stays short; ``--examples`` prints a block of sample
invocations and exits before any option validation or store access.
"""

from __future__ import annotations

from typing import Any

import click


class _ExamplesMixin:
    """Accept ``examples=`` and expose it as an eager ``--examples`` flag."""

    params: list[click.Parameter]

    def _init_examples(self, examples: str | None) -> None:
        self.examples = examples
        if not examples:
            return

        def _print(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
            if value and not ctx.resilient_parsing:
                click.echo(f"Examples for '{ctx.command_path}':\n\n{examples}")
                ctx.exit(0)

        self.params.append(
            click.Option(
                ["--examples"],
                is_flag=True,
                is_eager=True,
                expose_value=False,
                callback=_print,
                help="Show usage examples.",
            )
        )


class TeamhubCommand(_ExamplesMixin, click.Command):
    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


class TeamhubGroup(_ExamplesMixin, click.Group):
    """Group whose subcommands take ``examples=`` without ``cls=``."""

    command_class = TeamhubCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)
