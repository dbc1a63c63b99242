"""Rich Console factory and theme for teamhub output.

Consoles render to a StringIO buffer, preserving the
``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich disables color codes automatically.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

TEAMHUB_THEME = Theme(
    {
        "th.ok": "bold green",
        "th.error": "bold red",
        "th.warning": "bold yellow",
        "th.op": "bold cyan",
        "th.key": "dim",
        "th.id": "bold blue",
        "th.title": "bold",
        "th.unread": "bold magenta",
        "th.status.todo": "white",
        "th.status.in_progress": "cyan",
        "th.status.in_review": "blue",
        "th.status.done": "green",
        "th.status.blocked": "red",
    }
)


def style_for_status(status: str) -> str:
    """Theme style for a task status, or empty string if unknown."""
    key = f"th.status.{status.lower()}"
    return key if key in TEAMHUB_THEME.styles else ""


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=TEAMHUB_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()
