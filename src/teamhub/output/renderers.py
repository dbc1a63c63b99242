"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from teamhub.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from teamhub.services.result import ServiceResult


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: ids for lists, a status line otherwise."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {msg}"

    items = result.data.get("items")
    if isinstance(items, list):
        ids = [str(item["id"]) for item in items if isinstance(item, dict) and "id" in item]
        return "\n".join(ids)
    if "id" in result.data:
        return str(result.data["id"])
    return f"OK: {result.op}"


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="th.ok"), Text(f"  {result.op}", style="th.op"))


def _field(console: Console, key: str, value: Any) -> None:
    if isinstance(value, (dict, list)):
        value = _json.dumps(value, separators=(",", ":"))
    style = "th.id" if key == "id" or key.endswith("_id") else ""
    if key in ("name", "title"):
        style = "th.title"
    console.print(Text(f"  {key}: ", style="th.key"), Text(str(value), style=style))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including the telemetry span tree (verbose only)."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    duration = span_data.get("duration_ms", 0.0)
    style = "bold red" if duration > 1000 else "yellow" if duration > 100 else "dim"
    console.print(f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {span_data.get('name', '?')}")
    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="th.error"), Text(f"  {result.op}{code}", style="th.op"), " - ", msg
    )
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


def _footer(console: Console, result: ServiceResult, noun: str) -> None:
    count = result.data.get("count", 0)
    total = result.data.get("total")
    suffix = f" of {total}" if total is not None else ""
    console.print(f"\n{count}{suffix} {noun}")


def _render_teams(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = Table(show_header=True, pad_edge=False)
    table.add_column("ID", style="th.id", no_wrap=True)
    table.add_column("Name", style="th.title")
    table.add_column("Manager")
    table.add_column("Members", justify="right")
    table.add_column("Join mode")
    for item in result.data.get("items", []):
        table.add_row(
            str(item["id"]),
            item["name"],
            str(item["manager_id"]),
            f"{item['member_count']}/{item['max_members']}",
            item["join_mode"],
        )
    console.print(table)
    _footer(console, result, "teams")


def _render_projects(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = Table(show_header=True, pad_edge=False)
    table.add_column("ID", style="th.id", no_wrap=True)
    table.add_column("Name", style="th.title")
    table.add_column("Owner")
    table.add_column("Team")
    table.add_column("Members", justify="right")
    for item in result.data.get("items", []):
        table.add_row(
            str(item["id"]),
            item["name"],
            str(item["owner_id"]),
            "" if item["team_id"] is None else str(item["team_id"]),
            str(len(item["member_ids"])),
        )
    console.print(table)
    _footer(console, result, "projects")


def _render_tasks(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = Table(show_header=True, pad_edge=False)
    table.add_column("ID", style="th.id", no_wrap=True)
    table.add_column("Title", style="th.title")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Assignees")
    for item in result.data.get("items", []):
        status = item["status"]
        due = item["due_date"] or ""
        if item.get("overdue"):
            due = f"[th.error]{due}[/th.error]"
        table.add_row(
            str(item["id"]),
            item["title"],
            Text(status, style=style_for_status(status)),
            item["priority"],
            due,
            ", ".join(str(a) for a in item["assignee_ids"]),
        )
    console.print(table)
    _footer(console, result, "tasks")


def _render_notifications(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    table = Table(show_header=True, pad_edge=False)
    table.add_column("ID", style="th.id", no_wrap=True)
    table.add_column("")
    table.add_column("Title", style="th.title")
    table.add_column("Message")
    if verbose:
        table.add_column("Created", style="dim")
    for item in result.data.get("items", []):
        row = [
            str(item["id"]),
            Text("*" if not item["read"] else "", style="th.unread"),
            item["title"],
            item["message"],
        ]
        if verbose:
            row.append(item["created_at"])
        table.add_row(*row)
    console.print(table)
    _footer(console, result, "notifications")


def _render_statistics(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        style = style_for_status(key)
        console.print(Text(f"  {key}: ", style="th.key"), Text(str(value), style=style))


_OP_RENDERERS: dict[str, Any] = {
    "list_teams": _render_teams,
    "list_projects": _render_projects,
    "list_team_projects": _render_projects,
    "list_tasks": _render_tasks,
    "search_tasks": _render_tasks,
    "overdue_tasks": _render_tasks,
    "list_assigned_tasks": _render_tasks,
    "task_statistics": _render_statistics,
    "list_notifications": _render_notifications,
    "unread_notifications": _render_notifications,
    "recent_notifications": _render_notifications,
}
