"""SQLite database engine and schema via SQLAlchemy Core."""

from teamhub.infrastructure.database.engine import create_db_engine, init_database
from teamhub.infrastructure.database.schema import (
    comments,
    messages,
    metadata,
    notifications,
    project_members,
    projects,
    tags,
    task_assignees,
    task_tags,
    tasks,
    team_invites,
    team_leaders,
    team_members,
    teams,
    users,
)

__all__ = [
    "comments",
    "create_db_engine",
    "init_database",
    "messages",
    "metadata",
    "notifications",
    "project_members",
    "projects",
    "tags",
    "task_assignees",
    "task_tags",
    "tasks",
    "team_invites",
    "team_leaders",
    "team_members",
    "teams",
    "users",
]
