"""SQLAlchemy Core table definitions for the teamhub database.

Aggregates are stored as one root row plus flat join tables for each
id-keyed set (members, leaders, invites, assignees, tags). Timestamps are
ISO 8601 UTC strings.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", Text, nullable=False, unique=True),  # normalized lowercase
    Column("name", Text),
    Column("created_at", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

teams = Table(
    "teams",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("manager_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("join_mode", Text, nullable=False, default="EITHER", server_default="EITHER"),
    Column("created_at", Text, nullable=False),
)

team_members = Table(
    "team_members",
    metadata,
    Column("team_id", Integer, ForeignKey("teams.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    UniqueConstraint("team_id", "user_id"),
)

team_leaders = Table(
    "team_leaders",
    metadata,
    Column("team_id", Integer, ForeignKey("teams.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    UniqueConstraint("team_id", "user_id"),
)

team_invites = Table(
    "team_invites",
    metadata,
    Column("team_id", Integer, ForeignKey("teams.id"), nullable=False),
    Column("email", Text, nullable=False),  # normalized lowercase
    UniqueConstraint("team_id", "email"),
)

# ---------------------------------------------------------------------------
# Projects, tasks, tags, comments
# ---------------------------------------------------------------------------

projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("description", Text),
    Column("owner_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("team_id", Integer, ForeignKey("teams.id")),
    Column("created_at", Text, nullable=False),
)

project_members = Table(
    "project_members",
    metadata,
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    UniqueConstraint("project_id", "user_id"),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("status", Text, nullable=False, default="TODO", server_default="TODO"),
    Column("priority", Text, nullable=False, default="MEDIUM", server_default="MEDIUM"),
    Column("due_date", Text),
    Column("created_by", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
)

task_assignees = Table(
    "task_assignees",
    metadata,
    Column("task_id", Integer, ForeignKey("tasks.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    UniqueConstraint("task_id", "user_id"),
)

tags = Table(
    "tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("name", Text, nullable=False),
    Column("color", Text, nullable=False, default="#808080", server_default="#808080"),
    UniqueConstraint("project_id", "name"),
)

task_tags = Table(
    "task_tags",
    metadata,
    Column("task_id", Integer, ForeignKey("tasks.id"), nullable=False),
    Column("tag_id", Integer, ForeignKey("tags.id"), nullable=False),
    UniqueConstraint("task_id", "tag_id"),
)

comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("task_id", Integer, ForeignKey("tasks.id"), nullable=False),
    Column("author_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("parent_id", Integer, ForeignKey("comments.id")),
    Column("text", Text, nullable=False),
    Column("created_at", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Chat and notifications
# ---------------------------------------------------------------------------

messages = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("channel_type", Text, nullable=False),  # team | project | task
    Column("channel_id", Integer, nullable=False),  # polymorphic, no FK
    Column("sender_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", Text, nullable=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("recipient_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("type", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("reference_id", Integer, nullable=False),
    Column("reference_type", Text, nullable=False),
    Column("secondary_reference_id", Integer),
    Column("read", Integer, default=0, server_default="0"),
    Column("created_at", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_team_members_user", team_members.c.user_id)
Index("ix_projects_team", projects.c.team_id)
Index("ix_project_members_user", project_members.c.user_id)
Index("ix_tasks_project_status", tasks.c.project_id, tasks.c.status)
Index("ix_tasks_project_due", tasks.c.project_id, tasks.c.due_date)
Index("ix_task_assignees_user", task_assignees.c.user_id)
Index("ix_comments_task", comments.c.task_id)
Index("ix_messages_channel", messages.c.channel_type, messages.c.channel_id)
Index("ix_notifications_recipient", notifications.c.recipient_id, notifications.c.read)
