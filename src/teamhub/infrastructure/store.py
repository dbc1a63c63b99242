"""Store — repository with transaction coordination.

The Store is the single dependency injected into every service. It owns
the database engine and the event bus.

- **Transactions**: :meth:`Store.transaction` wraps ``engine.begin()``;
  commit on success, rollback on exception.
- **Serialization**: each transaction holds the SQLite write lock from
  its first statement (see :mod:`teamhub.infrastructure.database.engine`),
  so check-then-write sequences on a team or project are atomic across
  threads and across CLI processes sharing one database file.
- **Snapshots**: :class:`StoreTransaction` loads immutable
  :mod:`teamhub.domain.models` values so authorization runs against one
  consistent read.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from teamhub.domain.models import Project, Task, Team, User, normalize_email
from teamhub.infrastructure.database.engine import init_database
from teamhub.infrastructure.database.schema import (
    comments,
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

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from teamhub.config.settings import TeamhubSettings
    from teamhub.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# StoreTransaction — yielded to callers within transaction()
# ---------------------------------------------------------------------------


@dataclass
class StoreTransaction:
    """Active transaction context with snapshot loaders and cascade helpers."""

    conn: Connection

    # ------------------------------------------------------------------
    # Snapshot loaders
    # ------------------------------------------------------------------

    def _id_set(self, column: Any, key_column: Any, key: int) -> frozenset[int]:
        rows = self.conn.execute(select(column).where(key_column == key)).fetchall()
        return frozenset(int(r[0]) for r in rows)

    def load_user(self, user_id: int) -> User | None:
        row = self.conn.execute(select(users).where(users.c.id == user_id)).first()
        if row is None:
            return None
        return User(id=row.id, email=row.email, name=row.name)

    def load_user_by_email(self, email: str) -> User | None:
        row = self.conn.execute(
            select(users).where(users.c.email == normalize_email(email))
        ).first()
        if row is None:
            return None
        return User(id=row.id, email=row.email, name=row.name)

    def load_team(self, team_id: int | None) -> Team | None:
        if team_id is None:
            return None
        row = self.conn.execute(select(teams).where(teams.c.id == team_id)).first()
        if row is None:
            return None
        invites = self.conn.execute(
            select(team_invites.c.email).where(team_invites.c.team_id == team_id)
        ).fetchall()
        return Team(
            id=row.id,
            name=row.name,
            manager_id=row.manager_id,
            join_mode=row.join_mode,
            member_ids=self._id_set(team_members.c.user_id, team_members.c.team_id, team_id),
            leader_ids=self._id_set(team_leaders.c.user_id, team_leaders.c.team_id, team_id),
            invite_emails=frozenset(str(r.email) for r in invites),
            created_at=row.created_at,
        )

    def load_project(self, project_id: int) -> Project | None:
        row = self.conn.execute(select(projects).where(projects.c.id == project_id)).first()
        if row is None:
            return None
        return Project(
            id=row.id,
            name=row.name,
            description=row.description,
            owner_id=row.owner_id,
            team_id=row.team_id,
            member_ids=self._id_set(
                project_members.c.user_id, project_members.c.project_id, project_id
            ),
            created_at=row.created_at,
        )

    def load_task(self, task_id: int) -> Task | None:
        row = self.conn.execute(select(tasks).where(tasks.c.id == task_id)).first()
        if row is None:
            return None
        return Task(
            id=row.id,
            project_id=row.project_id,
            title=row.title,
            description=row.description,
            status=row.status,
            priority=row.priority,
            due_date=row.due_date,
            created_by=row.created_by,
            assignee_ids=self._id_set(task_assignees.c.user_id, task_assignees.c.task_id, task_id),
            tag_ids=self._id_set(task_tags.c.tag_id, task_tags.c.task_id, task_id),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def load_project_context(self, project_id: int) -> tuple[Project | None, Team | None]:
        """Load a project and, if linked, its team in one read."""
        project = self.load_project(project_id)
        if project is None:
            return None, None
        return project, self.load_team(project.team_id)

    # ------------------------------------------------------------------
    # Cascade helpers — child rows before parents
    # ------------------------------------------------------------------

    def delete_tasks(self, task_ids: list[int]) -> int:
        """Delete tasks with their comments, assignees, and tag links."""
        if not task_ids:
            return 0
        # Replies reference their parent comment; clear the link first.
        self.conn.execute(
            comments.update().where(comments.c.task_id.in_(task_ids)).values(parent_id=None)
        )
        self.conn.execute(delete(comments).where(comments.c.task_id.in_(task_ids)))
        self.conn.execute(delete(task_assignees).where(task_assignees.c.task_id.in_(task_ids)))
        self.conn.execute(delete(task_tags).where(task_tags.c.task_id.in_(task_ids)))
        self.conn.execute(delete(tasks).where(tasks.c.id.in_(task_ids)))
        return len(task_ids)

    def delete_project(self, project_id: int) -> dict[str, int]:
        """Delete a project, its members, tasks (with comments), and tags."""
        self.conn.execute(delete(project_members).where(project_members.c.project_id == project_id))
        task_ids = [
            int(r.id)
            for r in self.conn.execute(
                select(tasks.c.id).where(tasks.c.project_id == project_id)
            ).fetchall()
        ]
        deleted_tasks = self.delete_tasks(task_ids)
        tag_count = self.conn.execute(delete(tags).where(tags.c.project_id == project_id)).rowcount
        self.conn.execute(delete(projects).where(projects.c.id == project_id))
        return {"tasks": deleted_tasks, "tags": int(tag_count or 0)}


# ---------------------------------------------------------------------------
# Store — the repository
# ---------------------------------------------------------------------------


class Store:
    """Repository encapsulating database access and event dispatch.

    Constructed once at CLI startup from :class:`TeamhubSettings`.
    Services receive the Store via their :class:`BaseService` constructor.
    """

    def __init__(self, settings: TeamhubSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(self.root, settings.store.name)
        self._event_bus: EventBus | None = None

    @property
    def root(self) -> Path:
        """The store root directory."""
        return self._settings.root

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def settings(self) -> TeamhubSettings:
        return self._settings

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if not initialized)."""
        return self._event_bus

    def init_event_bus(self, *, sync: bool = False) -> None:
        """Initialize the plugin event bus.

        Creates a PluginManager, discovers entry-point plugins, registers
        the built-in notifier, and wires up the EventBus.
        """
        from teamhub.plugins.builtins.notifier import NotifierPlugin
        from teamhub.plugins.event_bus import EventBus
        from teamhub.plugins.manager import PluginManager

        pm = PluginManager()
        pm.discover_and_load()
        pm.register_plugin(NotifierPlugin(self), name="notifier-builtin")

        self._event_bus = EventBus(pm, sync=sync)

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Database transaction yielding a :class:`StoreTransaction`.

        Usage::

            with store.transaction() as txn:
                team = txn.load_team(team_id)
                txn.conn.execute(insert(team_members).values(...))
        """
        with self._engine.begin() as conn:
            yield StoreTransaction(conn=conn)

    def close(self) -> None:
        """Flush pending events and release the engine."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
            self._event_bus = None
        self._engine.dispose()
