"""Immutable entity snapshots.

Membership is modelled as id-keyed sets resolved through the owning
registry, never as object back-references. A snapshot is a consistent
read of one aggregate; the authorization rules in
:mod:`teamhub.domain.permissions` operate only on these values.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from teamhub.domain.types import JoinMode, TaskPriority, TaskStatus


def normalize_email(email: str) -> str:
    """Canonical form for email comparison (trimmed, lowercase)."""
    return email.strip().lower()


class User(BaseModel):
    """External identity as seen by the core."""

    model_config = {"frozen": True}

    id: int
    email: str
    name: str | None = None


class Team(BaseModel):
    """Team aggregate: one manager, promotable leaders, bounded roster.

    INVARIANT: ``manager_id in member_ids`` and ``leader_ids <= member_ids``
    (modulo leaders who left, see ``TeamService.leave``).
    """

    model_config = {"frozen": True}

    id: int
    name: str
    manager_id: int
    join_mode: JoinMode = JoinMode.EITHER
    member_ids: frozenset[int] = Field(default_factory=frozenset)
    leader_ids: frozenset[int] = Field(default_factory=frozenset)
    invite_emails: frozenset[str] = Field(default_factory=frozenset)
    created_at: str | None = None

    @property
    def code(self) -> str:
        """Public join code; the team id doubles as the code."""
        return str(self.id)

    def has_invite(self, email: str | None) -> bool:
        if not email:
            return False
        return normalize_email(email) in {normalize_email(e) for e in self.invite_emails}


class Project(BaseModel):
    """Project aggregate, optionally scoped under a team."""

    model_config = {"frozen": True}

    id: int
    name: str
    owner_id: int
    description: str | None = None
    team_id: int | None = None
    member_ids: frozenset[int] = Field(default_factory=frozenset)
    created_at: str | None = None


class Task(BaseModel):
    """Task aggregate inside a project."""

    model_config = {"frozen": True}

    id: int
    project_id: int
    title: str
    created_by: int
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: str | None = None
    assignee_ids: frozenset[int] = Field(default_factory=frozenset)
    tag_ids: frozenset[int] = Field(default_factory=frozenset)
    created_at: str | None = None
    updated_at: str | None = None
