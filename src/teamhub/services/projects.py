"""ProjectService — the project membership registry.

A project has one owner and its own member set, optionally linked to a
team. Team managers and leaders of the linked team gain access and
management rights without being project members; plain team members do
not. Member changes load and write inside one store transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, insert, or_, select

from teamhub.domain.models import Project
from teamhub.domain.permissions import (
    can_manage_tasks,
    has_project_access,
    is_team_member,
)
from teamhub.domain.types import ErrorKind
from teamhub.infrastructure.database.schema import (
    project_members,
    projects,
    team_leaders,
    teams,
    users,
)
from teamhub.services._helpers import now_iso
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def project_data(project: Project) -> dict[str, object]:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "owner_id": project.owner_id,
        "team_id": project.team_id,
        "member_ids": sorted(project.member_ids),
        "created_at": project.created_at,
    }


class ProjectService(BaseService):
    """Create projects, manage their members, and answer access questions."""

    @traced
    def create(
        self,
        owner_id: int,
        name: str,
        description: str | None = None,
        team_id: int | None = None,
    ) -> ServiceResult:
        """Create a project; the owner is auto-added as a member.

        When *team_id* is given the team must exist. No further
        cross-check (e.g. that the owner belongs to it) is made.
        """
        op = "create_project"
        warnings: list[str] = []

        with self._store.transaction() as txn:
            if txn.load_user(owner_id) is None:
                return self._not_found(op, "user", owner_id)
            if team_id is not None and txn.load_team(team_id) is None:
                return self._not_found(op, "team", team_id)

            row = txn.conn.execute(
                insert(projects).values(
                    name=name,
                    description=description,
                    owner_id=owner_id,
                    team_id=team_id,
                    created_at=now_iso(),
                )
            )
            project_id = int(row.inserted_primary_key[0])
            txn.conn.execute(
                insert(project_members).values(project_id=project_id, user_id=owner_id)
            )
            project = txn.load_project(project_id)

        assert project is not None
        logger.info("Created project %s '%s' (owner %s)", project_id, name, owner_id)

        self._dispatch_event(
            "post_project_create",
            {"project_id": project_id, "actor_id": owner_id},
            warnings,
        )
        return ServiceResult(ok=True, op=op, data=project_data(project), warnings=warnings)

    @traced
    def get(self, project_id: int, acting_id: int) -> ServiceResult:
        op = "get_project"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
        if project is None:
            return self._not_found(op, "project", project_id)
        if not has_project_access(project, team, acting_id):
            return self._forbidden(op, "You do not have access to this project", "NO_ACCESS")
        data = project_data(project)
        data["can_manage_tasks"] = can_manage_tasks(project, team, acting_id)
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def list_for_user(self, user_id: int) -> ServiceResult:
        """Projects the user owns or belongs to, plus every project of a
        team the user manages or leads."""
        op = "list_projects"
        with self._store.transaction() as txn:
            member_of = select(project_members.c.project_id).where(
                project_members.c.user_id == user_id
            )
            managed = select(teams.c.id).where(teams.c.manager_id == user_id)
            led = select(team_leaders.c.team_id).where(team_leaders.c.user_id == user_id)
            rows = txn.conn.execute(
                select(projects.c.id)
                .where(
                    or_(
                        projects.c.owner_id == user_id,
                        projects.c.id.in_(member_of),
                        projects.c.team_id.in_(managed),
                        projects.c.team_id.in_(led),
                    )
                )
                .order_by(projects.c.id)
            ).fetchall()
            loaded = [txn.load_project(int(r.id)) for r in rows]
        items = [project_data(p) for p in loaded if p is not None]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    @traced
    def list_for_team(self, team_id: int, acting_id: int) -> ServiceResult:
        """Projects of a team that *acting_id* can access. Team members only."""
        op = "list_team_projects"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            if not is_team_member(team, acting_id):
                return self._forbidden(op, "You are not a member of this team", "NOT_A_MEMBER")
            rows = txn.conn.execute(
                select(projects.c.id).where(projects.c.team_id == team_id).order_by(projects.c.id)
            ).fetchall()
            loaded = [txn.load_project(int(r.id)) for r in rows]

        items = [
            project_data(p)
            for p in loaded
            if p is not None and has_project_access(p, team, acting_id)
        ]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    # ------------------------------------------------------------------
    # Capability queries
    # ------------------------------------------------------------------

    def has_access(self, project_id: int, user_id: int) -> bool:
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
        return project is not None and has_project_access(project, team, user_id)

    def can_manage_tasks(self, project_id: int, user_id: int) -> bool:
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
        return project is not None and can_manage_tasks(project, team, user_id)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @traced
    def add_member(self, project_id: int, acting_id: int, target_id: int) -> ServiceResult:
        """Add a user to the project. For team projects the user must
        already belong to the team."""
        op = "add_project_member"
        warnings: list[str] = []

        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
            if project is None:
                return self._not_found(op, "project", project_id)
            if not can_manage_tasks(project, team, acting_id):
                return self._forbidden(
                    op, "You do not have permission to manage project members", "NOT_PERMITTED"
                )
            if txn.load_user(target_id) is None:
                return self._not_found(op, "user", target_id)
            if project.team_id is not None and not is_team_member(team, target_id):
                return self._fail(
                    op,
                    ErrorKind.INVALID_STATE,
                    "User must be a member of the project's team",
                    "NOT_A_TEAM_MEMBER",
                )
            if target_id in project.member_ids:
                return self._fail(
                    op,
                    ErrorKind.INVALID_STATE,
                    "User is already a member of this project",
                    "ALREADY_MEMBER",
                )

            txn.conn.execute(
                insert(project_members).values(project_id=project_id, user_id=target_id)
            )
            updated = txn.load_project(project_id)

        assert updated is not None
        logger.info("Project %s: user %s added by %s", project_id, target_id, acting_id)

        self._dispatch_event(
            "post_project_member_add",
            {"project_id": project_id, "user_id": target_id, "actor_id": acting_id},
            warnings,
        )
        return ServiceResult(ok=True, op=op, data=project_data(updated), warnings=warnings)

    @traced
    def remove_member(self, project_id: int, acting_id: int, target_id: int) -> ServiceResult:
        op = "remove_project_member"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
            if project is None:
                return self._not_found(op, "project", project_id)
            if not can_manage_tasks(project, team, acting_id):
                return self._forbidden(
                    op, "You do not have permission to manage project members", "NOT_PERMITTED"
                )
            if target_id == project.owner_id:
                return self._fail(
                    op,
                    ErrorKind.INVALID_STATE,
                    "The project owner cannot be removed",
                    "CANNOT_REMOVE_OWNER",
                )
            if target_id not in project.member_ids:
                return self._fail(
                    op,
                    ErrorKind.INVALID_STATE,
                    "User is not a member of this project",
                    "NOT_A_MEMBER",
                )

            txn.conn.execute(
                delete(project_members).where(
                    project_members.c.project_id == project_id,
                    project_members.c.user_id == target_id,
                )
            )
            updated = txn.load_project(project_id)

        assert updated is not None
        logger.info("Project %s: user %s removed by %s", project_id, target_id, acting_id)
        return ServiceResult(ok=True, op=op, data=project_data(updated))

    @traced
    def available_team_members(self, project_id: int, acting_id: int) -> ServiceResult:
        """Team members not yet in the project (team projects only)."""
        op = "available_team_members"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
            if project is None:
                return self._not_found(op, "project", project_id)
            if project.team_id is None:
                return self._fail(
                    op,
                    ErrorKind.INVALID_STATE,
                    "Project does not belong to a team",
                    "NOT_A_TEAM_PROJECT",
                )
            if team is None:
                return self._not_found(op, "team", project.team_id)
            if not has_project_access(project, team, acting_id):
                return self._forbidden(op, "You do not have access to this project", "NO_ACCESS")

            candidate_ids = sorted(team.member_ids - project.member_ids)
            rows = (
                txn.conn.execute(
                    select(users.c.id, users.c.email, users.c.name)
                    .where(users.c.id.in_(candidate_ids))
                    .order_by(users.c.id)
                ).fetchall()
                if candidate_ids
                else []
            )

        items = [{"id": r.id, "email": r.email, "name": r.name} for r in rows]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    @traced
    def delete(self, project_id: int, acting_id: int) -> ServiceResult:
        """Delete a project with its tasks (comments first) and tags. Owner only."""
        op = "delete_project"
        with self._store.transaction() as txn:
            project = txn.load_project(project_id)
            if project is None:
                return self._not_found(op, "project", project_id)
            if acting_id != project.owner_id:
                return self._forbidden(
                    op, "Only the project owner can delete the project", "NOT_OWNER"
                )
            counts = txn.delete_project(project_id)

        logger.info("Deleted project %s (%d tasks)", project_id, counts["tasks"])
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": project_id,
                "deleted_tasks": counts["tasks"],
                "deleted_tags": counts["tags"],
            },
        )
