"""TeamService — the team membership registry.

Owns manager/leader/member/invite state and the join-mode policy. Every
check-then-write sequence runs in one :meth:`Store.transaction`, which
holds the database write lock from its first read, so two concurrent
joins cannot both take the last free slot.

Rules live in :mod:`teamhub.domain.membership`; this module loads the
snapshot, asks the rule, and writes the outcome.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, insert, or_, select

from teamhub.domain import membership
from teamhub.domain.models import Team, normalize_email
from teamhub.domain.permissions import (
    is_team_leader,
    is_team_manager,
    is_team_member,
    is_team_owner_or_leader,
)
from teamhub.domain.types import MAX_MEMBERS, ErrorKind, JoinMode
from teamhub.infrastructure.database.schema import (
    projects,
    team_invites,
    team_leaders,
    team_members,
    teams,
)
from teamhub.services._helpers import now_iso
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def team_data(team: Team, *, include_invites: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "id": team.id,
        "name": team.name,
        "code": team.code,
        "manager_id": team.manager_id,
        "join_mode": str(team.join_mode),
        "member_ids": sorted(team.member_ids),
        "leader_ids": sorted(team.leader_ids),
        "member_count": len(team.member_ids),
        "max_members": MAX_MEMBERS,
        "created_at": team.created_at,
    }
    if include_invites:
        data["invite_emails"] = sorted(team.invite_emails)
    return data


class TeamService(BaseService):
    """Create teams and move users through the membership lattice."""

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    @traced
    def create(
        self,
        manager_id: int,
        name: str,
        join_mode: JoinMode | str = JoinMode.EITHER,
    ) -> ServiceResult:
        """Create a team; the manager is auto-added as its first member."""
        op = "create_team"
        try:
            mode = JoinMode(join_mode)
        except ValueError:
            return self._fail(
                op, ErrorKind.INVALID_STATE, f"Unknown join mode: {join_mode}", "INVALID_JOIN_MODE"
            )

        with self._store.transaction() as txn:
            if txn.load_user(manager_id) is None:
                return self._not_found(op, "user", manager_id)
            row = txn.conn.execute(
                insert(teams).values(
                    name=name,
                    manager_id=manager_id,
                    join_mode=str(mode),
                    created_at=now_iso(),
                )
            )
            team_id = int(row.inserted_primary_key[0])
            txn.conn.execute(insert(team_members).values(team_id=team_id, user_id=manager_id))
            team = txn.load_team(team_id)

        assert team is not None
        logger.info("Created team %s '%s' (manager %s)", team_id, name, manager_id)
        return ServiceResult(ok=True, op=op, data=team_data(team, include_invites=True))

    @traced
    def get(self, team_id: int, acting_id: int) -> ServiceResult:
        """Show a team. Visible to its manager and members only."""
        op = "get_team"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
        if team is None:
            return self._not_found(op, "team", team_id)
        if not is_team_member(team, acting_id):
            return self._forbidden(op, "You are not a member of this team", "NOT_A_MEMBER")
        return ServiceResult(
            ok=True,
            op=op,
            data=team_data(team, include_invites=is_team_manager(team, acting_id)),
        )

    @traced
    def list_for_user(self, user_id: int) -> ServiceResult:
        """Teams the user manages or belongs to."""
        op = "list_teams"
        with self._store.transaction() as txn:
            member_of = select(team_members.c.team_id).where(team_members.c.user_id == user_id)
            rows = txn.conn.execute(
                select(teams.c.id)
                .where(or_(teams.c.manager_id == user_id, teams.c.id.in_(member_of)))
                .order_by(teams.c.id)
            ).fetchall()
            loaded = [txn.load_team(int(r.id)) for r in rows]
        items = [team_data(t) for t in loaded if t is not None]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def _predicate(self, team_id: int, user_id: int, check: object) -> bool:
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
        return team is not None and bool(check(team, user_id))  # type: ignore[operator]

    def is_owner(self, team_id: int, user_id: int) -> bool:
        return self._predicate(team_id, user_id, is_team_manager)

    def is_leader(self, team_id: int, user_id: int) -> bool:
        return self._predicate(team_id, user_id, is_team_leader)

    def is_owner_or_leader(self, team_id: int, user_id: int) -> bool:
        return self._predicate(team_id, user_id, is_team_owner_or_leader)

    def is_member(self, team_id: int, user_id: int) -> bool:
        return self._predicate(team_id, user_id, is_team_member)

    # ------------------------------------------------------------------
    # Membership transitions
    # ------------------------------------------------------------------

    @traced
    def invite(self, team_id: int, acting_id: int, email: str) -> ServiceResult:
        """Record a pending invitation. Idempotent; never adds a member."""
        op = "invite"
        normalized = normalize_email(email)
        if "@" not in normalized:
            return self._fail(
                op, ErrorKind.INVALID_STATE, f"Invalid email: {email!r}", "INVALID_EMAIL"
            )

        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_manager(team, acting_id, "invite members")
            if rejection is not None:
                return self._rejected(op, rejection)

            already = team.has_invite(normalized)
            if not already:
                txn.conn.execute(insert(team_invites).values(team_id=team_id, email=normalized))

        if not already:
            logger.info("Team %s: invited %s", team_id, normalized)
        return ServiceResult(
            ok=True,
            op=op,
            data={"team_id": team_id, "email": normalized, "already_invited": already},
        )

    @traced
    def join(self, team_id: int, user_id: int, *, by_code: bool = False) -> ServiceResult:
        """Self-join a team, by shared code or by a pending email invite."""
        op = "join_team"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            user = txn.load_user(user_id)
            if user is None:
                return self._not_found(op, "user", user_id)

            rejection = membership.check_join(team, user, by_code=by_code)
            if rejection is not None:
                return self._rejected(op, rejection)

            txn.conn.execute(insert(team_members).values(team_id=team_id, user_id=user_id))
            consumed = team.has_invite(user.email)
            if consumed:
                txn.conn.execute(
                    delete(team_invites).where(
                        team_invites.c.team_id == team_id,
                        team_invites.c.email == normalize_email(user.email),
                    )
                )
            updated = txn.load_team(team_id)

        assert updated is not None
        logger.info("Team %s: user %s joined (by_code=%s)", team_id, user_id, by_code)
        return ServiceResult(
            ok=True,
            op=op,
            data={**team_data(updated), "invite_consumed": consumed},
        )

    @traced
    def leave(self, team_id: int, user_id: int) -> ServiceResult:
        """Leave a team. Removes membership only; leader status is kept."""
        op = "leave_team"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_leave(team, user_id)
            if rejection is not None:
                return self._rejected(op, rejection)

            txn.conn.execute(
                delete(team_members).where(
                    team_members.c.team_id == team_id,
                    team_members.c.user_id == user_id,
                )
            )

        logger.info("Team %s: user %s left", team_id, user_id)
        return ServiceResult(ok=True, op=op, data={"team_id": team_id, "user_id": user_id})

    @traced
    def promote(self, team_id: int, acting_id: int, target_id: int) -> ServiceResult:
        op = "promote"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_promote(team, acting_id, target_id)
            if rejection is not None:
                return self._rejected(op, rejection)

            txn.conn.execute(insert(team_leaders).values(team_id=team_id, user_id=target_id))
            updated = txn.load_team(team_id)

        assert updated is not None
        logger.info("Team %s: user %s promoted to leader", team_id, target_id)
        return ServiceResult(ok=True, op=op, data=team_data(updated))

    @traced
    def demote(self, team_id: int, acting_id: int, target_id: int) -> ServiceResult:
        op = "demote"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_demote(team, acting_id, target_id)
            if rejection is not None:
                return self._rejected(op, rejection)

            txn.conn.execute(
                delete(team_leaders).where(
                    team_leaders.c.team_id == team_id,
                    team_leaders.c.user_id == target_id,
                )
            )
            updated = txn.load_team(team_id)

        assert updated is not None
        logger.info("Team %s: user %s demoted", team_id, target_id)
        return ServiceResult(ok=True, op=op, data=team_data(updated))

    @traced
    def kick(self, team_id: int, acting_id: int, target_id: int) -> ServiceResult:
        """Remove a member; clears leader status as well as membership."""
        op = "kick"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_kick(team, acting_id, target_id)
            if rejection is not None:
                return self._rejected(op, rejection)

            for table in (team_members, team_leaders):
                txn.conn.execute(
                    delete(table).where(table.c.team_id == team_id, table.c.user_id == target_id)
                )
            updated = txn.load_team(team_id)

        assert updated is not None
        logger.info("Team %s: user %s kicked by %s", team_id, target_id, acting_id)
        return ServiceResult(ok=True, op=op, data=team_data(updated))

    @traced
    def delete(self, team_id: int, acting_id: int) -> ServiceResult:
        """Delete a team and everything under it. Manager only.

        Order: team membership, then for each linked project its members,
        task comments, tasks, and tags, then the project; the team last.
        """
        op = "delete_team"
        with self._store.transaction() as txn:
            team = txn.load_team(team_id)
            if team is None:
                return self._not_found(op, "team", team_id)
            rejection = membership.check_manager(team, acting_id, "delete the team")
            if rejection is not None:
                return self._rejected(op, rejection)

            for table in (team_members, team_leaders, team_invites):
                txn.conn.execute(delete(table).where(table.c.team_id == team_id))

            project_ids = [
                int(r.id)
                for r in txn.conn.execute(
                    select(projects.c.id).where(projects.c.team_id == team_id)
                ).fetchall()
            ]
            task_count = 0
            for project_id in project_ids:
                task_count += txn.delete_project(project_id)["tasks"]

            txn.conn.execute(delete(teams).where(teams.c.id == team_id))

        logger.info(
            "Deleted team %s (%d projects, %d tasks)", team_id, len(project_ids), task_count
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": team_id, "deleted_projects": project_ids, "deleted_tasks": task_count},
        )
