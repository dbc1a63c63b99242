"""Team membership transition rules.

Per (team, user) the roles form a small lattice::

    NonMember -> Invited -> Member <-> Leader
                   join      promote/demote
    Member/Leader -> NonMember   (leave, kick)

The manager is a singleton outside the lattice with no exit transition.

Each ``check_*`` function inspects a team snapshot and returns a
:class:`Rejection` describing why the transition is not allowed, or
``None`` when it may proceed. Nothing here raises for a rule violation.
"""

from __future__ import annotations

from dataclasses import dataclass

from teamhub.domain.models import Team, User
from teamhub.domain.permissions import is_team_leader, is_team_manager
from teamhub.domain.types import MAX_MEMBERS, ErrorKind, JoinMode


@dataclass(frozen=True)
class Rejection:
    """A typed refusal: error kind, stable reason code, human message."""

    kind: ErrorKind
    reason: str
    message: str


def _forbidden(reason: str, message: str) -> Rejection:
    return Rejection(ErrorKind.FORBIDDEN, reason, message)


def _invalid(reason: str, message: str) -> Rejection:
    return Rejection(ErrorKind.INVALID_STATE, reason, message)


def check_manager(team: Team, acting_id: int, action: str) -> Rejection | None:
    """Manager-only actions (invite, promote, demote, delete)."""
    if not is_team_manager(team, acting_id):
        return _forbidden("NOT_MANAGER", f"Only the team owner can {action}")
    return None


def check_join(team: Team, user: User, *, by_code: bool) -> Rejection | None:
    if team.join_mode == JoinMode.ONLY_EMAIL:
        return _invalid(
            "JOIN_DISABLED",
            "This team requires the manager to add members; joining is disabled",
        )
    if user.id in team.member_ids:
        return _invalid("ALREADY_MEMBER", "You are already a member of this team")
    if len(team.member_ids) >= MAX_MEMBERS:
        return _invalid(
            "TEAM_FULL", f"Team has reached maximum member limit of {MAX_MEMBERS}"
        )
    if not by_code and not team.has_invite(user.email):
        return _forbidden("NOT_INVITED", "You must be invited by email to join this team by ID")
    return None


def check_leave(team: Team, user_id: int) -> Rejection | None:
    if user_id not in team.member_ids:
        return _invalid("NOT_A_MEMBER", "You are not a member of this team")
    if is_team_manager(team, user_id):
        return _invalid(
            "MANAGER_CANNOT_LEAVE",
            "Manager cannot leave the team. Delete the team instead.",
        )
    return None


def check_promote(team: Team, acting_id: int, target_id: int) -> Rejection | None:
    rejection = check_manager(team, acting_id, "promote members")
    if rejection is not None:
        return rejection
    if target_id not in team.member_ids:
        return _invalid("NOT_A_MEMBER", "User is not a member of this team")
    if is_team_manager(team, target_id):
        return _invalid("ALREADY_OWNER", "The team owner cannot be promoted")
    if is_team_leader(team, target_id):
        return _invalid("ALREADY_LEADER", "User is already a team leader")
    return None


def check_demote(team: Team, acting_id: int, target_id: int) -> Rejection | None:
    rejection = check_manager(team, acting_id, "demote leaders")
    if rejection is not None:
        return rejection
    if not is_team_leader(team, target_id):
        return _invalid("NOT_A_LEADER", "User is not a team leader")
    return None


def check_kick(team: Team, acting_id: int, target_id: int) -> Rejection | None:
    """Manager kicks anyone but themselves; leaders kick plain members only."""
    if target_id not in team.member_ids:
        return _invalid("NOT_A_MEMBER", "User is not a member of this team")
    if acting_id == target_id:
        return _invalid("SELF_KICK", "You cannot kick yourself. Use leave instead.")
    if is_team_manager(team, target_id):
        return _forbidden("CANNOT_KICK_MANAGER", "Cannot kick the team owner")

    acting_manager = is_team_manager(team, acting_id)
    acting_leader = is_team_leader(team, acting_id)
    if not acting_manager and not acting_leader:
        return _forbidden("NOT_PERMITTED", "You do not have permission to kick members")
    if not acting_manager and is_team_leader(team, target_id):
        return _forbidden("LEADER_CANNOT_KICK_LEADER", "Leaders cannot kick other leaders")
    return None
