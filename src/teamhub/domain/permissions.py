"""Authorization engine — capability derivation from membership snapshots.

Every function here is pure: it reads the snapshots it is given and
nothing else. Services load a consistent snapshot (team, project, task)
inside one transaction and ask these predicates; the fan-out planner and
the channel guard route through the same functions.

Capabilities:

- **access**: may see a project and its tasks.
- **manage**: may create/delete tasks, edit task details, and manage
  project members.

Plain team members are never implicitly granted project access.
"""

from __future__ import annotations

from teamhub.domain.models import Project, Task, Team


def _linked_team(project: Project, team: Team | None) -> Team | None:
    """Return *team* only if it is the team *project* belongs to."""
    if project.team_id is None or team is None or team.id != project.team_id:
        return None
    return team


# --- Team predicates ---


def is_team_manager(team: Team | None, user_id: int) -> bool:
    return team is not None and team.manager_id == user_id


def is_team_leader(team: Team | None, user_id: int) -> bool:
    return team is not None and user_id in team.leader_ids


def is_team_owner_or_leader(team: Team | None, user_id: int) -> bool:
    return is_team_manager(team, user_id) or is_team_leader(team, user_id)


def is_team_member(team: Team | None, user_id: int) -> bool:
    """Manager or roster member."""
    return team is not None and (team.manager_id == user_id or user_id in team.member_ids)


def team_overseers(team: Team | None) -> frozenset[int]:
    """Manager plus leaders: the users with oversight of a team's projects."""
    if team is None:
        return frozenset()
    return frozenset({team.manager_id}) | team.leader_ids


# --- Project predicates ---


def has_project_access(project: Project, team: Team | None, user_id: int) -> bool:
    """Owner, direct member, or manager/leader of the linked team."""
    if user_id == project.owner_id or user_id in project.member_ids:
        return True
    return is_team_owner_or_leader(_linked_team(project, team), user_id)


def can_manage_tasks(project: Project, team: Team | None, user_id: int) -> bool:
    """Owner, or manager/leader of the linked team.

    Implies :func:`has_project_access` for every reachable state.
    """
    if user_id == project.owner_id:
        return True
    return is_team_owner_or_leader(_linked_team(project, team), user_id)


def project_overseers(project: Project, team: Team | None) -> frozenset[int]:
    """Team manager and leaders for a team-linked project, else empty."""
    return team_overseers(_linked_team(project, team))


# --- Task predicates ---


def can_access_task(task: Task, project: Project, team: Team | None, user_id: int) -> bool:
    """Assignee, project owner, or manager/leader of the project's team.

    Direct project members who are not assigned do *not* qualify here;
    they only see tasks through the listing rule and task chat fallback.
    """
    if user_id in task.assignee_ids:
        return True
    return can_manage_tasks(project, team, user_id)


def can_update_task(
    project: Project,
    team: Team | None,
    user_id: int,
    *,
    status_only: bool,
) -> bool:
    """Status-only edits need access; anything else needs manage."""
    if status_only:
        return has_project_access(project, team, user_id)
    return can_manage_tasks(project, team, user_id)


def effective_assignee_filter(
    project: Project,
    team: Team | None,
    user_id: int,
    requested: int | None,
) -> int | None:
    """Apply the listing rule to a requested assignee filter.

    Managers get what they asked for. Everyone else is pinned to their own
    id regardless of the request.
    """
    if can_manage_tasks(project, team, user_id):
        return requested
    return user_id


def can_access_task_channel(
    task: Task,
    project: Project,
    team: Team | None,
    user_id: int,
) -> bool:
    """Task chat: direct task access, falling back to project access."""
    return can_access_task(task, project, team, user_id) or has_project_access(
        project, team, user_id
    )
