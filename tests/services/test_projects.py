"""Tests for ProjectService — access derivation and project membership."""

from __future__ import annotations

from collections.abc import Callable

from teamhub.domain.types import ErrorKind
from teamhub.infrastructure.store import Store
from teamhub.services.projects import ProjectService
from teamhub.services.result import ServiceResult
from teamhub.services.tags import TagService
from teamhub.services.tasks import TaskService
from teamhub.services.teams import TeamService


def _ok(result: ServiceResult) -> dict:
    assert result.ok, result.error
    return result.data


def _rejected(result: ServiceResult, kind: ErrorKind, reason: str) -> None:
    assert not result.ok
    assert result.error is not None
    assert result.error.code == kind
    assert result.error.reason == reason


class TestCreate:
    def test_owner_is_member(self, store: Store, make_user: Callable[[str], int]) -> None:
        owner = make_user("o@example.com")
        data = _ok(ProjectService(store).create(owner, "Solo", description="notes"))
        assert data["owner_id"] == owner
        assert data["member_ids"] == [owner]
        assert data["team_id"] is None

    def test_unknown_team(self, store: Store, make_user: Callable[[str], int]) -> None:
        owner = make_user("o@example.com")
        result = ProjectService(store).create(owner, "Lost", team_id=77)
        _rejected(result, ErrorKind.NOT_FOUND, "TEAM_NOT_FOUND")


class TestAccess:
    def test_leader_has_access_without_membership(self, store: Store, world) -> None:
        projects = ProjectService(store)
        assert world.leader not in _ok(projects.get(world.project_id, world.owner))["member_ids"]
        assert projects.has_access(world.project_id, world.leader)
        assert projects.can_manage_tasks(world.project_id, world.leader)

    def test_manager_has_access(self, store: Store, world) -> None:
        data = _ok(ProjectService(store).get(world.project_id, world.manager))
        assert data["can_manage_tasks"] is True

    def test_plain_team_member_needs_explicit_add(self, store: Store, world) -> None:
        projects = ProjectService(store)
        assert not projects.has_access(world.project_id, world.member)
        _rejected(
            projects.get(world.project_id, world.member), ErrorKind.FORBIDDEN, "NO_ACCESS"
        )

        _ok(projects.add_member(world.project_id, world.owner, world.member))
        assert projects.has_access(world.project_id, world.member)
        assert not projects.can_manage_tasks(world.project_id, world.member)
        assert _ok(projects.get(world.project_id, world.member))["can_manage_tasks"] is False

    def test_unknown_project_is_no_access(self, store: Store, world) -> None:
        assert not ProjectService(store).has_access(999, world.owner)

    def test_list_for_user_includes_led_team_projects(self, store: Store, world) -> None:
        projects = ProjectService(store)
        ids = [p["id"] for p in _ok(projects.list_for_user(world.leader))["items"]]
        assert ids == [world.project_id]
        assert _ok(projects.list_for_user(world.member))["count"] == 0

    def test_list_for_team_filters_by_access(self, store: Store, world) -> None:
        projects = ProjectService(store)
        assert _ok(projects.list_for_team(world.team_id, world.manager))["count"] == 1
        assert _ok(projects.list_for_team(world.team_id, world.member))["count"] == 0
        _rejected(
            projects.list_for_team(world.team_id, world.outsider),
            ErrorKind.FORBIDDEN,
            "NOT_A_MEMBER",
        )


class TestMembers:
    def test_team_project_requires_team_member(self, store: Store, world) -> None:
        result = ProjectService(store).add_member(world.project_id, world.owner, world.outsider)
        _rejected(result, ErrorKind.INVALID_STATE, "NOT_A_TEAM_MEMBER")

    def test_personal_project_accepts_anyone(
        self, store: Store, make_user: Callable[[str], int]
    ) -> None:
        projects = ProjectService(store)
        owner = make_user("o@example.com")
        friend = make_user("f@example.com")
        project_id = _ok(projects.create(owner, "Solo"))["id"]
        assert friend in _ok(projects.add_member(project_id, owner, friend))["member_ids"]

    def test_leader_may_add_members(self, store: Store, world) -> None:
        assert _ok(ProjectService(store).add_member(world.project_id, world.leader, world.member))

    def test_direct_member_may_not_add(self, store: Store, world) -> None:
        projects = ProjectService(store)
        _ok(projects.add_member(world.project_id, world.owner, world.member))
        result = projects.add_member(world.project_id, world.member, world.manager)
        _rejected(result, ErrorKind.FORBIDDEN, "NOT_PERMITTED")

    def test_duplicate_add(self, store: Store, world) -> None:
        projects = ProjectService(store)
        _ok(projects.add_member(world.project_id, world.owner, world.member))
        result = projects.add_member(world.project_id, world.owner, world.member)
        _rejected(result, ErrorKind.INVALID_STATE, "ALREADY_MEMBER")

    def test_unknown_user(self, store: Store, world) -> None:
        result = ProjectService(store).add_member(world.project_id, world.owner, 999)
        _rejected(result, ErrorKind.NOT_FOUND, "USER_NOT_FOUND")

    def test_owner_cannot_be_removed(self, store: Store, world) -> None:
        result = ProjectService(store).remove_member(world.project_id, world.manager, world.owner)
        _rejected(result, ErrorKind.INVALID_STATE, "CANNOT_REMOVE_OWNER")

    def test_remove_member(self, store: Store, world) -> None:
        projects = ProjectService(store)
        _ok(projects.add_member(world.project_id, world.owner, world.member))
        data = _ok(projects.remove_member(world.project_id, world.owner, world.member))
        assert world.member not in data["member_ids"]
        assert not projects.has_access(world.project_id, world.member)

    def test_remove_non_member(self, store: Store, world) -> None:
        result = ProjectService(store).remove_member(world.project_id, world.owner, world.member)
        _rejected(result, ErrorKind.INVALID_STATE, "NOT_A_MEMBER")

    def test_available_team_members(self, store: Store, world) -> None:
        projects = ProjectService(store)
        data = _ok(projects.available_team_members(world.project_id, world.owner))
        ids = {item["id"] for item in data["items"]}
        assert ids == {world.manager, world.leader, world.member}

    def test_available_requires_team_project(
        self, store: Store, make_user: Callable[[str], int]
    ) -> None:
        projects = ProjectService(store)
        owner = make_user("o@example.com")
        project_id = _ok(projects.create(owner, "Solo"))["id"]
        result = projects.available_team_members(project_id, owner)
        _rejected(result, ErrorKind.INVALID_STATE, "NOT_A_TEAM_PROJECT")

    def test_available_requires_access(self, store: Store, world) -> None:
        result = ProjectService(store).available_team_members(world.project_id, world.member)
        _rejected(result, ErrorKind.FORBIDDEN, "NO_ACCESS")


class TestDelete:
    def test_owner_deletes_with_tasks_and_tags(self, store: Store, world) -> None:
        tag = _ok(TagService(store).create(world.project_id, world.owner, "bug"))
        _ok(TaskService(store).create(world.project_id, world.owner, "Fix", tag_ids=[tag["id"]]))

        data = _ok(ProjectService(store).delete(world.project_id, world.owner))
        assert data["deleted_tasks"] == 1
        assert data["deleted_tags"] == 1
        assert TagService(store).count(world.project_id) == 0

    def test_team_manager_cannot_delete(self, store: Store, world) -> None:
        result = ProjectService(store).delete(world.project_id, world.manager)
        _rejected(result, ErrorKind.FORBIDDEN, "NOT_OWNER")

    def test_team_survives_project_delete(self, store: Store, world) -> None:
        _ok(ProjectService(store).delete(world.project_id, world.owner))
        assert TeamService(store).is_member(world.team_id, world.member)
