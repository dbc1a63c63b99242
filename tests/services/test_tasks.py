"""Tests for TaskService — permissions, listing rule, and notifications."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from teamhub.domain.types import ErrorKind, NotificationType
from teamhub.infrastructure.store import Store
from teamhub.services.identity import IdentityService
from teamhub.services.notifications import NotificationService
from teamhub.services.projects import ProjectService
from teamhub.services.result import ServiceResult
from teamhub.services.tags import TagService
from teamhub.services.tasks import TaskService

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ok(result: ServiceResult) -> dict:
    assert result.ok, result.error
    return result.data


def _rejected(result: ServiceResult, kind: ErrorKind, reason: str) -> None:
    assert not result.ok
    assert result.error is not None
    assert result.error.code == kind
    assert result.error.reason == reason


def _iso(delta: timedelta) -> str:
    return (datetime.now(UTC) + delta).isoformat()


def _types_for(store: Store, user_id: int) -> list[str]:
    items = _ok(NotificationService(store).list_for_user(user_id, size=100))["items"]
    return [item["type"] for item in items]


@pytest.fixture
def member_in_project(store: Store, world):
    """The world's plain team member, added directly to the project."""
    _ok(ProjectService(store).add_member(world.project_id, world.owner, world.member))
    return world


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreate:
    def test_defaults(self, store: Store, world) -> None:
        data = _ok(TaskService(store).create(world.project_id, world.owner, "Write docs"))
        assert data["status"] == "TODO"
        assert data["priority"] == "MEDIUM"
        assert data["created_by"] == world.owner
        assert data["assignee_ids"] == []
        assert data["overdue"] is False

    def test_direct_member_may_create(self, store: Store, member_in_project) -> None:
        w = member_in_project
        assert _ok(TaskService(store).create(w.project_id, w.member, "Mine"))

    def test_outsider_cannot_create(self, store: Store, world) -> None:
        result = TaskService(store).create(world.project_id, world.outsider, "Nope")
        _rejected(result, ErrorKind.FORBIDDEN, "NO_ACCESS")

    def test_plain_team_member_cannot_create(self, store: Store, world) -> None:
        result = TaskService(store).create(world.project_id, world.member, "Nope")
        _rejected(result, ErrorKind.FORBIDDEN, "NO_ACCESS")

    def test_invalid_fields(self, store: Store, world) -> None:
        tasks = TaskService(store)
        _rejected(
            tasks.create(world.project_id, world.owner, "x", status="SOMEDAY"),
            ErrorKind.INVALID_STATE,
            "INVALID_STATUS",
        )
        _rejected(
            tasks.create(world.project_id, world.owner, "x", priority="CRITICAL"),
            ErrorKind.INVALID_STATE,
            "INVALID_PRIORITY",
        )
        _rejected(
            tasks.create(world.project_id, world.owner, "x", due_date="tomorrow"),
            ErrorKind.INVALID_STATE,
            "INVALID_DUE_DATE",
        )

    def test_unknown_assignee(self, store: Store, world) -> None:
        result = TaskService(store).create(world.project_id, world.owner, "x", assignee_ids=[999])
        _rejected(result, ErrorKind.NOT_FOUND, "USER_NOT_FOUND")

    def test_foreign_tags_are_dropped(self, store: Store, world) -> None:
        projects = ProjectService(store)
        tags = TagService(store)
        other_project = _ok(projects.create(world.owner, "Other"))["id"]
        own_tag = _ok(tags.create(world.project_id, world.owner, "bug"))["id"]
        foreign_tag = _ok(tags.create(other_project, world.owner, "bug"))["id"]

        data = _ok(
            TaskService(store).create(
                world.project_id, world.owner, "Tagged", tag_ids=[own_tag, foreign_tag]
            )
        )
        assert data["tag_ids"] == [own_tag]

    def test_unknown_tag(self, store: Store, world) -> None:
        result = TaskService(store).create(world.project_id, world.owner, "x", tag_ids=[555])
        _rejected(result, ErrorKind.NOT_FOUND, "TAG_NOT_FOUND")

    def test_due_date_is_normalized(self, store: Store, world) -> None:
        data = _ok(
            TaskService(store).create(world.project_id, world.owner, "x", due_date="2030-01-31")
        )
        assert data["due_date"] == "2030-01-31T00:00:00+00:00"

    def test_notifies_overseers_and_assignees(self, store: Store, world) -> None:
        _ok(
            TaskService(store).create(
                world.project_id, world.owner, "Ship", assignee_ids=[world.member]
            )
        )
        assert NotificationType.TASK_CREATED in _types_for(store, world.manager)
        assert NotificationType.TASK_CREATED in _types_for(store, world.leader)
        assert _types_for(store, world.member) == [NotificationType.TASK_ASSIGNED]
        assert _types_for(store, world.owner) == []

    def test_no_event_bus_means_no_notifications(self, bare_store: Store) -> None:
        identity = IdentityService(bare_store)
        owner = _ok(identity.register("o@example.com"))["id"]
        helper = _ok(identity.register("h@example.com"))["id"]
        project_id = _ok(ProjectService(bare_store).create(owner, "Solo"))["id"]
        _ok(TaskService(bare_store).create(project_id, owner, "x", assignee_ids=[helper]))
        assert NotificationService(bare_store).unread_count(helper) == 0


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_status_only_by_direct_member(self, store: Store, member_in_project) -> None:
        w = member_in_project
        tasks = TaskService(store)
        task_id = _ok(tasks.create(w.project_id, w.owner, "x", assignee_ids=[w.member]))["id"]

        data = _ok(tasks.update(task_id, w.member, status="IN_PROGRESS"))
        assert data["status"] == "IN_PROGRESS"

    def test_details_need_manage(self, store: Store, member_in_project) -> None:
        w = member_in_project
        tasks = TaskService(store)
        task_id = _ok(tasks.create(w.project_id, w.owner, "x"))["id"]

        result = tasks.update(task_id, w.member, status="DONE", title="renamed")
        _rejected(result, ErrorKind.FORBIDDEN, "NOT_PERMITTED")
        result = tasks.update(task_id, w.member, title="renamed")
        _rejected(result, ErrorKind.FORBIDDEN, "NOT_PERMITTED")

    def test_no_access_is_checked_first(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(tasks.create(world.project_id, world.owner, "x"))["id"]
        result = tasks.update(task_id, world.member, title="renamed")
        _rejected(result, ErrorKind.FORBIDDEN, "NO_ACCESS")

    def test_leader_edits_details(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(tasks.create(world.project_id, world.owner, "x"))["id"]
        data = _ok(tasks.update(task_id, world.leader, title="y", priority="HIGH"))
        assert data["title"] == "y"
        assert data["priority"] == "HIGH"

    def test_unknown_task(self, store: Store, world) -> None:
        _rejected(
            TaskService(store).update(404, world.owner, status="DONE"),
            ErrorKind.NOT_FOUND,
            "TASK_NOT_FOUND",
        )

    def test_status_change_notifies(self, store: Store, member_in_project) -> None:
        w = member_in_project
        tasks = TaskService(store)
        task_id = _ok(tasks.create(w.project_id, w.owner, "x", assignee_ids=[w.member]))["id"]

        _ok(tasks.update(task_id, w.member, status="DONE"))
        assert NotificationType.TASK_STATUS_CHANGED in _types_for(store, w.manager)
        assert NotificationType.TASK_STATUS_CHANGED not in _types_for(store, w.member)

    def test_same_status_does_not_notify(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(tasks.create(world.project_id, world.owner, "x"))["id"]
        _ok(tasks.update(task_id, world.owner, status="TODO"))
        assert NotificationType.TASK_STATUS_CHANGED not in _types_for(store, world.manager)

    def test_only_new_assignees_are_notified(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(
            tasks.create(world.project_id, world.owner, "x", assignee_ids=[world.member])
        )["id"]

        data = _ok(tasks.update(task_id, world.owner, assignee_ids=[world.member, world.leader]))
        assert data["assignee_ids"] == sorted([world.member, world.leader])
        assert _types_for(store, world.member) == [NotificationType.TASK_ASSIGNED]
        assert _types_for(store, world.leader).count(NotificationType.TASK_ASSIGNED) == 1

    def test_clearing_assignees(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(
            tasks.create(world.project_id, world.owner, "x", assignee_ids=[world.member])
        )["id"]
        assert _ok(tasks.update(task_id, world.owner, assignee_ids=[]))["assignee_ids"] == []


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestGetAndDelete:
    def test_assignee_may_get(self, store: Store, world) -> None:
        tasks = TaskService(store)
        task_id = _ok(
            tasks.create(world.project_id, world.owner, "x", assignee_ids=[world.member])
        )["id"]
        assert _ok(tasks.get(task_id, world.member))["id"] == task_id

    def test_unassigned_direct_member_may_not_get(
        self, store: Store, member_in_project
    ) -> None:
        w = member_in_project
        tasks = TaskService(store)
        task_id = _ok(tasks.create(w.project_id, w.owner, "x"))["id"]
        _rejected(tasks.get(task_id, w.member), ErrorKind.FORBIDDEN, "NO_ACCESS")

    def test_delete_needs_manage(self, store: Store, member_in_project) -> None:
        w = member_in_project
        tasks = TaskService(store)
        task_id = _ok(tasks.create(w.project_id, w.owner, "x", assignee_ids=[w.member]))["id"]
        _rejected(tasks.delete(task_id, w.member), ErrorKind.FORBIDDEN, "NOT_PERMITTED")
        assert _ok(tasks.delete(task_id, w.leader))["id"] == task_id
        _rejected(tasks.get(task_id, w.owner), ErrorKind.NOT_FOUND, "TASK_NOT_FOUND")


class TestListingRule:
    @pytest.fixture
    def seeded(self, store: Store, member_in_project):
        w = member_in_project
        tasks = TaskService(store)
        _ok(tasks.create(w.project_id, w.owner, "Mine", assignee_ids=[w.member]))
        _ok(tasks.create(w.project_id, w.owner, "Owner's", assignee_ids=[w.owner]))
        _ok(tasks.create(w.project_id, w.owner, "Nobody's"))
        return w

    def test_manager_sees_everything(self, store: Store, seeded) -> None:
        data = _ok(TaskService(store).list_tasks(seeded.project_id, seeded.leader))
        assert data["total"] == 3
        assert data["effective_assignee_id"] is None

    def test_manager_filter_is_applied(self, store: Store, seeded) -> None:
        data = _ok(
            TaskService(store).list_tasks(
                seeded.project_id, seeded.owner, assignee_id=seeded.member
            )
        )
        assert [t["title"] for t in data["items"]] == ["Mine"]

    def test_member_is_pinned_to_self(self, store: Store, seeded) -> None:
        tasks = TaskService(store)
        for requested in (None, seeded.owner):
            data = _ok(tasks.list_tasks(seeded.project_id, seeded.member, assignee_id=requested))
            assert [t["title"] for t in data["items"]] == ["Mine"]
            assert data["effective_assignee_id"] == seeded.member

    def test_search_applies_rule(self, store: Store, seeded) -> None:
        tasks = TaskService(store)
        assert _ok(tasks.search(seeded.project_id, seeded.owner, "o"))["total"] == 2
        data = _ok(tasks.search(seeded.project_id, seeded.member, "mine"))
        assert [t["title"] for t in data["items"]] == ["Mine"]
        assert _ok(tasks.search(seeded.project_id, seeded.member, "owner"))["total"] == 0

    def test_outsider_cannot_list(self, store: Store, seeded) -> None:
        result = TaskService(store).list_tasks(seeded.project_id, seeded.outsider)
        _rejected(result, ErrorKind.FORBIDDEN, "NO_ACCESS")

    def test_filters(self, store: Store, world) -> None:
        tasks = TaskService(store)
        tag = _ok(TagService(store).create(world.project_id, world.owner, "ops"))["id"]
        _ok(tasks.create(world.project_id, world.owner, "a", priority="HIGH", tag_ids=[tag]))
        _ok(tasks.create(world.project_id, world.owner, "b", status="DONE"))
        _ok(tasks.create(world.project_id, world.owner, "c", due_date="2031-06-01"))

        def titles(**filters: object) -> list[str]:
            data = _ok(tasks.list_tasks(world.project_id, world.owner, **filters))
            return [t["title"] for t in data["items"]]

        assert titles(priority="HIGH") == ["a"]
        assert titles(status="DONE") == ["b"]
        assert titles(tag_id=tag) == ["a"]
        assert titles(due_from="2031-01-01", due_to="2031-12-31") == ["c"]

    def test_pagination(self, store: Store, world) -> None:
        tasks = TaskService(store)
        for i in range(5):
            _ok(tasks.create(world.project_id, world.owner, f"t{i}"))
        data = _ok(tasks.list_tasks(world.project_id, world.owner, page=1, size=2))
        assert [t["title"] for t in data["items"]] == ["t2", "t3"]
        assert data["total"] == 5
        assert data["size"] == 2


class TestAssignedToCaller:
    @pytest.fixture
    def two_projects(self, store: Store, world):
        side = _ok(ProjectService(store).create(world.owner, "Side"))["id"]
        tasks = TaskService(store)
        _ok(tasks.create(world.project_id, world.owner, "Billing", assignee_ids=[world.member]))
        _ok(tasks.create(world.project_id, world.owner, "Owner's", assignee_ids=[world.owner]))
        _ok(
            tasks.create(
                side, world.owner, "Side task", status="DONE", assignee_ids=[world.member]
            )
        )
        return world

    def test_spans_projects(self, store: Store, two_projects) -> None:
        data = _ok(TaskService(store).list_assigned(two_projects.member))
        assert [t["title"] for t in data["items"]] == ["Billing", "Side task"]
        assert data["total"] == 2
        assert data["effective_assignee_id"] == two_projects.member

    def test_status_filter_and_paging(self, store: Store, two_projects) -> None:
        tasks = TaskService(store)
        done = _ok(tasks.list_assigned(two_projects.member, status="DONE"))
        assert [t["title"] for t in done["items"]] == ["Side task"]

        second = _ok(tasks.list_assigned(two_projects.member, page=1, size=1))
        assert [t["title"] for t in second["items"]] == ["Side task"]
        assert second["total"] == 2

    def test_nothing_assigned(self, store: Store, two_projects) -> None:
        assert _ok(TaskService(store).list_assigned(two_projects.outsider))["items"] == []

    def test_rejects_bad_status_and_unknown_user(self, store: Store, world) -> None:
        tasks = TaskService(store)
        _rejected(
            tasks.list_assigned(world.member, status="LATER"),
            ErrorKind.INVALID_STATE,
            "INVALID_STATUS",
        )
        _rejected(tasks.list_assigned(9999), ErrorKind.NOT_FOUND, "USER_NOT_FOUND")


class TestOverdueAndStats:
    def test_overdue_excludes_done(self, store: Store, world) -> None:
        tasks = TaskService(store)
        past = _iso(timedelta(days=-2))
        late = _ok(tasks.create(world.project_id, world.owner, "late", due_date=past))
        _ok(tasks.create(world.project_id, world.owner, "done", due_date=past, status="DONE"))
        _ok(tasks.create(world.project_id, world.owner, "future", due_date=_iso(timedelta(days=3))))

        assert late["overdue"] is True
        data = _ok(tasks.overdue(world.project_id, world.owner))
        assert [t["title"] for t in data["items"]] == ["late"]

    def test_statistics_counts_every_status(self, store: Store, world) -> None:
        tasks = TaskService(store)
        for status in ("TODO", "IN_PROGRESS", "IN_REVIEW", "IN_REVIEW", "DONE", "BLOCKED"):
            _ok(tasks.create(world.project_id, world.owner, status.lower(), status=status))
        _ok(
            tasks.create(
                world.project_id, world.owner, "late", due_date=_iso(timedelta(days=-1))
            )
        )

        data = _ok(tasks.statistics(world.project_id, world.leader))
        assert data["total"] == 7
        assert data["todo"] == 2
        assert data["in_progress"] == 1
        assert data["in_review"] == 2
        assert data["done"] == 1
        assert data["blocked"] == 1
        assert data["overdue"] == 1


class TestDueSoon:
    def test_notifies_assignees_of_open_tasks_in_window(self, store: Store, world) -> None:
        tasks = TaskService(store)
        soon = _iso(timedelta(hours=2))
        due = _ok(
            tasks.create(
                world.project_id, world.owner, "soon", due_date=soon, assignee_ids=[world.owner]
            )
        )
        _ok(
            tasks.create(
                world.project_id,
                world.owner,
                "finished",
                due_date=soon,
                status="DONE",
                assignee_ids=[world.owner],
            )
        )
        _ok(
            tasks.create(
                world.project_id,
                world.owner,
                "later",
                due_date=_iso(timedelta(days=5)),
                assignee_ids=[world.owner],
            )
        )

        data = _ok(tasks.notify_due_soon(hours=24))
        assert data["task_ids"] == [due["id"]]
        assert _types_for(store, world.owner) == [NotificationType.TASK_DUE_SOON]

    def test_repeated_scan_fires_again(self, store: Store, world) -> None:
        tasks = TaskService(store)
        _ok(
            tasks.create(
                world.project_id,
                world.owner,
                "soon",
                due_date=_iso(timedelta(hours=1)),
                assignee_ids=[world.owner],
            )
        )
        _ok(tasks.notify_due_soon(hours=24))
        _ok(tasks.notify_due_soon(hours=24))
        assert _types_for(store, world.owner).count(NotificationType.TASK_DUE_SOON) == 2
