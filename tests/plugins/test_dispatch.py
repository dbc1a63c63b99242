"""Integration tests — service mutations dispatch events after commit."""

from __future__ import annotations

from typing import Any

import pytest

from teamhub.infrastructure.store import Store
from teamhub.plugins import hookimpl
from teamhub.plugins.event_bus import EventBus
from teamhub.plugins.manager import PluginManager
from teamhub.services.identity import IdentityService
from teamhub.services.projects import ProjectService
from teamhub.services.tasks import TaskService

# ---------------------------------------------------------------------------
# Test plugins
# ---------------------------------------------------------------------------


class RecordingPlugin:
    """Plugin that records the hook calls it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @hookimpl
    def post_project_create(self, project_id: int, actor_id: int) -> None:
        self.calls.append(("post_project_create", {"project_id": project_id}))

    @hookimpl
    def post_task_update(
        self,
        task_id: int,
        actor_id: int,
        old_status: str,
        new_status: str,
        added_assignee_ids: list[int],
        fields_changed: list[str],
    ) -> None:
        self.calls.append(
            (
                "post_task_update",
                {
                    "old_status": old_status,
                    "new_status": new_status,
                    "added_assignee_ids": added_assignee_ids,
                    "fields_changed": fields_changed,
                },
            )
        )


class BrokenPlugin:
    """Plugin that raises on every hook it implements."""

    @hookimpl
    def post_project_create(self, project_id: int, actor_id: int) -> None:
        msg = "Broken plugin!"
        raise RuntimeError(msg)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _register(store: Store, email: str) -> int:
    result = IdentityService(store).register(email)
    assert result.ok, result.error
    return int(result.data["id"])


def _install(store: Store, plugin: object) -> None:
    pm = PluginManager()
    pm.register_plugin(plugin, name="under-test")
    store._event_bus = EventBus(pm, sync=True)


@pytest.fixture
def recorder(bare_store: Store) -> RecordingPlugin:
    plugin = RecordingPlugin()
    _install(bare_store, plugin)
    return plugin


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_project_create_dispatches(
        self, bare_store: Store, recorder: RecordingPlugin
    ) -> None:
        owner = _register(bare_store, "o@example.com")
        result = ProjectService(bare_store).create(owner, "Solo")
        assert result.ok
        assert recorder.calls == [("post_project_create", {"project_id": result.data["id"]})]

    def test_rejected_mutation_dispatches_nothing(
        self, bare_store: Store, recorder: RecordingPlugin
    ) -> None:
        assert not ProjectService(bare_store).create(999, "Ghost").ok
        assert recorder.calls == []

    def test_update_payload(self, bare_store: Store, recorder: RecordingPlugin) -> None:
        owner = _register(bare_store, "o@example.com")
        helper = _register(bare_store, "h@example.com")
        project_id = ProjectService(bare_store).create(owner, "Solo").data["id"]
        tasks = TaskService(bare_store)
        task_id = tasks.create(project_id, owner, "x").data["id"]

        assert tasks.update(task_id, owner, status="DONE", assignee_ids=[helper]).ok
        name, payload = recorder.calls[-1]
        assert name == "post_task_update"
        assert payload == {
            "old_status": "TODO",
            "new_status": "DONE",
            "added_assignee_ids": [helper],
            "fields_changed": ["status", "assignee_ids"],
        }


class TestHookFailure:
    def test_failure_becomes_warning(self, bare_store: Store) -> None:
        _install(bare_store, BrokenPlugin())

        owner = _register(bare_store, "o@example.com")
        result = ProjectService(bare_store).create(owner, "Still created")
        assert result.ok
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Plugin hook failed: post_project_create")
        assert ProjectService(bare_store).has_access(result.data["id"], owner)

    def test_store_event_bus_includes_notifier(self, store: Store) -> None:
        assert store.event_bus is not None
        assert store.event_bus.is_sync
        assert "notifier-builtin" in store.event_bus._pm.list_plugin_names()
