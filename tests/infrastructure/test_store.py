"""Tests for Store — database setup, snapshots, write locking, cascades."""

from __future__ import annotations

import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from sqlalchemy import func, insert, select, text

from teamhub.config.settings import TeamhubSettings
from teamhub.domain.types import MAX_MEMBERS
from teamhub.infrastructure.database.schema import (
    comments,
    tags,
    task_assignees,
    tasks,
    team_members,
    users,
)
from teamhub.infrastructure.store import Store
from teamhub.services.comments import CommentService
from teamhub.services.result import ServiceResult
from teamhub.services.tags import TagService
from teamhub.services.tasks import TaskService
from teamhub.services.teams import TeamService

# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestStoreInit:
    def test_creates_database(self, bare_store: Store, tmp_path: Path) -> None:
        assert (tmp_path / ".teamhub" / "teamhub.db").exists()
        assert bare_store.root == tmp_path

    def test_store_name_from_settings(self, tmp_path: Path) -> None:
        (tmp_path / "teamhub.toml").write_text('[store]\nname = "alt"\n')
        store = Store(TeamhubSettings.from_cli(root=tmp_path))
        try:
            assert (tmp_path / ".teamhub" / "alt.db").exists()
        finally:
            store.close()

    def test_reopen_is_idempotent(self, tmp_path: Path) -> None:
        settings = TeamhubSettings.from_cli(root=tmp_path)
        first = Store(settings)
        with first.transaction() as txn:
            txn.conn.execute(insert(users).values(email="a@example.com"))
        first.close()

        second = Store(settings)
        try:
            with second.transaction() as txn:
                assert txn.load_user_by_email("A@Example.com") is not None
        finally:
            second.close()

    def test_pragmas(self, bare_store: Store) -> None:
        with bare_store.engine.connect() as conn:
            assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_no_event_bus_until_initialized(self, bare_store: Store) -> None:
        assert bare_store.event_bus is None
        bare_store.init_event_bus(sync=True)
        assert bare_store.event_bus is not None


# ---------------------------------------------------------------------------
# Transactions and snapshots
# ---------------------------------------------------------------------------


class TestTransaction:
    def test_rollback_on_exception(self, bare_store: Store) -> None:
        with pytest.raises(RuntimeError), bare_store.transaction() as txn:
            txn.conn.execute(insert(users).values(email="gone@example.com"))
            raise RuntimeError("boom")

        with bare_store.transaction() as txn:
            count = txn.conn.execute(select(func.count()).select_from(users)).scalar_one()
        assert count == 0

    def test_missing_aggregates_load_as_none(self, bare_store: Store) -> None:
        with bare_store.transaction() as txn:
            assert txn.load_user(1) is None
            assert txn.load_team(None) is None
            assert txn.load_team(1) is None
            assert txn.load_task(1) is None
            assert txn.load_project_context(1) == (None, None)

    def test_team_snapshot(self, store: Store, world) -> None:
        with store.transaction() as txn:
            team = txn.load_team(world.team_id)
        assert team is not None
        assert team.manager_id == world.manager
        members = {world.manager, world.leader, world.member, world.owner}
        assert team.member_ids == frozenset(members)
        assert team.leader_ids == frozenset({world.leader})

    def test_project_context(self, store: Store, world) -> None:
        with store.transaction() as txn:
            project, team = txn.load_project_context(world.project_id)
        assert project is not None
        assert team is not None
        assert project.owner_id == world.owner
        assert project.member_ids == frozenset({world.owner})
        assert team.id == world.team_id


# ---------------------------------------------------------------------------
# Cross-store write serialization
# ---------------------------------------------------------------------------


class TestWriteLock:
    def test_second_store_waits_for_open_transaction(
        self, store: Store, make_user: Callable[[str], int]
    ) -> None:
        teams = TeamService(store)
        manager = make_user("m@example.com")
        team_id = teams.create(manager, "T").data["id"]
        for i in range(MAX_MEMBERS - 2):
            assert teams.join(team_id, make_user(f"u{i}@example.com"), by_code=True).ok
        first = make_user("first@example.com")
        late = make_user("late@example.com")

        # A second Store on the same root stands in for another CLI process.
        other = Store(store.settings)
        results: list[ServiceResult] = []
        worker = threading.Thread(
            target=lambda: results.append(TeamService(other).join(team_id, late, by_code=True))
        )
        try:
            with store.transaction() as txn:
                team = txn.load_team(team_id)
                assert team is not None
                assert len(team.member_ids) == MAX_MEMBERS - 1
                worker.start()
                time.sleep(0.2)
                assert results == []
                txn.conn.execute(insert(team_members).values(team_id=team_id, user_id=first))
            worker.join(timeout=10)
        finally:
            other.close()

        assert len(results) == 1
        assert not results[0].ok
        assert results[0].error is not None
        assert results[0].error.reason == "TEAM_FULL"
        assert teams.get(team_id, manager).data["member_count"] == MAX_MEMBERS

    def test_transaction_holds_write_lock_from_start(self, bare_store: Store) -> None:
        other = Store(bare_store.settings)
        raw = other.engine.raw_connection()
        try:
            cursor = raw.cursor()
            cursor.execute("PRAGMA busy_timeout=0")
            with bare_store.transaction():
                with pytest.raises(sqlite3.OperationalError, match="locked"):
                    cursor.execute("BEGIN IMMEDIATE")
            cursor.execute("BEGIN IMMEDIATE")
            cursor.execute("ROLLBACK")
            cursor.close()
        finally:
            raw.close()
            other.close()


# ---------------------------------------------------------------------------
# Cascades
# ---------------------------------------------------------------------------


class TestCascade:
    def test_delete_project_removes_children(self, store: Store, world) -> None:
        tag_id = TagService(store).create(world.project_id, world.owner, "bug").data["id"]
        task_id = (
            TaskService(store)
            .create(
                world.project_id,
                world.owner,
                "Fix",
                assignee_ids=[world.member],
                tag_ids=[tag_id],
            )
            .data["id"]
        )
        svc = CommentService(store)
        parent = svc.add(task_id, world.owner, "first").data["id"]
        assert svc.add(task_id, world.owner, "reply", parent_id=parent).ok

        with store.transaction() as txn:
            counts = txn.delete_project(world.project_id)
        assert counts == {"tasks": 1, "tags": 1}

        with store.transaction() as txn:
            for table in (tasks, tags, comments, task_assignees):
                remaining = txn.conn.execute(select(func.count()).select_from(table)).scalar_one()
                assert remaining == 0, table.name
            assert txn.load_project_context(world.project_id) == (None, None)

    def test_delete_tasks_empty(self, bare_store: Store) -> None:
        with bare_store.transaction() as txn:
            assert txn.delete_tasks([]) == 0
