"""Shared pytest fixtures for teamhub tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
from click.testing import CliRunner

from teamhub.config.settings import TeamhubSettings
from teamhub.infrastructure.store import Store
from teamhub.services.identity import IdentityService
from teamhub.services.projects import ProjectService
from teamhub.services.teams import TeamService


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def bare_store(tmp_path: Path) -> Iterator[Store]:
    """Store with no event bus: mutations dispatch nothing."""
    settings = TeamhubSettings.from_cli(root=tmp_path)
    s = Store(settings)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[Store]:
    """Store with a synchronous event bus and the built-in notifier."""
    settings = TeamhubSettings.from_cli(root=tmp_path, sync=True)
    s = Store(settings)
    s.init_event_bus(sync=True)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_user(store: Store) -> Callable[[str], int]:
    """Register a user by email and return its id."""
    identity = IdentityService(store)

    def _make(email: str) -> int:
        result = identity.register(email, name=email.split("@")[0])
        assert result.ok, result.error
        return int(result.data["id"])

    return _make


@dataclass
class TeamWorld:
    """A team-linked project with one user in every role.

    - ``manager``: team manager
    - ``leader``: promoted team leader, not a project member
    - ``member``: plain team member, not a project member
    - ``owner``: project owner (also a team member)
    - ``outsider``: in neither the team nor the project
    """

    team_id: int
    project_id: int
    manager: int
    leader: int
    member: int
    owner: int
    outsider: int


@pytest.fixture
def world(store: Store, make_user: Callable[[str], int]) -> TeamWorld:
    manager = make_user("manager@example.com")
    leader = make_user("leader@example.com")
    member = make_user("member@example.com")
    owner = make_user("owner@example.com")
    outsider = make_user("outsider@example.com")

    teams = TeamService(store)
    team_id = teams.create(manager, "Platform").data["id"]
    for user_id in (leader, member, owner):
        assert teams.join(team_id, user_id, by_code=True).ok
    assert teams.promote(team_id, manager, leader).ok

    project = ProjectService(store).create(owner, "Billing", team_id=team_id)
    assert project.ok, project.error
    return TeamWorld(
        team_id=team_id,
        project_id=project.data["id"],
        manager=manager,
        leader=leader,
        member=member,
        owner=owner,
        outsider=outsider,
    )
