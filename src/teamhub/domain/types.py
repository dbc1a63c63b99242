"""Enumerations shared across the domain.

Values are the persisted string forms; the ``StrEnum`` members compare
equal to their raw strings so rows read back from SQLite need no mapping.
"""

from __future__ import annotations

from enum import StrEnum


class JoinMode(StrEnum):
    """Policy governing how a user may self-join a team.

    Only ``ONLY_EMAIL`` changes behaviour: it disables self-join entirely.
    The remaining modes all allow joining by code, or by id once invited.
    """

    EITHER = "EITHER"
    BOTH = "BOTH"
    ONLY_EMAIL = "ONLY_EMAIL"
    ONLY_ID = "ONLY_ID"


class ChannelType(StrEnum):
    """Real-time channel families."""

    TEAM = "team"
    PROJECT = "project"
    TASK = "task"


class TaskStatus(StrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationType(StrEnum):
    """Notification kinds emitted by the fan-out planner."""

    PROJECT_CREATED = "PROJECT_CREATED"
    ADDED_TO_PROJECT = "ADDED_TO_PROJECT"
    MEMBER_ADDED_TO_PROJECT = "MEMBER_ADDED_TO_PROJECT"
    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_DUE_SOON = "TASK_DUE_SOON"


class ErrorKind(StrEnum):
    """Rejection taxonomy carried in ``ServiceError.code``."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"


# Team capacity, manager included.
MAX_MEMBERS = 10
