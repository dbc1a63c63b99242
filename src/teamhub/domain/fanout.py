"""Notification fan-out planner — event -> recipients, as a pure function.

Each ``plan_*`` function takes the snapshots relevant to one domain event
plus the acting user and returns one :class:`NotificationDraft` per
recipient. Recipient sets are deduplicated in the order roles are
considered (team overseers first, then event-specific users) and always
exclude the actor. Persisting the drafts is the caller's job, after the
triggering mutation has committed.

| Event                    | Recipients                                         |
|--------------------------|----------------------------------------------------|
| project created          | team manager + leaders, explicit project members   |
| member added to project  | the added member, team manager + leaders           |
| task created             | team manager + leaders, assignees                  |
| task status changed      | team manager + leaders, current assignees          |
| task assigned            | newly added assignees only                         |
| task due soon            | all current assignees (no actor)                   |
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel

from teamhub.domain.models import Project, Task, Team, User
from teamhub.domain.permissions import project_overseers
from teamhub.domain.types import NotificationType


class NotificationDraft(BaseModel):
    """A notification not yet persisted."""

    model_config = {"frozen": True}

    recipient_id: int
    type: NotificationType
    title: str
    message: str
    reference_id: int
    reference_type: str
    secondary_reference_id: int | None = None


class _RecipientSet:
    """Ordered, deduplicated recipients excluding the actor."""

    def __init__(self, actor_id: int | None) -> None:
        self._actor_id = actor_id
        self._seen: set[int] = set()
        self.drafts: list[NotificationDraft] = []

    def add(self, user_ids: Iterable[int], **fields: object) -> None:
        for user_id in sorted(user_ids):
            if user_id == self._actor_id or user_id in self._seen:
                continue
            self._seen.add(user_id)
            draft = NotificationDraft(recipient_id=user_id, **fields)  # type: ignore[arg-type]
            self.drafts.append(draft)


def plan_project_created(
    project: Project,
    team: Team | None,
    actor_id: int,
) -> list[NotificationDraft]:
    recipients = _RecipientSet(actor_id)
    common = {
        "type": NotificationType.PROJECT_CREATED,
        "title": "New Project Created",
        "message": f"Project '{project.name}' has been created",
        "reference_id": project.id,
        "reference_type": "project",
    }
    recipients.add(project_overseers(project, team), **common)
    recipients.add(project.member_ids, **common)
    return recipients.drafts


def plan_member_added(
    project: Project,
    team: Team | None,
    added: User,
    actor_id: int,
) -> list[NotificationDraft]:
    recipients = _RecipientSet(actor_id)
    recipients.add(
        [added.id],
        type=NotificationType.ADDED_TO_PROJECT,
        title="Added to Project",
        message=f"You have been added to project '{project.name}'",
        reference_id=project.id,
        reference_type="project",
    )
    recipients.add(
        project_overseers(project, team),
        type=NotificationType.MEMBER_ADDED_TO_PROJECT,
        title="Member Added to Project",
        message=f"{added.email} was added to project '{project.name}'",
        reference_id=project.id,
        reference_type="project",
    )
    return recipients.drafts


def plan_task_created(
    task: Task,
    project: Project,
    team: Team | None,
    actor_id: int,
) -> list[NotificationDraft]:
    recipients = _RecipientSet(actor_id)
    task_ref = {
        "reference_id": task.id,
        "reference_type": "task",
        "secondary_reference_id": project.id,
    }
    recipients.add(
        project_overseers(project, team),
        type=NotificationType.TASK_CREATED,
        title="New Task Created",
        message=f"Task '{task.title}' has been created in project '{project.name}'",
        **task_ref,
    )
    recipients.add(
        task.assignee_ids,
        type=NotificationType.TASK_ASSIGNED,
        title="Task Assigned to You",
        message=f"You have been assigned to task '{task.title}'",
        **task_ref,
    )
    return recipients.drafts


def plan_task_status_changed(
    task: Task,
    project: Project,
    team: Team | None,
    old_status: str,
    new_status: str,
    actor_id: int,
) -> list[NotificationDraft]:
    recipients = _RecipientSet(actor_id)
    fields = {
        "type": NotificationType.TASK_STATUS_CHANGED,
        "title": "Task Status Updated",
        "message": f"Task '{task.title}' status changed from {old_status} to {new_status}",
        "reference_id": task.id,
        "reference_type": "task",
        "secondary_reference_id": project.id,
    }
    recipients.add(project_overseers(project, team), **fields)
    recipients.add(task.assignee_ids, **fields)
    return recipients.drafts


def plan_task_assigned(
    task: Task,
    project: Project,
    new_assignee_ids: Iterable[int],
    actor_id: int,
) -> list[NotificationDraft]:
    recipients = _RecipientSet(actor_id)
    recipients.add(
        new_assignee_ids,
        type=NotificationType.TASK_ASSIGNED,
        title="Task Assigned to You",
        message=f"You have been assigned to task '{task.title}'",
        reference_id=task.id,
        reference_type="task",
        secondary_reference_id=project.id,
    )
    return recipients.drafts


def plan_task_due_soon(task: Task, project: Project) -> list[NotificationDraft]:
    recipients = _RecipientSet(None)
    recipients.add(
        task.assignee_ids,
        type=NotificationType.TASK_DUE_SOON,
        title="Task Due Soon",
        message=f"Task '{task.title}' is due soon",
        reference_id=task.id,
        reference_type="task",
        secondary_reference_id=project.id,
    )
    return recipients.drafts
