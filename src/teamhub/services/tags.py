"""TagService — per-project labels for tasks."""

from __future__ import annotations

import logging

from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError

from teamhub.domain.permissions import has_project_access
from teamhub.domain.types import ErrorKind
from teamhub.infrastructure.database.schema import tags
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#808080"


class TagService(BaseService):
    """Create and list tags. Tag names are unique within a project."""

    @traced
    def create(
        self,
        project_id: int,
        acting_id: int,
        name: str,
        color: str | None = None,
    ) -> ServiceResult:
        op = "create_tag"
        conflict = self._fail(
            op,
            ErrorKind.CONFLICT,
            f"Tag with name '{name}' already exists in this project",
            "DUPLICATE_TAG",
        )
        try:
            with self._store.transaction() as txn:
                project, team = txn.load_project_context(project_id)
                if project is None:
                    return self._not_found(op, "project", project_id)
                if not has_project_access(project, team, acting_id):
                    return self._forbidden(
                        op, "You must be a project member to create tags", "NO_ACCESS"
                    )
                exists = txn.conn.execute(
                    select(tags.c.id).where(tags.c.project_id == project_id, tags.c.name == name)
                ).first()
                if exists is not None:
                    return conflict

                row = txn.conn.execute(
                    insert(tags).values(
                        project_id=project_id, name=name, color=color or DEFAULT_COLOR
                    )
                )
                tag_id = int(row.inserted_primary_key[0])
        except IntegrityError:
            logger.warning("Duplicate tag name detected: %s", name)
            return conflict

        logger.info("Created tag %s '%s' in project %s", tag_id, name, project_id)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": tag_id,
                "project_id": project_id,
                "name": name,
                "color": color or DEFAULT_COLOR,
            },
        )

    @traced
    def list_tags(self, project_id: int, acting_id: int) -> ServiceResult:
        op = "list_tags"
        with self._store.transaction() as txn:
            project, team = txn.load_project_context(project_id)
            if project is None:
                return self._not_found(op, "project", project_id)
            if not has_project_access(project, team, acting_id):
                return self._forbidden(op, "You must be a project member to view tags", "NO_ACCESS")
            rows = txn.conn.execute(
                select(tags).where(tags.c.project_id == project_id).order_by(tags.c.name)
            ).fetchall()

        items = [
            {"id": r.id, "project_id": r.project_id, "name": r.name, "color": r.color}
            for r in rows
        ]
        return ServiceResult(ok=True, op=op, data={"count": len(items), "items": items})

    def count(self, project_id: int) -> int:
        with self._store.transaction() as txn:
            return int(
                txn.conn.execute(
                    select(func.count()).select_from(tags).where(tags.c.project_id == project_id)
                ).scalar_one()
            )
