"""IdentityService — the user directory (id <-> email).

The rest of the core treats users as read-only external identities and
resolves them through :meth:`resolve_by_id` / :meth:`resolve_by_email`.
:meth:`register` exists so the directory can be populated locally.
"""

from __future__ import annotations

import logging

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from teamhub.domain.models import User, normalize_email
from teamhub.domain.types import ErrorKind
from teamhub.infrastructure.database.schema import users
from teamhub.services._helpers import now_iso
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceResult
from teamhub.services.telemetry import traced

logger = logging.getLogger(__name__)


def user_data(user: User) -> dict[str, object]:
    return {"id": user.id, "email": user.email, "name": user.name}


class IdentityService(BaseService):
    """Register and resolve users."""

    @traced
    def register(self, email: str, name: str | None = None) -> ServiceResult:
        op = "register_user"
        normalized = normalize_email(email)
        if "@" not in normalized:
            return self._fail(
                op, ErrorKind.INVALID_STATE, f"Invalid email: {email!r}", "INVALID_EMAIL"
            )

        taken = self._fail(
            op,
            ErrorKind.CONFLICT,
            f"A user with email {normalized} already exists",
            "EMAIL_TAKEN",
        )
        try:
            with self._store.transaction() as txn:
                if txn.load_user_by_email(normalized) is not None:
                    return taken
                row = txn.conn.execute(
                    insert(users).values(email=normalized, name=name, created_at=now_iso())
                )
                user_id = int(row.inserted_primary_key[0])
        except IntegrityError:
            logger.warning("Duplicate email detected on insert: %s", normalized)
            return taken

        logger.info("Registered user %s <%s>", user_id, normalized)
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": user_id, "email": normalized, "name": name},
        )

    def resolve_by_id(self, user_id: int) -> User | None:
        with self._store.transaction() as txn:
            return txn.load_user(user_id)

    def resolve_by_email(self, email: str) -> User | None:
        with self._store.transaction() as txn:
            return txn.load_user_by_email(email)

    @traced
    def get(self, user_id: int) -> ServiceResult:
        op = "get_user"
        user = self.resolve_by_id(user_id)
        if user is None:
            return self._not_found(op, "user", user_id)
        return ServiceResult(ok=True, op=op, data=user_data(user))
