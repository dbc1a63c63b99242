"""BaseService — abstract foundation for all teamhub services.

Every service receives a :class:`Store` at construction time. Services own
their transaction boundaries via ``self._store.transaction()``; a
check-then-write sequence must load and write inside the same one.
Events are dispatched only after the transaction commits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from teamhub.domain.types import ErrorKind
from teamhub.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from teamhub.domain.membership import Rejection
    from teamhub.infrastructure.store import Store

logger = logging.getLogger(__name__)


class BaseService:
    """Abstract base for all service-layer classes.

    Usage::

        class TeamService(BaseService):
            def join(self, team_id: int, user_id: int) -> ServiceResult:
                with self._store.transaction() as txn:
                    ...
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    @staticmethod
    def _fail(
        op: str,
        kind: ErrorKind,
        message: str,
        reason: str | None = None,
        **detail: Any,
    ) -> ServiceResult:
        """Build a failed result carrying a typed rejection."""
        if reason is not None:
            detail["reason"] = reason
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code=kind, message=message, detail=detail),
        )

    @classmethod
    def _not_found(cls, op: str, what: str, ident: object) -> ServiceResult:
        return cls._fail(
            op,
            ErrorKind.NOT_FOUND,
            f"{what.capitalize()} not found: {ident}",
            f"{what.upper().replace(' ', '_')}_NOT_FOUND",
        )

    @classmethod
    def _forbidden(cls, op: str, message: str, reason: str) -> ServiceResult:
        logger.debug("%s denied: %s", op, reason)
        return cls._fail(op, ErrorKind.FORBIDDEN, message, reason)

    @classmethod
    def _rejected(cls, op: str, rejection: Rejection) -> ServiceResult:
        """Translate a domain :class:`Rejection` into a failed result."""
        logger.debug("%s rejected: %s", op, rejection.reason)
        return cls._fail(op, rejection.kind, rejection.message, rejection.reason)

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Dispatch a post-commit event. No-op if event bus not initialized.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        bus = self._store.event_bus
        if bus is None:
            return
        try:
            failure = bus.dispatch(hook_name, payload)
        except Exception:
            logger.warning("Event dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Event dispatch failed for {hook_name}")
            return
        if failure is not None:
            warnings.append(f"Plugin hook failed: {failure}")
