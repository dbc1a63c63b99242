"""Tests for ServiceResult, BaseService helpers, and shared helpers."""

from __future__ import annotations

import json

import pytest

from teamhub.domain.membership import Rejection
from teamhub.domain.types import ErrorKind
from teamhub.infrastructure.store import Store
from teamhub.services._helpers import normalize_due_date, paginate
from teamhub.services.base import BaseService
from teamhub.services.result import ServiceError, ServiceResult


class TestServiceResult:
    def test_success_construction(self) -> None:
        result = ServiceResult(ok=True, op="join_team", data={"id": 1})
        assert result.ok is True
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_reason_property(self) -> None:
        error = ServiceError(code="FORBIDDEN", message="no", detail={"reason": "NOT_INVITED"})
        assert error.reason == "NOT_INVITED"
        assert ServiceError(code="FORBIDDEN", message="no").reason is None

    def test_json_serialization(self) -> None:
        result = ServiceResult(ok=True, op="test", data={"key": "value"}, meta={"n": 1})
        parsed = json.loads(result.model_dump_json())
        assert parsed["data"]["key"] == "value"
        assert parsed["meta"]["n"] == 1

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="test")
        with pytest.raises(Exception):
            result.ok = False  # type: ignore[misc]


class TestBaseServiceHelpers:
    def test_not_found_reason(self) -> None:
        result = BaseService._not_found("get_task", "parent comment", 3)
        assert result.error.code == ErrorKind.NOT_FOUND
        assert result.error.reason == "PARENT_COMMENT_NOT_FOUND"
        assert result.error.message == "Parent comment not found: 3"

    def test_rejected_carries_kind_and_reason(self) -> None:
        rejection = Rejection(ErrorKind.INVALID_STATE, "TEAM_FULL", "full")
        result = BaseService._rejected("join_team", rejection)
        assert result.op == "join_team"
        assert result.error.code == ErrorKind.INVALID_STATE
        assert result.error.reason == "TEAM_FULL"

    def test_fail_keeps_extra_detail(self) -> None:
        result = BaseService._fail("x", ErrorKind.CONFLICT, "dup", "DUP", name="bug")
        assert result.error.detail == {"name": "bug", "reason": "DUP"}

    def test_dispatch_without_bus_is_noop(self, bare_store: Store) -> None:
        warnings: list[str] = []
        BaseService(bare_store)._dispatch_event("post_task_create", {"task_id": 1}, warnings)
        assert warnings == []


class TestHelpers:
    def test_date_is_midnight_utc(self) -> None:
        assert normalize_due_date("2030-05-01") == "2030-05-01T00:00:00+00:00"

    def test_offset_is_converted(self) -> None:
        assert normalize_due_date("2030-05-01T02:00:00+02:00") == "2030-05-01T00:00:00+00:00"

    def test_empty(self) -> None:
        assert normalize_due_date(None) is None
        assert normalize_due_date("") is None

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            normalize_due_date("next week")

    def test_paginate(self) -> None:
        assert paginate(0, 20) == (0, 20)
        assert paginate(2, 10) == (20, 10)
        assert paginate(-1, 0) == (0, 1)
