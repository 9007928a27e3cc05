# tests/conftest.py

import copy
import inspect
from collections.abc import Callable
from typing import Any

import pytest

from src.classroom.config import ClassroomConfig
from src.classroom.models import AttendanceRecord


class FakeDispatcher:
    """Scripted stand-in for the remote dispatcher.

    ``responses`` maps an action to a result dict, or to a (sync or async)
    callable taking the params and returning one.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, dict]] = []

    async def dispatch(self, action: str, params: dict | None = None) -> dict:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        self.calls.append((action, params))
        response = self.responses.get(
            action, {"success": False, "error": f"Unknown action: {action}"}
        )
        if callable(response):
            response = response(params)
        if inspect.isawaitable(response):
            response = await response
        return copy.deepcopy(response)

    def calls_for(self, action: str) -> list[dict]:
        return [params for name, params in self.calls if name == action]


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def fast_config() -> ClassroomConfig:
    return ClassroomConfig(
        _env_file=None,
        priority_tier_size=3,
        trailing_interval_seconds=0.001,
        completion_factor_seconds=0.001,
        page_size=20,
        reveal_delay_seconds=0.0,
    )


@pytest.fixture
def make_record() -> Callable[..., AttendanceRecord]:
    counter = iter(range(1, 100_000))

    def _make(
        status: str = "present",
        student: str = "alice",
        date: str = "2025-03-03",
        class_id: str = "c1",
        **extra: Any,
    ) -> AttendanceRecord:
        return AttendanceRecord(
            id=extra.pop("id", f"att{next(counter)}"),
            class_id=class_id,
            date=date,
            student_username=student,
            status=status,
            **extra,
        )

    return _make


def attendance_row(
    record_id: str,
    student: str,
    status: str,
    date: str = "2025-03-03",
    class_id: str = "c1",
) -> dict:
    """One attendance row as the remote sheet returns it (camelCase)."""
    return {
        "id": record_id,
        "classId": class_id,
        "date": date,
        "studentUsername": student,
        "status": status,
        "notes": "",
    }
