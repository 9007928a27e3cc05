"""Typed catalogue of the remote actions the data layer uses.

Each function is one closed variant: it knows which payload key its action
answers with and validates that payload into models at the boundary, so the
rest of the package never handles free-form response dicts.
"""

import asyncio
import json
import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.classroom.dispatcher import Dispatcher
from src.classroom.logging import get_logger
from src.classroom.models import (
    AttendanceRecord,
    BulkUpdateReport,
    ClassItem,
    ClassStats,
    GamificationRecord,
    Student,
)
from src.classroom.results import Result

log = get_logger(__name__)

_LIST_ADAPTERS: dict[type[BaseModel], TypeAdapter] = {
    model: TypeAdapter(list[model])
    for model in (AttendanceRecord, ClassItem, Student, GamificationRecord)
}


async def _fetch_list(
    dispatcher: Dispatcher,
    action: str,
    params: Mapping[str, Any],
    payload_key: str,
    model: type[BaseModel],
) -> Result:
    response = await dispatcher.dispatch(action, params)
    if not response.get("success"):
        return Result.fail(response.get("error") or f"{action} failed")

    try:
        items = _LIST_ADAPTERS[model].validate_python(response.get(payload_key) or [])
    except ValidationError as e:
        log.warning(
            "invalid_response",
            action=action,
            payload_key=payload_key,
            errors=e.error_count(),
        )
        return Result.fail(f"invalid {action} response: {e.error_count()} bad item(s)")

    log.debug("action_fetched", action=action, items=len(items))
    return Result.ok(items)


async def fetch_attendance(
    dispatcher: Dispatcher, class_id: str | None = None, date: str | None = None
) -> Result:
    """All attendance rows, optionally narrowed to one class and/or date."""
    return await _fetch_list(
        dispatcher,
        "getAttendance",
        {"classId": class_id, "date": date},
        "attendance",
        AttendanceRecord,
    )


async def fetch_classes(dispatcher: Dispatcher, username: str) -> Result:
    return await _fetch_list(
        dispatcher, "getClasses", {"username": username}, "classes", ClassItem
    )


async def fetch_students(dispatcher: Dispatcher, class_id: str | None = None) -> Result:
    return await _fetch_list(
        dispatcher, "getStudents", {"classId": class_id}, "students", Student
    )


async def fetch_gamification(
    dispatcher: Dispatcher, class_id: str | None = None
) -> Result:
    return await _fetch_list(
        dispatcher,
        "getGamification",
        {"classId": class_id},
        "data",
        GamificationRecord,
    )


async def update_attendance(
    dispatcher: Dispatcher, class_id: str, date: str, marks: Mapping[str, str]
) -> Result:
    """Send every staged mark for one class and date as a single bulk call.

    Args:
        dispatcher: Request dispatcher.
        class_id: Class the marks belong to.
        date: YYYY-MM-DD date the marks apply to.
        marks: {student_username: status}.

    Returns:
        Result carrying a BulkUpdateReport on success. On failure ``data``
        holds {"failed": [...]} when the remote reported which rows failed.
    """
    response = await dispatcher.dispatch(
        "updateAttendance",
        {
            "classId": class_id,
            "date": date,
            "attendanceData": json.dumps(dict(marks)),
        },
    )
    failed = response.get("failed")
    failed = [str(k) for k in failed] if isinstance(failed, list) else []

    if not response.get("success"):
        return Result.fail(
            response.get("error") or "updateAttendance failed",
            data={"failed": failed} if failed else None,
        )

    updated = response.get("updated")
    report = BulkUpdateReport(
        updated=updated if isinstance(updated, int) else None, failed=failed
    )
    return Result.ok(report)


async def fetch_class_stats(dispatcher: Dispatcher, class_id: str) -> Result:
    """Derive one class's statistics from the students, assignments and grades sheets.

    The three reads are independent and run concurrently. Any of them failing
    fails the whole stat so the caller can substitute its fallback.
    """
    students, assignments, grades = await asyncio.gather(
        dispatcher.dispatch("getStudents", {"classId": class_id}),
        dispatcher.dispatch("getAssignments", {"classId": class_id}),
        dispatcher.dispatch("getGrades", {"classId": class_id}),
    )
    for action, response in (
        ("getStudents", students),
        ("getAssignments", assignments),
        ("getGrades", grades),
    ):
        if not response.get("success"):
            return Result.fail(response.get("error") or f"{action} failed")

    def _for_class(rows: Any) -> list[dict]:
        if not isinstance(rows, list):
            return []
        return [r for r in rows if isinstance(r, dict) and str(r.get("classId")) == class_id]

    scores: list[float] = []
    for grade in _for_class(grades.get("grades")):
        score = _as_float(grade.get("score"))
        if score is not None:
            scores.append(score)

    stats = ClassStats(
        students_count=len(_for_class(students.get("students"))),
        assignments_count=len(_for_class(assignments.get("assignments"))),
        average_grade=round(sum(scores) / len(scores), 1) if scores else None,
    )
    return Result.ok(stats)


def _as_float(raw: Any) -> float | None:
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None
