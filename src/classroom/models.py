"""Pydantic models for classroom records and derived statistics.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Remote payloads use camelCase keys; models accept both the alias and the
field name so tests and callers can build them either way.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_REMOTE = ConfigDict(
    populate_by_name=True,
    coerce_numbers_to_str=True,
    extra="allow",
)


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    SICK = "sick"
    PERMISSION = "permission"
    ABSENT = "absent"


ATTENDANCE_CATEGORIES: tuple[str, ...] = tuple(s.value for s in AttendanceStatus)


class AttendanceRecord(BaseModel):
    """One attendance mark for one student on one date.

    ``class_id`` is the parent key, ``status`` the category and ``date`` the
    timestamp used for distinct-date counting and the date range. Unknown
    columns from the sheet are kept as extra fields.
    """

    model_config = _REMOTE

    id: str
    class_id: str = Field(default="", alias="classId")
    date: str = ""
    student_username: str = Field(default="", alias="studentUsername")
    status: str = ""
    notes: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value: object) -> object:
        # Sheets serialize dates as "2025-03-03T00:00:00.000Z"
        if isinstance(value, str) and len(value) > 10 and value[4] == "-":
            return value[:10]
        return value


class ClassItem(BaseModel):
    model_config = _REMOTE

    id: str
    name: str = ""
    subject: str = ""
    description: str = ""
    teacher_username: str = Field(default="", alias="teacherUsername")
    created_at: str = Field(default="", alias="createdAt")


class Student(BaseModel):
    model_config = _REMOTE

    id: str = ""
    username: str
    full_name: str = Field(default="", alias="fullName")
    class_id: str = Field(default="", alias="classId")


class ClassStats(BaseModel):
    """Per-class derived figures, loaded one class at a time."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    students_count: int = Field(default=0, alias="studentsCount")
    assignments_count: int = Field(default=0, alias="assignmentsCount")
    average_grade: float | None = Field(default=None, alias="averageGrade")

    @classmethod
    def zero(cls) -> "ClassStats":
        """Fallback published when a class's stats cannot be fetched."""
        return cls(students_count=0, assignments_count=0, average_grade=None)


class GamificationRecord(BaseModel):
    model_config = _REMOTE

    class_id: str = Field(default="", alias="classId")
    student_username: str = Field(default="", alias="studentUsername")
    points: int = 0
    level: int = 1
    badges: str = ""  # comma-separated badge names
    achievements: str = ""  # comma-separated achievement names
    updated_at: str = Field(default="", alias="updatedAt")

    @property
    def badge_names(self) -> list[str]:
        return _split_names(self.badges)

    @property
    def achievement_names(self) -> list[str]:
        return _split_names(self.achievements)


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # "{class_id}-{username}"
    name: str
    username: str
    class_id: str
    points: int = 0
    level: int = 1
    badges: int = 0
    achievements: tuple[str, ...] = ()


class AggregateStats(BaseModel):
    """Summary of a full record collection.

    Always produced by a fresh scan; ``sum(counts_by_category.values())``
    equals ``total_records``.
    """

    model_config = ConfigDict(frozen=True)

    counts_by_category: dict[str, int]
    total_records: int = 0
    distinct_dates: int = 0
    distinct_entities: int = 0
    date_range: tuple[str, str] | None = None

    def count(self, category: str | AttendanceStatus) -> int:
        key = category.value if isinstance(category, AttendanceStatus) else category
        return self.counts_by_category.get(key, 0)


class ClassOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_classes: int = 0
    stats_loaded: int = 0
    total_students: int = 0
    total_assignments: int = 0
    average_grade: float | None = None


class LeaderboardStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_students: int = 0
    total_points: int = 0
    average_points: float = 0.0
    students_by_level: dict[int, int] = Field(default_factory=dict)


class BulkUpdateReport(BaseModel):
    """Optional partial-success fields of an ``updateAttendance`` response."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    updated: int | None = None
    failed: list[str] = Field(default_factory=list)


class CommitReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    succeeded: int
    failed: list[str] = Field(default_factory=list)


def _split_names(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]
