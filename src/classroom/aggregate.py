"""Aggregation engine: pure summaries of a full record collection.

Nothing here is incremental. Every call scans the whole collection it is
given, which keeps the results trivially consistent with the store; the
collections are bounded by one teacher's classes and terms.
"""

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date

from src.classroom.models import (
    ATTENDANCE_CATEGORIES,
    AggregateStats,
    AttendanceRecord,
    ClassItem,
    ClassOverview,
    ClassStats,
    GamificationRecord,
    LeaderboardEntry,
    LeaderboardStats,
    Student,
)


def aggregate(
    records: Iterable[AttendanceRecord],
    categories: Sequence[str] = ATTENDANCE_CATEGORIES,
    category_of: Callable[[AttendanceRecord], str] = lambda r: r.status,
    date_of: Callable[[AttendanceRecord], str] = lambda r: r.date,
    entity_of: Callable[[AttendanceRecord], str] = lambda r: r.student_username,
) -> AggregateStats:
    """Summarize a collection of records.

    Args:
        records: The complete current collection.
        categories: Closed category enumeration; each is reported even at 0.
        category_of: Category accessor.
        date_of: Date accessor (ISO strings sort chronologically).
        entity_of: Entity accessor for the distinct-entity count.

    Returns:
        AggregateStats. A record whose category is outside ``categories`` is
        counted under its own key, so the counts always sum to the total.
    """
    counts = Counter({category: 0 for category in categories})
    dates: set[str] = set()
    entities: set[str] = set()
    total = 0

    for record in records:
        total += 1
        counts[category_of(record)] += 1
        day = date_of(record)
        if day:
            dates.add(day)
        entity = entity_of(record)
        if entity:
            entities.add(entity)

    date_range = (min(dates), max(dates)) if dates else None

    return AggregateStats(
        counts_by_category=dict(counts),
        total_records=total,
        distinct_dates=len(dates),
        distinct_entities=len(entities),
        date_range=date_range,
    )


def format_date_range(stats: AggregateStats) -> str:
    """Render the date range as "03 Mar" or "03 Mar - 14 Mar"."""
    if stats.date_range is None:
        return ""
    first, last = (_short_date(d) for d in stats.date_range)
    if stats.date_range[0] == stats.date_range[1]:
        return first
    return f"{first} - {last}"


def _short_date(iso: str) -> str:
    try:
        return date.fromisoformat(iso).strftime("%d %b")
    except ValueError:
        return iso


def summarize_classes(
    classes: Sequence[ClassItem], stats_map: Mapping[str, ClassStats]
) -> ClassOverview:
    """Roll per-class stats up into one overview.

    Classes whose stats have not arrived yet count toward ``total_classes``
    only. The average is the mean of the per-class averages that exist.
    """
    loaded = [stats_map[c.id] for c in classes if c.id in stats_map]
    grades = [s.average_grade for s in loaded if s.average_grade is not None]

    return ClassOverview(
        total_classes=len(classes),
        stats_loaded=len(loaded),
        total_students=sum(s.students_count for s in loaded),
        total_assignments=sum(s.assignments_count for s in loaded),
        average_grade=round(sum(grades) / len(grades), 1) if grades else None,
    )


def combine_leaderboard(
    students: Iterable[Student], gamification: Iterable[GamificationRecord]
) -> list[LeaderboardEntry]:
    """Join students with their gamification rows by (username, class).

    Students without a row start at 0 points, level 1. Badge names are
    listed first among the achievements.
    """
    by_key = {(g.student_username, g.class_id): g for g in gamification}
    entries = []
    for student in students:
        row = by_key.get((student.username, student.class_id))
        badges = row.badge_names if row else []
        achievements = row.achievement_names if row else []
        entries.append(
            LeaderboardEntry(
                id=f"{student.class_id}-{student.username}",
                name=student.full_name or student.username,
                username=student.username,
                class_id=student.class_id,
                points=row.points if row else 0,
                level=row.level if row else 1,
                badges=len(badges),
                achievements=tuple(badges + achievements),
            )
        )
    return entries


def rank_leaderboard(
    entries: Iterable[LeaderboardEntry], limit: int | None = 10
) -> list[LeaderboardEntry]:
    """Highest points first; ties keep name order."""
    ranked = sorted(entries, key=lambda e: (-e.points, e.name))
    return ranked if limit is None else ranked[:limit]


def summarize_leaderboard(entries: Sequence[LeaderboardEntry]) -> LeaderboardStats:
    total_points = sum(e.points for e in entries)
    return LeaderboardStats(
        total_students=len(entries),
        total_points=total_points,
        average_points=round(total_points / len(entries), 1) if entries else 0.0,
        students_by_level=dict(sorted(Counter(e.level for e in entries).items())),
    )
