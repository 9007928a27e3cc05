# tests/test_aggregate.py

from src.classroom.aggregate import (
    aggregate,
    combine_leaderboard,
    format_date_range,
    rank_leaderboard,
    summarize_classes,
    summarize_leaderboard,
)
from src.classroom.models import (
    AttendanceStatus,
    ClassItem,
    ClassStats,
    GamificationRecord,
    Student,
)


def test_aggregate_counts_by_status(make_record):
    records = (
        [make_record("present") for _ in range(7)]
        + [make_record("absent") for _ in range(2)]
        + [make_record("sick")]
    )

    stats = aggregate(records)

    assert stats.count("present") == 7
    assert stats.count("absent") == 2
    assert stats.count(AttendanceStatus.SICK) == 1
    assert stats.count("permission") == 0
    assert stats.total_records == 10
    assert sum(stats.counts_by_category.values()) == stats.total_records


def test_aggregate_empty_collection():
    stats = aggregate([])

    assert stats.total_records == 0
    assert stats.counts_by_category == {
        "present": 0,
        "sick": 0,
        "permission": 0,
        "absent": 0,
    }
    assert stats.distinct_dates == 0
    assert stats.distinct_entities == 0
    assert stats.date_range is None
    assert format_date_range(stats) == ""


def test_aggregate_distinct_dates_students_and_range(make_record):
    records = [
        make_record("present", student="alice", date="2025-03-05"),
        make_record("sick", student="bob", date="2025-03-03"),
        make_record("present", student="alice", date="2025-03-14"),
        make_record("absent", student="carol", date="2025-03-05"),
    ]

    stats = aggregate(records)

    assert stats.distinct_dates == 3
    assert stats.distinct_entities == 3
    assert stats.date_range == ("2025-03-03", "2025-03-14")
    assert format_date_range(stats) == "03 Mar - 14 Mar"


def test_aggregate_single_date_range_label(make_record):
    stats = aggregate([make_record(date="2025-03-03"), make_record(date="2025-03-03")])

    assert format_date_range(stats) == "03 Mar"


def test_aggregate_keeps_sum_invariant_for_unknown_status(make_record):
    records = [make_record("present"), make_record("late"), make_record("")]

    stats = aggregate(records)

    assert stats.total_records == 3
    assert stats.count("late") == 1
    assert sum(stats.counts_by_category.values()) == 3


def test_aggregate_total_matches_length_for_mixed_sizes(make_record):
    statuses = ["present", "sick", "permission", "absent"]
    for n in (1, 5, 13, 40):
        records = [make_record(statuses[i % 4], student=f"s{i % 7}") for i in range(n)]
        stats = aggregate(records)
        assert stats.total_records == n
        assert sum(stats.counts_by_category.values()) == n


def test_aggregate_accepts_iterators(make_record):
    stats = aggregate(iter([make_record("present"), make_record("absent")]))

    assert stats.total_records == 2


def test_summarize_classes_only_counts_loaded_stats():
    classes = [ClassItem(id="c1", name="A"), ClassItem(id="c2", name="B"), ClassItem(id="c3", name="C")]
    stats_map = {
        "c1": ClassStats(students_count=20, assignments_count=3, average_grade=80.0),
        "c2": ClassStats(students_count=10, assignments_count=1, average_grade=None),
    }

    overview = summarize_classes(classes, stats_map)

    assert overview.total_classes == 3
    assert overview.stats_loaded == 2
    assert overview.total_students == 30
    assert overview.total_assignments == 4
    assert overview.average_grade == 80.0


def test_summarize_classes_empty():
    overview = summarize_classes([], {})

    assert overview.total_classes == 0
    assert overview.average_grade is None


def test_combine_leaderboard_defaults_and_badges():
    students = [
        Student(username="alice", full_name="Alice A", class_id="c1"),
        Student(username="bob", class_id="c1"),
    ]
    gamification = [
        GamificationRecord(
            class_id="c1",
            student_username="alice",
            points=120,
            level=3,
            badges="Star, Helper,",
            achievements="Perfect week",
        ),
        # same username in another class must not match
        GamificationRecord(class_id="c2", student_username="bob", points=999),
    ]

    entries = {e.username: e for e in combine_leaderboard(students, gamification)}

    assert entries["alice"].id == "c1-alice"
    assert entries["alice"].name == "Alice A"
    assert entries["alice"].badges == 2
    assert entries["alice"].achievements == ("Star", "Helper", "Perfect week")
    assert entries["bob"].points == 0
    assert entries["bob"].level == 1
    assert entries["bob"].name == "bob"


def test_rank_and_summarize_leaderboard():
    students = [Student(username=u, class_id="c1") for u in ("a", "b", "c")]
    gamification = [
        GamificationRecord(class_id="c1", student_username="a", points=10, level=1),
        GamificationRecord(class_id="c1", student_username="b", points=50, level=2),
        GamificationRecord(class_id="c1", student_username="c", points=30, level=2),
    ]
    entries = combine_leaderboard(students, gamification)

    top = rank_leaderboard(entries, limit=2)
    summary = summarize_leaderboard(entries)

    assert [e.username for e in top] == ["b", "c"]
    assert summary.total_points == 90
    assert summary.average_points == 30.0
    assert summary.students_by_level == {1: 1, 2: 2}
