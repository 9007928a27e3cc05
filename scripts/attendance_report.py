"""Print attendance statistics and history, or save a day's marks, from the CLI.

Standalone script driving the classroom data layer. Restores or creates a
session, loads the full attendance history, and prints the aggregate plus the
visible page as a table or JSON.

Run with: python scripts/attendance_report.py
Pages:    python scripts/attendance_report.py --pages 3
JSON:     python scripts/attendance_report.py --json
Classes:  python scripts/attendance_report.py --classes
Mark:     python scripts/attendance_report.py --class C1 --date 2025-03-03 \
              --mark-all present --students alice,bob --commit

Credentials come from CLASSROOM_API_USERNAME / CLASSROOM_API_PASSWORD (.env).

Exit codes:
  0 = success
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.classroom.aggregate import format_date_range  # noqa: E402
from src.classroom.config import get_config  # noqa: E402
from src.classroom.dispatcher import RequestDispatcher  # noqa: E402
from src.classroom.logging import get_logger, setup_logging  # noqa: E402
from src.classroom.models import AggregateStats, AttendanceStatus  # noqa: E402
from src.classroom.session import Session, SessionManager  # noqa: E402
from src.classroom.views import AttendanceView, ClassesView  # noqa: E402

log = get_logger(__name__)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Attendance statistics and bulk marking from the command line.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of a table.",
    )
    parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of history pages to show (default: 1).",
    )
    parser.add_argument(
        "--classes",
        action="store_true",
        help="Show classes with per-class statistics instead of attendance.",
    )

    marking = parser.add_argument_group("marking")
    marking.add_argument("--class", dest="class_id", help="Class to mark.")
    marking.add_argument("--date", help="Date to mark (YYYY-MM-DD).")
    marking.add_argument(
        "--mark-all",
        choices=[s.value for s in AttendanceStatus],
        help="Stage this status for every student in --students.",
    )
    marking.add_argument(
        "--students",
        default="",
        help="Comma-separated student usernames for --mark-all.",
    )
    marking.add_argument(
        "--commit",
        action="store_true",
        help="Save staged marks in one bulk request.",
    )
    return parser.parse_args()


def _format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a human-readable, column-aligned table."""
    if not rows:
        return "(no records)"

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def _format_stats(stats: AggregateStats) -> str:
    counts = ", ".join(f"{k}={v}" for k, v in stats.counts_by_category.items())
    return (
        f"{stats.total_records} records | {counts} | "
        f"{stats.distinct_dates} dates | {stats.distinct_entities} students | "
        f"{format_date_range(stats) or '-'}"
    )


async def _classes_report(dispatcher: RequestDispatcher, username: str, as_json: bool) -> None:
    view = ClassesView(dispatcher, username)
    result = await view.refresh()
    if not result.success:
        raise RuntimeError(f"Failed to load classes: {result.error}")
    await view.wait_for_stats()

    classes = view.store.records
    if as_json:
        output = {
            "overview": view.get_aggregate().model_dump(mode="json"),
            "classes": [
                {**c.model_dump(mode="json"), "stats": view.stats_for(c.id).model_dump(mode="json")}
                for c in classes
            ],
        }
        print(json.dumps(output, indent=2))
        return

    rows = []
    for c in classes:
        stats = view.stats_for(c.id)
        grade = f"{stats.average_grade:.1f}" if stats.average_grade is not None else "-"
        rows.append([c.name, c.subject or "-", str(stats.students_count), str(stats.assignments_count), grade])
    print(_format_table(["Class", "Subject", "Students", "Assignments", "Avg"], rows))


async def main(args: argparse.Namespace) -> None:
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    manager = SessionManager(config.state_dir, config.max_session_age_hours)
    session = manager.load() or Session()
    dispatcher = RequestDispatcher.from_config(config, session, manager)

    if not session.has_credentials():
        if not config.api_username or not config.api_password:
            raise RuntimeError("No cached session and no CLASSROOM_API_USERNAME/PASSWORD set")
        response = await dispatcher.login(config.api_username, config.api_password)
        if not response["success"]:
            raise RuntimeError(f"Login failed: {response['error']}")

    if args.classes:
        await _classes_report(dispatcher, session.username, args.json)
        return

    view = AttendanceView(dispatcher, config)

    if args.class_id and args.date:
        selected = await view.select(args.class_id, args.date)
        if not selected.success:
            raise RuntimeError(f"Failed to load marks: {selected.error}")
        if args.mark_all:
            students = [s.strip() for s in args.students.split(",") if s.strip()]
            view.mark_all(students, args.mark_all)
        if args.commit:
            committed = await view.commit()
            if not committed.success:
                raise RuntimeError(f"Commit failed: {committed.error}")
            log.info("marks_saved", succeeded=committed.value.succeeded, failed=committed.value.failed)
    elif args.mark_all or args.commit:
        raise RuntimeError("--mark-all/--commit require --class and --date")

    if view.store.version == 0:
        result = await view.refresh()
        if not result.success:
            raise RuntimeError(f"Failed to load attendance: {result.error}")

    for _ in range(max(args.pages, 1) - 1):
        if not await view.more():
            break

    stats = view.get_aggregate()
    visible = view.get_visible()
    if args.json:
        output = {
            "stats": stats.model_dump(mode="json"),
            "shown": len(visible),
            "total": view.window.total,
            "records": [r.model_dump(mode="json", by_alias=True) for r in visible],
        }
        print(json.dumps(output, indent=2))
    else:
        print(_format_stats(stats))
        rows = [[r.date, r.class_id, r.student_username, r.status, r.notes or "-"] for r in visible]
        print(_format_table(["Date", "Class", "Student", "Status", "Notes"], rows))
        print(f"Showing {len(visible)} of {view.window.total} records")


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
