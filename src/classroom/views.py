"""View controllers that wire stores, loaders, windows and edit buffers.

Each view owns its own store instance. Nothing is shared between views, so
two views of the same data never contend for one collection.
"""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from src.classroom import actions
from src.classroom.aggregate import (
    aggregate,
    combine_leaderboard,
    rank_leaderboard,
    summarize_classes,
    summarize_leaderboard,
)
from src.classroom.config import ClassroomConfig, get_config
from src.classroom.dispatcher import Dispatcher
from src.classroom.edits import EditBuffer
from src.classroom.loader import StaggeredBatchLoader
from src.classroom.logging import get_logger
from src.classroom.models import (
    AggregateStats,
    AttendanceRecord,
    AttendanceStatus,
    ClassItem,
    ClassOverview,
    ClassStats,
    LeaderboardEntry,
    LeaderboardStats,
)
from src.classroom.pagination import PaginationWindow
from src.classroom.results import Result
from src.classroom.store import STALE_REFRESH, RecordStore, StoreSnapshot

log = get_logger(__name__)


class AttendanceView:
    """Attendance history, its statistics, and the daily marking sheet.

    The history (all records) drives the aggregate and the pagination
    window. Selecting a class and date loads that day's marks, which serve
    as baselines for staged edits.
    """

    def __init__(self, dispatcher: Dispatcher, config: ClassroomConfig | None = None) -> None:
        config = config or get_config()
        self.dispatcher = dispatcher
        self.store: RecordStore[AttendanceRecord, AggregateStats] = RecordStore(
            self._fetch, lambda records, _aux: aggregate(records), name="attendance"
        )
        self.window: PaginationWindow[AttendanceRecord] = PaginationWindow(
            page_size=config.page_size, reveal_delay=config.reveal_delay_seconds
        )
        self.edits = EditBuffer()
        self.class_id: str | None = None
        self.date: str | None = None
        self._day_marks: dict[str, str] = {}
        self._window_source: tuple = ()
        self._unsubscribe = self.store.subscribe(self._on_store_change)

    # === data loading ===

    async def refresh(self) -> Result:
        """Reload the full attendance history."""
        return await self.store.refresh()

    async def select(self, class_id: str, date: str) -> Result:
        """Open the marking sheet for one class on one date.

        Switching to a different class or date discards staged marks.

        Args:
            class_id: Class to mark.
            date: YYYY-MM-DD.

        Returns:
            Result with the day's {student_username: status} marks.
        """
        if (class_id, date) != (self.class_id, self.date):
            if not self.edits.is_empty():
                log.info("staged_marks_discarded", entries=len(self.edits))
            self.edits.discard()
            self._day_marks = {}
        self.class_id = class_id
        self.date = date
        return await self._load_day()

    async def _load_day(self) -> Result:
        if self.class_id is None or self.date is None:
            return Result.fail("no class and date selected")
        class_id, date = self.class_id, self.date
        result = await actions.fetch_attendance(self.dispatcher, class_id, date)
        if not result.success:
            log.warning("day_marks_failed", class_id=class_id, date=date, error=result.error)
            return result
        if (class_id, date) != (self.class_id, self.date):
            return Result.fail("selection changed while loading")
        self._day_marks = {r.student_username: r.status for r in result.value}
        log.info("day_marks_loaded", class_id=class_id, date=date, marks=len(self._day_marks))
        return Result.ok(dict(self._day_marks))

    async def _fetch(self, scope: Mapping[str, Any] | None) -> Result:
        scope = scope or {}
        return await actions.fetch_attendance(
            self.dispatcher, scope.get("class_id"), scope.get("date")
        )

    def _on_store_change(self, snapshot: StoreSnapshot) -> None:
        if snapshot.records is not self._window_source:
            self._window_source = snapshot.records
            self.window.reset(snapshot.records)
        if snapshot.scope is None and self.class_id and self.date:
            self._day_marks = {
                r.student_username: r.status
                for r in snapshot.records
                if r.class_id == self.class_id and r.date == self.date
            }

    # === marking ===

    def mark(self, student_username: str, status: str | AttendanceStatus) -> None:
        """Stage one student's status.

        Raises:
            ValueError: If status is not an AttendanceStatus value.
        """
        value = AttendanceStatus(status).value
        self.edits.set(student_username, value, baseline=self._day_marks.get(student_username))

    def mark_all(
        self,
        student_usernames: Iterable[str],
        status: str | AttendanceStatus = AttendanceStatus.PRESENT,
    ) -> None:
        value = AttendanceStatus(status).value
        self.edits.bulk_set(list(student_usernames), value, baselines=self._day_marks)

    def marks(self) -> dict[str, str]:
        """The day's server marks with staged marks laid over them."""
        return {**self._day_marks, **self.edits.snapshot()}

    def conflicts(self) -> list[str]:
        """Students whose server mark changed after their mark was staged."""
        return self.edits.conflicts(self._day_marks)

    async def commit(self) -> Result:
        """Save every staged mark in one bulk call, then reload authoritative data."""
        if self.class_id is None or self.date is None:
            return Result.fail("no class and date selected")
        class_id, date = self.class_id, self.date

        async def _send(values: dict[str, Any]) -> Result:
            return await actions.update_attendance(self.dispatcher, class_id, date, values)

        async def _reload() -> Result:
            refreshed = await self.store.refresh()
            if refreshed.success or refreshed.error == STALE_REFRESH:
                await self._load_day()
            return refreshed

        return await self.edits.commit(_send, _reload)

    # === exposed state ===

    async def more(self) -> int:
        return await self.window.more()

    def get_aggregate(self) -> AggregateStats:
        return self.store.aggregate

    def get_visible(self) -> list[AttendanceRecord]:
        return self.window.visible

    def get_edit_buffer(self) -> dict[str, str]:
        return self.edits.snapshot()

    def close(self) -> None:
        self._unsubscribe()
        self.store.clear()
        self.edits.discard()


class ClassesView:
    """A teacher's classes with per-class statistics streamed in afterwards.

    The class list shows as soon as it arrives; each class's stats then
    arrive through the staggered loader and patch the overview one by one.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        username: str,
        config: ClassroomConfig | None = None,
    ) -> None:
        config = config or get_config()
        self.dispatcher = dispatcher
        self.username = username
        self.store: RecordStore[ClassItem, ClassOverview] = RecordStore(
            self._fetch, summarize_classes, name="classes"
        )
        self.loader = StaggeredBatchLoader(
            priority_size=config.priority_tier_size,
            interval=config.trailing_interval_seconds,
            completion_factor=config.completion_factor_seconds,
        )
        self.loading_stats = False

    async def _fetch(self, _scope: Any) -> Result:
        return await actions.fetch_classes(self.dispatcher, self.username)

    async def refresh(self) -> Result:
        """Reload the class list, then start loading per-class stats."""
        result = await self.store.refresh()
        if result.success and result.value:
            await self.load_stats()
        return result

    async def load_stats(self) -> None:
        classes = self.store.records
        if not classes:
            return
        self.loading_stats = True
        await self.loader.load_all(
            [c.id for c in classes],
            self._fetch_stats,
            self.store.publisher(),
            fallback=ClassStats.zero(),
            on_advisory_done=self._stats_settled,
        )

    async def _fetch_stats(self, class_id: str) -> Result:
        return await actions.fetch_class_stats(self.dispatcher, class_id)

    def _stats_settled(self) -> None:
        self.loading_stats = False

    async def wait_for_stats(self) -> None:
        await self.loader.wait()
        self.loading_stats = False

    def stats_for(self, class_id: str) -> ClassStats:
        return self.store.aux.get(class_id) or ClassStats.zero()

    def filter(self, term: str) -> list[ClassItem]:
        """Classes whose name, subject or description contains ``term``."""
        term = term.strip().lower()
        if not term:
            return list(self.store.records)
        return [
            c
            for c in self.store.records
            if term in c.name.lower()
            or term in c.subject.lower()
            or term in c.description.lower()
        ]

    def get_aggregate(self) -> ClassOverview:
        return self.store.aggregate

    def close(self) -> None:
        self.loader.cancel()
        self.store.clear()


class LeaderboardView:
    """Students joined with their gamification progress, ranked by points."""

    def __init__(self, dispatcher: Dispatcher, config: ClassroomConfig | None = None) -> None:
        config = config or get_config()
        self.dispatcher = dispatcher
        self.store: RecordStore[LeaderboardEntry, LeaderboardStats] = RecordStore(
            self._fetch, lambda records, _aux: summarize_leaderboard(records), name="leaderboard"
        )
        self.window: PaginationWindow[LeaderboardEntry] = PaginationWindow(
            page_size=config.page_size, reveal_delay=config.reveal_delay_seconds
        )
        self._unsubscribe = self.store.subscribe(
            lambda snapshot: self.window.reset(rank_leaderboard(snapshot.records, None))
        )

    async def _fetch(self, class_id: str | None) -> Result:
        students, gamification = await asyncio.gather(
            actions.fetch_students(self.dispatcher, class_id),
            actions.fetch_gamification(self.dispatcher, class_id),
        )
        if not students.success:
            return students
        if not gamification.success:
            return gamification
        return Result.ok(combine_leaderboard(students.value, gamification.value))

    async def refresh(self, class_id: str | None = None) -> Result:
        return await self.store.refresh(class_id)

    def top(self, limit: int = 10) -> list[LeaderboardEntry]:
        return rank_leaderboard(self.store.records, limit)

    async def more(self) -> int:
        return await self.window.more()

    def get_visible(self) -> list[LeaderboardEntry]:
        return self.window.visible

    def get_aggregate(self) -> LeaderboardStats:
        return self.store.aggregate

    def close(self) -> None:
        self._unsubscribe()
        self.store.clear()
