"""Staggered batch loader for per-entity derived data.

Fetches one item per entity (e.g. one stats call per class) in two tiers:
the first few entities immediately and in parallel, the rest spaced out so
the remote script host never sees a burst. Every item publishes on its own
as soon as it resolves; a failed item publishes its fallback instead and
never affects its siblings.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Hashable, Iterable
from typing import Any

from src.classroom.logging import get_logger
from src.classroom.results import Result

log = get_logger(__name__)

FetchOne = Callable[[Any], Awaitable[Result]]
Publish = Callable[[Any, Any], None]


class StaggeredBatchLoader:
    """Two-tier loader with an explicit outstanding-item count.

    ``wait()`` resolves when every item started by ``load_all`` has
    published. The optional advisory callback is only a timing heuristic for
    things like a loading indicator; items may still be in flight when it
    fires.
    """

    def __init__(
        self,
        priority_size: int = 3,
        interval: float = 0.1,
        completion_factor: float = 0.15,
    ) -> None:
        """Initialize StaggeredBatchLoader.

        Args:
            priority_size: Entities loaded immediately and concurrently.
            interval: Seconds between trailing-tier request starts.
            completion_factor: Seconds per entity before the advisory signal.
        """
        if priority_size < 0:
            raise ValueError("priority_size must be >= 0")
        self.priority_size = priority_size
        self.interval = interval
        self.completion_factor = completion_factor

        self._total = 0
        self._completed = 0
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0

    @property
    def progress(self) -> tuple[int, int]:
        """(completed, total) over everything this loader has been given."""
        return self._completed, self._total

    @property
    def outstanding(self) -> int:
        return self._outstanding

    async def load_all(
        self,
        entities: Iterable[Hashable],
        fetch_one: FetchOne,
        publish: Publish,
        fallback: Any = None,
        on_advisory_done: Callable[[], None] | None = None,
    ) -> None:
        """Load and publish one item per entity.

        Returns once the priority tier has published and the trailing tier
        is scheduled. Use ``wait()`` to block until everything has published.

        Args:
            entities: Ordered entity keys; the first ``priority_size`` go first.
            fetch_one: ``fetch_one(key) -> Result`` for a single entity.
            publish: ``publish(key, value)`` called exactly once per entity.
            fallback: Value published for an entity whose fetch failed.
            on_advisory_done: Called ``len(entities) * completion_factor``
                seconds after scheduling.
        """
        entities = list(entities)
        if not entities:
            return

        priority = entities[: self.priority_size]
        trailing = entities[self.priority_size :]
        log.info(
            "batch_load_started",
            priority=len(priority),
            trailing=len(trailing),
            interval=self.interval,
        )

        self._total += len(entities)
        generation = self._generation
        # if the caller is cancelled here, nothing further is scheduled
        await asyncio.gather(
            *(
                self._spawn(self._load_one(key, fetch_one, publish, fallback), item=True)
                for key in priority
            ),
            return_exceptions=True,
        )
        if generation != self._generation:
            log.info("batch_load_cancelled", skipped=len(trailing))
            return

        for i, key in enumerate(trailing):
            self._spawn(
                self._load_one(key, fetch_one, publish, fallback, delay=i * self.interval),
                item=True,
            )
        if on_advisory_done is not None:
            self._spawn(
                self._advise(len(entities) * self.completion_factor, on_advisory_done)
            )

    async def wait(self) -> None:
        """Block until no item is outstanding."""
        await self._idle.wait()

    def cancel(self) -> None:
        """Cancel every running or scheduled item and the advisory timer (view teardown).

        A ``load_all`` still waiting on its priority tier schedules nothing
        afterwards.
        """
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()

    async def _load_one(
        self,
        key: Hashable,
        fetch_one: FetchOne,
        publish: Publish,
        fallback: Any,
        delay: float = 0.0,
    ) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            result = await fetch_one(key)
        except Exception as e:
            log.warning(
                "batch_item_failed",
                key=key,
                error=str(e),
                type=type(e).__name__,
            )
            value = fallback
        else:
            if result.success:
                value = result.value
            else:
                log.warning("batch_item_failed", key=key, error=result.error)
                value = fallback
        try:
            publish(key, value)
        except Exception as e:
            log.error(
                "batch_publish_failed",
                key=key,
                error=str(e),
                type=type(e).__name__,
            )

    def _settle(self, _task: asyncio.Task) -> None:
        # runs for finished, failed and cancelled items alike
        self._completed += 1
        self._outstanding -= 1
        if self._outstanding == 0:
            self._idle.set()
            log.info("batch_load_finished", completed=self._completed)

    async def _advise(self, after: float, callback: Callable[[], None]) -> None:
        await asyncio.sleep(after)
        log.debug("batch_load_advisory_done", after=after)
        callback()

    def _spawn(self, coro: Coroutine[Any, Any, None], item: bool = False) -> asyncio.Task:
        task = asyncio.create_task(coro)
        if item:
            self._outstanding += 1
            self._idle.clear()
            task.add_done_callback(self._settle)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
