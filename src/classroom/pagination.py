"""Growing visible window over an already-fetched collection."""

import asyncio
from collections.abc import Sequence
from typing import Generic, TypeVar

from src.classroom.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class PaginationWindow(Generic[T]):
    """Reveals a fetched collection one page at a time.

    No network calls happen here: the source is already in memory and each
    step only moves ``visible_count``. ``more()`` is guarded by a single
    in-flight flag, so a burst of scroll signals reveals one page.

    Invariants:
        0 <= visible_count <= len(source)
        has_more == (visible_count < len(source))
        visible_count never shrinks until the next reset
    """

    def __init__(self, page_size: int = 20, reveal_delay: float = 0.0) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = page_size
        self.reveal_delay = reveal_delay
        self._source: Sequence[T] = ()
        self._visible_count = 0
        self._loading = False
        self._generation = 0

    @property
    def visible_count(self) -> int:
        return self._visible_count

    @property
    def has_more(self) -> bool:
        return self._visible_count < len(self._source)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def total(self) -> int:
        return len(self._source)

    @property
    def visible(self) -> list[T]:
        return list(self._source[: self._visible_count])

    def reset(self, source: Sequence[T]) -> None:
        """Point the window at a new collection and show its first page."""
        self._generation += 1
        self._source = source
        self._visible_count = min(self.page_size, len(source))
        self._loading = False
        log.debug(
            "pagination_reset",
            visible=self._visible_count,
            total=len(source),
            has_more=self.has_more,
        )

    async def more(self) -> int:
        """Reveal the next page.

        Returns:
            Number of newly visible items; 0 if nothing is left or a reveal
            is already in flight.
        """
        if not self.has_more or self._loading:
            return 0

        self._loading = True
        generation = self._generation
        try:
            if self.reveal_delay > 0:
                await asyncio.sleep(self.reveal_delay)
            if generation != self._generation:
                # a reset replaced the source while we waited
                return 0
            before = self._visible_count
            self._visible_count = min(before + self.page_size, len(self._source))
        finally:
            if generation == self._generation:
                self._loading = False

        revealed = self._visible_count - before
        log.debug(
            "pagination_more",
            revealed=revealed,
            visible=self._visible_count,
            total=len(self._source),
        )
        return revealed
