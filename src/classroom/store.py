"""Record store: the authoritative in-memory collection for one view.

The store owns a single immutable ``StoreSnapshot``. Records, the auxiliary
per-entity map and the aggregate computed from both are swapped together in
one assignment, so a reader sees either the old state or the new one, never
a mix.
"""

import itertools
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from src.classroom.logging import get_logger
from src.classroom.results import Result

log = get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S")

Fetch = Callable[[Any], Awaitable[Result]]
Aggregator = Callable[[tuple, Mapping[str, Any]], Any]
Listener = Callable[["StoreSnapshot"], None]

STALE_REFRESH = "stale refresh superseded by a newer one"


@dataclass(frozen=True)
class StoreSnapshot(Generic[T, S]):
    records: tuple[T, ...]
    aux: Mapping[str, Any]
    aggregate: S
    version: int = 0
    scope: Any = None
    refreshed: bool = False


class RecordStore(Generic[T, S]):
    """Holds one view's records and keeps their aggregate current.

    Refreshes are not retried and not serialized: each one takes a ticket and
    only the most recently started refresh may apply its result. An older
    refresh that resolves late is discarded instead of overwriting newer data.
    """

    def __init__(self, fetch: Fetch, aggregator: Aggregator, name: str = "store") -> None:
        """Initialize RecordStore.

        Args:
            fetch: ``fetch(scope) -> Result`` whose value is an iterable of records.
            aggregator: ``aggregator(records, aux)`` pure summary function.
            name: Label used in log events.
        """
        self.name = name
        self._fetch = fetch
        self._aggregator = aggregator
        self._tickets = itertools.count(1)
        self._latest_ticket = 0
        self._applied_ticket = 0
        self._generation = 0
        self._listeners: list[Listener] = []
        self._snapshot: StoreSnapshot = self._build((), {}, version=0, scope=None)

    # === reads ===

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def records(self) -> tuple[T, ...]:
        return self._snapshot.records

    @property
    def aggregate(self) -> S:
        return self._snapshot.aggregate

    @property
    def aux(self) -> Mapping[str, Any]:
        return self._snapshot.aux

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def refreshing(self) -> bool:
        return self._latest_ticket > self._applied_ticket

    # === writes ===

    async def refresh(self, scope: Any = None) -> Result:
        """Fetch the collection and replace the store contents wholesale.

        Args:
            scope: Filter passed through to ``fetch`` (e.g. a class id).

        Returns:
            Result with the new records tuple. On failure, or when a newer
            refresh started meanwhile, the current contents are left as-is.
        """
        ticket = next(self._tickets)
        self._latest_ticket = ticket
        log.debug("store_refresh_started", store=self.name, ticket=ticket, scope=scope)

        try:
            result = await self._fetch(scope)
        except Exception as e:
            result = Result.fail(str(e) or type(e).__name__)

        if ticket != self._latest_ticket:
            log.info(
                "store_refresh_discarded",
                store=self.name,
                ticket=ticket,
                latest=self._latest_ticket,
            )
            return Result.fail(STALE_REFRESH)

        if not result.success:
            self._applied_ticket = ticket
            log.warning("store_refresh_failed", store=self.name, error=result.error)
            return Result.fail(result.error or "refresh failed")

        records = tuple(result.value or ())
        self._applied_ticket = ticket
        self._swap(self._build(records, self._snapshot.aux, self.version + 1, scope, True))
        log.info(
            "store_refreshed",
            store=self.name,
            records=len(records),
            version=self.version,
        )
        return Result.ok(records)

    def publish(self, key: str, value: Any) -> None:
        """Patch one entry of the auxiliary map and re-aggregate."""
        aux = dict(self._snapshot.aux)
        aux[key] = value
        current = self._snapshot
        self._swap(
            self._build(current.records, aux, current.version + 1, current.scope, current.refreshed)
        )

    def publisher(self) -> Callable[[str, Any], None]:
        """Return a ``publish`` that becomes a no-op once the store is cleared.

        Background loads started before a ``clear()`` hold one of these, so
        their late results never repopulate a torn-down store.
        """
        generation = self._generation

        def _publish(key: str, value: Any) -> None:
            if generation != self._generation:
                log.debug("store_publish_dropped", store=self.name, key=key)
                return
            self.publish(key, value)

        return _publish

    def replace_aux(self, aux: Mapping[str, Any]) -> None:
        current = self._snapshot
        self._swap(
            self._build(current.records, aux, current.version + 1, current.scope, current.refreshed)
        )

    def clear(self) -> None:
        """Drop all contents, e.g. on view teardown. In-flight refreshes are discarded."""
        self._generation += 1
        self._latest_ticket = next(self._tickets)
        self._applied_ticket = self._latest_ticket
        self._swap(self._build((), {}, self.version + 1, None))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # === internals ===

    def _build(
        self,
        records: Iterable[T],
        aux: Mapping[str, Any],
        version: int,
        scope: Any,
        refreshed: bool = False,
    ) -> StoreSnapshot:
        records = tuple(records)
        frozen_aux = MappingProxyType(dict(aux))
        return StoreSnapshot(
            records=records,
            aux=frozen_aux,
            aggregate=self._aggregator(records, frozen_aux),
            version=version,
            scope=scope,
            refreshed=refreshed,
        )

    def _swap(self, snapshot: StoreSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
