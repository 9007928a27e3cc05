"""Optimistic edit buffer for staging marks before one bulk commit.

``EditBuffer`` keeps proposed values (e.g. one attendance status per
student) that have not been written to the remote store yet. This enables:
    - recording a whole class's marks and saving them in one request
    - marking everyone with a default status and then correcting a few
    - spotting staged marks whose server value changed underneath them

Staged values never touch the record store. After a commit they become
visible only through a fresh refresh of authoritative data.
"""

from collections.abc import Awaitable, Callable, Collection, Mapping
from typing import Any

from src.classroom.logging import get_logger
from src.classroom.models import CommitReport
from src.classroom.results import Result
from src.classroom.store import STALE_REFRESH

log = get_logger(__name__)

DispatchCall = Callable[[dict[str, Any]], Awaitable[Result]]
Refresh = Callable[[], Awaitable[Result]]


class EditBuffer:
    """A temporary store of proposed values, keyed by entity.

    Each staged value remembers the authoritative value seen when it was
    first staged (its baseline). If a refresh elsewhere changes that value
    before commit, the edit is kept and reported by ``conflicts()``.
    """

    def __init__(self) -> None:
        self._staged: dict[str, Any] = {}
        self._baseline: dict[str, Any] = {}
        self._committing = False

    @property
    def committing(self) -> bool:
        return self._committing

    def set(self, key: str, value: Any, baseline: Any = None) -> None:
        """Stage or replace a single value.

        Args:
            key: Entity key, e.g. a student username.
            value: Proposed value.
            baseline: Authoritative value at staging time. Kept from the
                first staging of ``key`` until it is committed or unstaged.
        """
        if key not in self._staged:
            self._baseline[key] = baseline
        self._staged[key] = value

    def unstage(self, key: str) -> None:
        self._staged.pop(key, None)
        self._baseline.pop(key, None)

    def bulk_set(
        self,
        keys: Collection[str],
        value: Any,
        overwrite: bool = True,
        baselines: Mapping[str, Any] | None = None,
    ) -> None:
        """Stage the same value for many keys.

        Args:
            keys: Entity keys to stage.
            value: Value applied to every key.
            overwrite: If False, keys that already hold a staged value keep it.
            baselines: Optional authoritative values by key.
        """
        baselines = baselines or {}
        for key in dict.fromkeys(keys):
            if key in self._staged and not overwrite:
                continue
            self.set(key, value, baselines.get(key))

    def discard(self) -> None:
        """Drop all staged values."""
        self._staged.clear()
        self._baseline.clear()

    def is_empty(self) -> bool:
        return not self._staged

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the staged values."""
        return self._staged.copy()

    def __len__(self) -> int:
        return len(self._staged)

    def __contains__(self, key: object) -> bool:
        return key in self._staged

    def pending(
        self,
        authoritative: Mapping[str, Any] | None = None,
        active_keys: Collection[str] | None = None,
    ) -> list[tuple[str, Any]]:
        """List staged changes, optionally diff-only and/or limited to active keys.

        Args:
            authoritative: If given, skip entries equal to the current value.
            active_keys: If given, only include these keys.
        """
        active = set(active_keys) if active_keys is not None else None
        pending = []
        for key, value in self._staged.items():
            if active is not None and key not in active:
                continue
            if authoritative is not None and authoritative.get(key) == value:
                continue
            pending.append((key, value))
        return pending

    def conflicts(self, authoritative: Mapping[str, Any]) -> list[str]:
        """Keys whose authoritative value changed since they were staged."""
        return [
            key
            for key in self._staged
            if authoritative.get(key) != self._baseline.get(key)
        ]

    async def commit(self, dispatch_call: DispatchCall, refresh: Refresh) -> Result:
        """Send the whole buffer as one bulk call, then refresh authoritative data.

        The buffer is cleared only after both steps succeed. Keys the remote
        reported as failed stay staged so they can be retried, as does any
        key re-staged with a different value while the commit was running.
        A refresh superseded by a newer one counts as done, since the newer
        one reads the saved data.

        Args:
            dispatch_call: ``dispatch_call(values) -> Result``. A failed Result
                may carry ``data["failed"]`` for partial-success reporting; a
                successful one may expose ``value.failed``.
            refresh: Reloads the record store.

        Returns:
            Result with a CommitReport. Failures carry the report in
            ``data["report"]``.
        """
        if self._committing:
            return Result.fail("commit already in progress")
        if not self._staged:
            return Result.fail("nothing to commit")

        self._committing = True
        batch = dict(self._staged)
        try:
            log.info("commit_started", entries=len(batch))
            sent = await dispatch_call(batch)

            if not sent.success:
                reported = [k for k in sent.data.get("failed") or [] if k in batch]
                failed = reported or list(batch)
                report = CommitReport(succeeded=len(batch) - len(failed), failed=failed)
                log.warning(
                    "commit_dispatch_failed",
                    error=sent.error,
                    succeeded=report.succeeded,
                    failed=len(failed),
                )
                return Result.fail(sent.error or "commit failed", data={"report": report})

            failed = [k for k in getattr(sent.value, "failed", None) or [] if k in batch]
            report = CommitReport(succeeded=len(batch) - len(failed), failed=failed)

            refreshed = await refresh()
            if refreshed.error == STALE_REFRESH:
                # a newer refresh is already loading the saved data
                log.info("commit_refresh_superseded")
            elif not refreshed.success:
                log.warning("commit_refresh_failed", error=refreshed.error)
                return Result.fail(
                    f"saved, but refresh failed: {refreshed.error}",
                    data={"report": report},
                )

            for key, value in batch.items():
                if key in failed or self._staged.get(key) != value:
                    continue
                self.unstage(key)

            log.info(
                "commit_finished",
                succeeded=report.succeeded,
                failed=len(failed),
                still_staged=len(self._staged),
            )
            return Result.ok(report)
        finally:
            self._committing = False
