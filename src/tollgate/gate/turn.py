"""Per-turn coordination for tool calls.

A turn is one model response and the tool calls it emits. Calls of a turn
share one approval lock, so at most one approval is outstanding at a time,
and one reader/writer lock per target path: reads of a path run together,
while a write or edit has the path to itself. Calls on the same path are
admitted in the order they arrive, so a read issued after a write sees the
write's outcome.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from uuid import uuid4

from tollgate.tools.base import ToolResult


class PathLock:
    """First-come, first-served reader/writer lock for one path."""

    def __init__(self):
        self._readers = 0
        self._writer = False
        self._waiters: deque[tuple[bool, asyncio.Future]] = deque()

    @property
    def locked(self) -> bool:
        return self._writer or self._readers > 0

    @asynccontextmanager
    async def shared(self) -> AsyncIterator[None]:
        """Hold the path alongside other readers."""
        await self._acquire(exclusive=False)
        try:
            yield
        finally:
            self._release(exclusive=False)

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the path alone."""
        await self._acquire(exclusive=True)
        try:
            yield
        finally:
            self._release(exclusive=True)

    async def _acquire(self, exclusive: bool) -> None:
        if not self._waiters and self._available(exclusive):
            self._grant(exclusive)
            return

        waiter = asyncio.get_running_loop().create_future()
        entry = (exclusive, waiter)
        self._waiters.append(entry)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Granted just as the waiting task was cancelled
                self._release(exclusive)
            else:
                if entry in self._waiters:
                    self._waiters.remove(entry)
                self._wake()
            raise

    def _available(self, exclusive: bool) -> bool:
        if self._writer:
            return False
        return self._readers == 0 if exclusive else True

    def _grant(self, exclusive: bool) -> None:
        if exclusive:
            self._writer = True
        else:
            self._readers += 1

    def _release(self, exclusive: bool) -> None:
        if exclusive:
            self._writer = False
        else:
            self._readers -= 1
        self._wake()

    def _wake(self) -> None:
        while self._waiters:
            exclusive, waiter = self._waiters[0]
            if waiter.done():
                self._waiters.popleft()
                continue
            if not self._available(exclusive):
                break
            self._waiters.popleft()
            self._grant(exclusive)
            waiter.set_result(None)

    def __repr__(self) -> str:
        return f"<PathLock readers={self._readers} writer={self._writer} waiting={len(self._waiters)}>"


class Turn:
    """Locks and results for the tool calls of one model turn.

    Attributes:
        id: Short identifier used in logs
        approval_lock: Held while a call of this turn waits for a decision
        failed: Set when any call ends with status ``error``; denials and
            cancellations leave it untouched
        results: Terminal results in completion order
    """

    def __init__(self, turn_id: str | None = None):
        self.id = turn_id or uuid4().hex[:8]
        self.approval_lock = asyncio.Lock()
        self.failed = False
        self.results: list[ToolResult] = []
        self.call_ids: list[str] = []
        self._path_locks: dict[Path, PathLock] = {}

    def path_lock(self, path: Path) -> PathLock:
        """Lock ordering calls of this turn that touch ``path``."""
        lock = self._path_locks.get(path)
        if lock is None:
            lock = PathLock()
            self._path_locks[path] = lock
        return lock

    def track(self, call_id: str) -> None:
        self.call_ids.append(call_id)

    def record(self, result: ToolResult) -> ToolResult:
        """Store a terminal result and update the failure flag."""
        self.results.append(result)
        if result.counts_as_failure:
            self.failed = True
        return result

    def __repr__(self) -> str:
        return f"<Turn id='{self.id}' calls={len(self.call_ids)} failed={self.failed}>"
