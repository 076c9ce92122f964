"""
EntityLock -- Per-key mutual exclusion within one process.

Responsibility:
    Serializes critical sections that share a key (a contract number) while
    letting sections on different keys run in parallel.  Threads block on
    ``wait``; coroutines suspend on ``wait_async``.  Both kinds of waiter
    share one table, so a thread and a coroutine contending for the same
    key exclude each other.

Architecture position:
    Kernel > Services.  Constructed once by the composition root and injected
    into ContractService; it is not a module-level singleton.

Invariants enforced:
    - At most one holder per key.
    - Waiters on a key are granted the permit in arrival order (FIFO).
    - A key's entry is evicted as soon as it is neither held nor waited on,
      so the table size is bounded by the number of keys in use.
    - ``release`` of an unknown or unheld key is a no-op.

Failure modes:
    - A cancelled async waiter is removed from the queue; if the permit had
      already been handed to it, the permit moves on to the next waiter.
    - No cross-process exclusion: two processes holding the same key do not
      see each other.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from collections.abc import AsyncIterator, Hashable, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from contracts_kernel.logging_config import get_logger

logger = get_logger("services.entity_lock")

K = TypeVar("K", bound=Hashable)


class _SyncWaiter:
    __slots__ = ("event", "granted")

    def __init__(self) -> None:
        self.event = threading.Event()
        self.granted = False

    def grant(self) -> bool:
        self.granted = True
        self.event.set()
        return True


class _AsyncWaiter:
    __slots__ = ("future", "loop", "granted")

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop
        self.future: asyncio.Future[None] = loop.create_future()
        self.granted = False

    def grant(self) -> bool:
        if self.loop.is_closed():
            return False
        self.granted = True
        self.loop.call_soon_threadsafe(self._resolve)
        return True

    def _resolve(self) -> None:
        if not self.future.done():
            self.future.set_result(None)


@dataclass
class _Entry:
    held: bool = False
    waiters: deque = field(default_factory=deque)

    @property
    def idle(self) -> bool:
        return not self.held and not self.waiters


class EntityLock(Generic[K]):
    """
    Keyed permit table.

    Usage:
        lock = EntityLock[str]()

        with lock.hold("CON-1234"):
            ...

        async with lock.hold_async("CON-1234"):
            ...
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._entries: dict[K, _Entry] = {}

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)

    def is_held(self, key: K) -> bool:
        with self._mutex:
            entry = self._entries.get(key)
            return entry is not None and entry.held

    # ------------------------------------------------------------------
    # Acquire
    # ------------------------------------------------------------------

    def wait(self, key: K) -> None:
        """Block the calling thread until it holds ``key``."""
        with self._mutex:
            entry = self._entries.setdefault(key, _Entry())
            if not entry.held:
                entry.held = True
                return
            waiter = _SyncWaiter()
            entry.waiters.append(waiter)
        logger.debug("entity_lock_waiting", extra={"key": str(key)})
        waiter.event.wait()

    async def wait_async(self, key: K) -> None:
        """Suspend the calling coroutine until it holds ``key``."""
        loop = asyncio.get_running_loop()
        with self._mutex:
            entry = self._entries.setdefault(key, _Entry())
            if not entry.held:
                entry.held = True
                return
            waiter = _AsyncWaiter(loop)
            entry.waiters.append(waiter)
        logger.debug("entity_lock_waiting", extra={"key": str(key)})
        try:
            await waiter.future
        except asyncio.CancelledError:
            self._abandon(key, waiter)
            raise

    def _abandon(self, key: K, waiter: _AsyncWaiter) -> None:
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                return
            if waiter.granted:
                # The permit reached us before the cancellation did.
                self._hand_over(key, entry)
                return
            try:
                entry.waiters.remove(waiter)
            except ValueError:
                pass
            if entry.idle:
                del self._entries[key]

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, key: K) -> None:
        """Give ``key`` to the oldest waiter, or free it.  No-op if unheld."""
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None or not entry.held:
                return
            self._hand_over(key, entry)

    def _hand_over(self, key: K, entry: _Entry) -> None:
        # Caller holds self._mutex and entry.held is True.
        while entry.waiters:
            waiter = entry.waiters.popleft()
            if waiter.grant():
                return
        entry.held = False
        del self._entries[key]

    # ------------------------------------------------------------------
    # Scoped forms
    # ------------------------------------------------------------------

    @contextmanager
    def hold(self, key: K) -> Iterator[None]:
        self.wait(key)
        try:
            yield
        finally:
            self.release(key)

    @asynccontextmanager
    async def hold_async(self, key: K) -> AsyncIterator[None]:
        await self.wait_async(key)
        try:
            yield
        finally:
            self.release(key)
