# controller/lifecycle/workqueue.py
#
# Single typed request queue for a controller.
#
#   add(key)              enqueue once; a key already waiting is not duplicated
#   get()                 block until a key is available, mark it processing
#   done(key)             finish processing; re-queue if it was added meanwhile
#   add_after(key, d)     enqueue no earlier than d seconds from now
#   add_rate_limited(key) add_after with exponential per-key backoff
#   forget(key)           reset the backoff of a key
#
# A key is never handed to two workers at once.
from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, Dict, Generic, Hashable, List, Set, TypeVar

K = TypeVar("K", bound=Hashable)

# Same shape as the usual controller defaults: 5ms doubling up to ~16min.
DEFAULT_BASE_DELAY_S = 0.005
DEFAULT_MAX_DELAY_S = 1000.0


class QueueShutDown(Exception):
    pass


class WorkQueue(Generic[K]):
    def __init__(
        self,
        *,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        max_delay_s: float = DEFAULT_MAX_DELAY_S,
    ) -> None:
        self.base_delay_s = float(base_delay_s)
        self.max_delay_s = float(max_delay_s)

        self._queue: Deque[K] = deque()
        self._dirty: Set[K] = set()
        self._processing: Set[K] = set()
        self._waiters: Deque[asyncio.Future] = deque()

        self._delayed: Dict[K, asyncio.TimerHandle] = {}
        self._failures: Dict[K, int] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def _wakeup_one(self) -> None:
        while self._waiters:
            w = self._waiters.popleft()
            if not w.done():
                w.set_result(None)
                return

    # -------------------------------------------------------------------------
    # Immediate
    # -------------------------------------------------------------------------

    def add(self, key: K) -> None:
        if self._shutting_down:
            return
        if key in self._dirty:
            return

        self._dirty.add(key)
        if key in self._processing:
            # Picked up again by done().
            return

        self._queue.append(key)
        self._wakeup_one()

    async def get(self) -> K:
        while not self._queue:
            if self._shutting_down:
                raise QueueShutDown()
            fut = asyncio.get_running_loop().create_future()
            self._waiters.append(fut)
            try:
                await fut
            finally:
                if fut in self._waiters:
                    self._waiters.remove(fut)

        key = self._queue.popleft()
        self._processing.add(key)
        self._dirty.discard(key)
        return key

    def done(self, key: K) -> None:
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._wakeup_one()

    # -------------------------------------------------------------------------
    # Delayed
    # -------------------------------------------------------------------------

    def add_after(self, key: K, delay_s: float) -> None:
        if self._shutting_down:
            return
        if delay_s <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay_s

        existing = self._delayed.get(key)
        if existing is not None:
            # Keep whichever wake-up comes first.
            if existing.when() <= when:
                return
            existing.cancel()

        self._delayed[key] = loop.call_at(when, self._fire, key)

    def _fire(self, key: K) -> None:
        self._delayed.pop(key, None)
        self.add(key)

    def pending_delayed(self) -> List[K]:
        return list(self._delayed.keys())

    # -------------------------------------------------------------------------
    # Rate limiting
    # -------------------------------------------------------------------------

    def backoff_for(self, key: K) -> float:
        failures = self._failures.get(key, 0)
        if failures <= 0:
            return 0.0
        try:
            delay = self.base_delay_s * (2 ** (failures - 1))
        except OverflowError:
            return self.max_delay_s
        return min(delay, self.max_delay_s)

    def add_rate_limited(self, key: K) -> float:
        self._failures[key] = self._failures.get(key, 0) + 1
        delay = self.backoff_for(key)
        self.add_after(key, delay)
        return delay

    def forget(self, key: K) -> None:
        self._failures.pop(key, None)

    def num_requeues(self, key: K) -> int:
        return self._failures.get(key, 0)

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def shutdown(self) -> None:
        self._shutting_down = True
        for handle in self._delayed.values():
            handle.cancel()
        self._delayed.clear()
        while self._waiters:
            w = self._waiters.popleft()
            if not w.done():
                w.set_result(None)
