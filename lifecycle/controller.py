# controller/lifecycle/controller.py
#
# Watches -> classifier -> queue -> workers.
#
# The controller owns no resource state. Every attempt reloads from the store,
# so duplicate or concurrent delivery of the same key is harmless.
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from domain.retention.predicates import Watch, classify
from domain.retention.types import Event, Request

from .errors import ReconcileTimeout
from .lifecycle_log import lifecycle
from .scheduling import Action, Outcome, Result, to_outcome
from .workqueue import QueueShutDown, WorkQueue


class Reconciler(Protocol):
    async def reconcile(self, request: Request) -> Result:
        ...


class Controller:
    def __init__(
        self,
        name: str,
        reconciler: Reconciler,
        watches: Sequence[Watch],
        *,
        max_concurrent_reconciles: int = 0,
        reconcile_timeout_s: float = 5.0,
        queue: Optional[WorkQueue[Request]] = None,
    ) -> None:
        self.name = name
        self.reconciler = reconciler
        self.watches = tuple(watches)
        # Unset (<= 0) means a single worker.
        self.max_concurrent_reconciles = max(1, int(max_concurrent_reconciles or 0))
        self.reconcile_timeout_s = float(reconcile_timeout_s)
        self.queue: WorkQueue[Request] = queue if queue is not None else WorkQueue()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._workers: List[asyncio.Task] = []

    # -------------------------------------------------------------------------
    # Event intake
    # -------------------------------------------------------------------------

    def handle(self, event: Event) -> List[Request]:
        """
        Classify one change notification against every watch of its kind and
        enqueue what gets admitted. Returns the admitted requests.

        Safe to call from the loop thread or from a threadpool (sync API handlers).
        """
        admitted: List[Request] = []
        for watch in self.watches:
            if watch.kind != event.kind:
                continue
            c = classify(event, watch)
            if c.admit and c.request is not None:
                admitted.append(c.request)

        for req in admitted:
            lifecycle(
                "reconcile_enqueued",
                level=logging.DEBUG,
                controller=self.name,
                kind=event.kind,
                namespace=req.namespace,
                key=str(req),
            )
            self._enqueue(req)

        return admitted

    def _enqueue(self, req: Request) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self.queue.add(req)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self.queue.add(req)
        else:
            loop.call_soon_threadsafe(self.queue.add, req)

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._workers:
            return
        if self.queue.shutting_down:
            # Restart after stop(): a shut-down queue never hands out keys again.
            self.queue = WorkQueue(
                base_delay_s=self.queue.base_delay_s,
                max_delay_s=self.queue.max_delay_s,
            )
        self._loop = asyncio.get_running_loop()
        for i in range(self.max_concurrent_reconciles):
            self._workers.append(
                asyncio.create_task(self._worker(), name=f"{self.name}-worker-{i}")
            )
        lifecycle(
            "controller_started",
            controller=self.name,
            workers=self.max_concurrent_reconciles,
            timeout_s=self.reconcile_timeout_s,
        )

    async def stop(self) -> None:
        self.queue.shutdown()
        for t in self._workers:
            t.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        lifecycle("controller_stopped", controller=self.name)

    async def _worker(self) -> None:
        while True:
            try:
                req = await self.queue.get()
            except QueueShutDown:
                return
            try:
                await self.process(req)
            finally:
                self.queue.done(req)

    async def _attempt(self, req: Request) -> Outcome:
        try:
            if self.reconcile_timeout_s > 0:
                result = await asyncio.wait_for(
                    self.reconciler.reconcile(req), timeout=self.reconcile_timeout_s
                )
            else:
                result = await self.reconciler.reconcile(req)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            return to_outcome(exc=ReconcileTimeout(req, self.reconcile_timeout_s))
        except Exception as e:
            return to_outcome(exc=e)
        return to_outcome(result=result)

    async def process(self, req: Request) -> Outcome:
        """Run one reconcile attempt for req and tell the queue what happens next."""
        outcome = await self._attempt(req)

        if outcome.action == Action.REQUEUE_AFTER and outcome.requeue_after is not None:
            self.queue.forget(req)
            self.queue.add_after(req, outcome.requeue_after)
        elif outcome.action == Action.ERROR:
            delay = self.queue.add_rate_limited(req)
            lifecycle(
                "reconcile_failed",
                level=logging.WARNING,
                controller=self.name,
                namespace=req.namespace,
                key=str(req),
                error_kind=outcome.error_kind.value if outcome.error_kind else None,
                error=str(outcome.error),
                retry_in_s=delay,
                attempts=self.queue.num_requeues(req),
            )
        else:
            self.queue.forget(req)

        return outcome
