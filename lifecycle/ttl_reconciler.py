# controller/lifecycle/ttl_reconciler.py
#
# BuildRun TTL cleanup.
#
# Each attempt either deletes the run now or asks to be woken up exactly when
# its TTL runs out. It never sleeps and never retries by itself.
from __future__ import annotations

import logging
import time
from typing import Callable

from domain.retention.policy import resolve_ttls
from domain.retention.state_machine import TTLState, decide_ttl
from domain.retention.types import KIND_BUILDRUN, BuildRun, Request

from .errors import NotFoundError, StoreError
from .lifecycle_log import lifecycle
from .scheduling import Result
from .store import ResourceStore


class BuildRunTTLReconciler:
    def __init__(self, store: ResourceStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self.clock = clock

    async def _delete(self, run: BuildRun, request: Request) -> Result:
        lifecycle(
            "buildrun_ttl_reached",
            namespace=request.namespace,
            buildrun=request.name,
            completion_time=run.completion_time,
        )
        try:
            await self.store.delete(KIND_BUILDRUN, run.namespace, run.name)
        except NotFoundError:
            # Already removed by someone else.
            return Result.done()
        except StoreError as e:
            lifecycle(
                "buildrun_delete_failed",
                level=logging.DEBUG,
                namespace=request.namespace,
                buildrun=request.name,
                error=str(e),
            )
            raise
        return Result.done()

    async def reconcile(self, request: Request) -> Result:
        """
        Make sure the BuildRun adheres to its TTL retention and delete it once
        the TTL for its outcome is reached.
        """
        lifecycle("reconcile_start", level=logging.DEBUG, namespace=request.namespace, buildrun=request.name)

        try:
            obj = await self.store.get(KIND_BUILDRUN, request.namespace, request.name)
        except NotFoundError:
            lifecycle(
                "reconcile_finish",
                level=logging.DEBUG,
                namespace=request.namespace,
                buildrun=request.name,
                reason="buildrun_not_found",
            )
            return Result.done()

        if not isinstance(obj, BuildRun):
            raise StoreError(f"store returned {type(obj).__name__} for BuildRun {request}")

        decision = decide_ttl(now=self.clock(), run=obj, ttls=resolve_ttls(obj))

        if decision.state == TTLState.EXPIRED:
            return await self._delete(obj, request)

        if decision.state == TTLState.AWAITING_EXPIRY and decision.remaining is not None:
            lifecycle(
                "buildrun_ttl_pending",
                level=logging.DEBUG,
                namespace=request.namespace,
                buildrun=request.name,
                requeue_after_s=decision.remaining,
            )
            return Result.after(decision.remaining)

        lifecycle(
            "reconcile_finish",
            level=logging.DEBUG,
            namespace=request.namespace,
            buildrun=request.name,
            reason=decision.state.value,
        )
        return Result.done()
