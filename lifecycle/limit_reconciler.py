# controller/lifecycle/limit_reconciler.py
#
# Build limit cleanup: keep at most succeeded_limit / failed_limit completed
# BuildRuns per Build, deleting the oldest ones first.
from __future__ import annotations

import logging

from domain.retention.candidates import plan_limit_prune
from domain.retention.types import KIND_BUILD, KIND_BUILDRUN, Build, Request

from .errors import NotFoundError, StoreError
from .lifecycle_log import lifecycle
from .scheduling import Result
from .store import ResourceStore


class BuildLimitReconciler:
    def __init__(self, store: ResourceStore) -> None:
        self.store = store

    async def reconcile(self, request: Request) -> Result:
        lifecycle("reconcile_start", level=logging.DEBUG, namespace=request.namespace, build=request.name)

        try:
            build = await self.store.get(KIND_BUILD, request.namespace, request.name)
        except NotFoundError:
            lifecycle(
                "reconcile_finish",
                level=logging.DEBUG,
                namespace=request.namespace,
                build=request.name,
                reason="build_not_found",
            )
            return Result.done()

        if not isinstance(build, Build):
            raise StoreError(f"store returned {type(build).__name__} for Build {request}")

        if build.retention is None or not build.retention.has_limits():
            return Result.done()

        runs = await self.store.list_buildruns(request.namespace, request.name)
        plan = plan_limit_prune(runs=runs, retention=build.retention)

        deleted = 0
        for run in plan.to_delete:
            try:
                await self.store.delete(KIND_BUILDRUN, run.namespace, run.name)
            except NotFoundError:
                continue
            deleted += 1
            lifecycle(
                "buildrun_limit_pruned",
                namespace=run.namespace,
                build=request.name,
                buildrun=run.name,
                outcome=run.succeeded.value if run.succeeded else None,
            )

        lifecycle(
            "reconcile_finish",
            level=logging.DEBUG,
            namespace=request.namespace,
            build=request.name,
            runs_total=len(runs),
            deleted=deleted,
        )
        return Result.done()
