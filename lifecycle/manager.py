# controller/lifecycle/manager.py
#
# Owns the store and the two retention controllers, and routes every store
# change notification to both.
from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from config import ControllerConfig
from domain.retention.predicates import LIMIT_WATCHES, TTL_WATCHES
from domain.retention.types import Event

from .controller import Controller
from .limit_reconciler import BuildLimitReconciler
from .store import InMemoryStore
from .ttl_reconciler import BuildRunTTLReconciler

TTL_CONTROLLER = "buildrun-ttl-cleanup-controller"
LIMIT_CONTROLLER = "build-limit-cleanup-controller"


def new_ttl_controller(
    cfg: ControllerConfig,
    store: InMemoryStore,
    clock: Callable[[], float] = time.time,
) -> Controller:
    return Controller(
        TTL_CONTROLLER,
        BuildRunTTLReconciler(store, clock=clock),
        TTL_WATCHES,
        max_concurrent_reconciles=cfg.buildrun_max_concurrent_reconciles,
        reconcile_timeout_s=cfg.ctx_timeout_s,
    )


def new_limit_controller(cfg: ControllerConfig, store: InMemoryStore) -> Controller:
    return Controller(
        LIMIT_CONTROLLER,
        BuildLimitReconciler(store),
        LIMIT_WATCHES,
        max_concurrent_reconciles=cfg.build_max_concurrent_reconciles,
        reconcile_timeout_s=cfg.ctx_timeout_s,
    )


class Manager:
    def __init__(
        self,
        cfg: ControllerConfig,
        store: Optional[InMemoryStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cfg = cfg
        self.store = store if store is not None else InMemoryStore()
        self.controllers: Dict[str, Controller] = {
            TTL_CONTROLLER: new_ttl_controller(cfg, self.store, clock=clock),
            LIMIT_CONTROLLER: new_limit_controller(cfg, self.store),
        }
        self.store.subscribe(self.dispatch)
        self.started = False

    def dispatch(self, event: Event) -> None:
        for c in self.controllers.values():
            c.handle(event)

    def start(self) -> None:
        if self.started:
            return
        for c in self.controllers.values():
            c.start()
        self.started = True

    async def stop(self) -> None:
        for c in self.controllers.values():
            await c.stop()
        self.started = False

    def queue_lengths(self) -> Dict[str, int]:
        return {name: len(c.queue) for name, c in self.controllers.items()}
