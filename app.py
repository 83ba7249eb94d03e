import asyncio
import time
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from api.v1 import router as v1_router
from api.v1 import set_manager
from api.v1.events import on_store_event, set_main_loop
from config import ControllerConfig, load_config
from domain.retention.types import KIND_BUILD, KIND_BUILDRUN
from lifecycle.lifecycle_log import lifecycle
from lifecycle.manager import Manager
from observability.logging_config import configure_logging

app = FastAPI(title="Build Retention Controller")
app.include_router(v1_router, prefix="/v1")

MANAGER: Optional[Manager] = None
STARTED_TS: Optional[float] = None


def build_manager(cfg: ControllerConfig) -> Manager:
    manager = Manager(cfg)
    manager.store.subscribe(on_store_event)
    return manager


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

@app.on_event("startup")
async def controller_startup() -> None:
    """
    Startup hook: logging, store, and both retention controllers.
    """
    global MANAGER, STARTED_TS

    cfg = load_config()
    configure_logging(cfg.log_level, service=cfg.service_name)

    set_main_loop(asyncio.get_running_loop())
    MANAGER = build_manager(cfg)
    MANAGER.start()
    set_manager(MANAGER)
    STARTED_TS = time.time()

    lifecycle(
        "controller_startup",
        ctx_timeout_s=cfg.ctx_timeout_s,
        build_workers=cfg.build_max_concurrent_reconciles,
        buildrun_workers=cfg.buildrun_max_concurrent_reconciles,
    )


@app.on_event("shutdown")
async def controller_shutdown() -> None:
    global MANAGER

    if MANAGER is not None:
        await MANAGER.stop()
    set_manager(None)
    set_main_loop(None)
    MANAGER = None


# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------

@app.get("/healthz", response_class=PlainTextResponse)
def healthz() -> str:
    """
    Simple health check used by Docker/Portainer.
    """
    if MANAGER is None or not MANAGER.started:
        return PlainTextResponse("starting", status_code=503, media_type="text/plain")

    queues = " ".join(f"{name}={n}" for name, n in sorted(MANAGER.queue_lengths().items()))
    builds = MANAGER.store.count(KIND_BUILD)
    buildruns = MANAGER.store.count(KIND_BUILDRUN)
    return PlainTextResponse(
        f"ok builds={builds} buildruns={buildruns} {queues}",
        media_type="text/plain",
    )
