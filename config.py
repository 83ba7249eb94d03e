# controller/config.py
import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ControllerConfig:
    # Budget for a single reconcile attempt; exceeded attempts are retried.
    ctx_timeout_s: float = 5.0
    # <= 0 leaves the controller at its default of one worker.
    build_max_concurrent_reconciles: int = 0
    buildrun_max_concurrent_reconciles: int = 0
    log_level: str = "INFO"
    service_name: str = "retention-controller"


def load_config() -> ControllerConfig:
    d = ControllerConfig()
    return ControllerConfig(
        ctx_timeout_s=_env_float("CTX_TIMEOUT_S", d.ctx_timeout_s),
        build_max_concurrent_reconciles=_env_int(
            "BUILD_MAX_CONCURRENT_RECONCILES", d.build_max_concurrent_reconciles
        ),
        buildrun_max_concurrent_reconciles=_env_int(
            "BUILDRUN_MAX_CONCURRENT_RECONCILES", d.buildrun_max_concurrent_reconciles
        ),
        log_level=(os.getenv("LOG_LEVEL") or d.log_level).upper(),
        service_name=os.getenv("SERVICE_NAME") or d.service_name,
    )
