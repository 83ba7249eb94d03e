import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE = os.getenv("SERVICE_NAME", "retention-controller")
ENV = os.getenv("ENV", "dev")

# Attributes every LogRecord carries; anything else came in through `extra=...`.
_RESERVED = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "message",
    "taskName",
))

def _utc_iso(ts: Optional[float] = None) -> str:
    if ts is None:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(ts, timezone.utc).isoformat()

class JsonFormatter(logging.Formatter):
    def __init__(self, service: Optional[str] = None) -> None:
        super().__init__()
        self.service = service or SERVICE

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": _utc_iso(record.created),
            "level": record.levelname,
            "service": self.service,
            "env": ENV,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for k, v in record.__dict__.items():
            if k.startswith("_") or k in _RESERVED:
                continue
            # Core keys win over extras
            if k not in base:
                base[k] = v

        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=False, default=str)

def configure_logging(level: Optional[str] = None, service: Optional[str] = None) -> None:
    lvl = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(lvl)

    # Clear default handlers (uvicorn can double-log otherwise)
    root.handlers.clear()

    h = logging.StreamHandler(sys.stdout)
    h.setLevel(lvl)
    h.setFormatter(JsonFormatter(service=service))
    root.addHandler(h)

    logging.getLogger("uvicorn.access").setLevel(os.getenv("UVICORN_ACCESS_LEVEL", "WARNING"))
    logging.getLogger("uvicorn.error").setLevel(lvl)
