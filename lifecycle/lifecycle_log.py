import logging
from typing import Any, Dict

log = logging.getLogger("lifecycle")

def lifecycle(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    payload: Dict[str, Any] = {"event": event}
    payload.update(fields)
    log.log(level, event, extra=payload)
