# controller/lifecycle/scheduling.py
#
# Translation from a reconcile attempt (return value or exception) into what
# the queue should do next. No policy of its own.
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import NotFoundError, ReconcileTimeout


@dataclass(frozen=True)
class Result:
    """What a reconciler returns. requeue_after=None means nothing more to do."""
    requeue_after: Optional[float] = None

    @classmethod
    def done(cls) -> "Result":
        return cls()

    @classmethod
    def after(cls, seconds: float) -> "Result":
        seconds = float(seconds)
        if not math.isfinite(seconds):
            raise ValueError(f"requeue delay must be finite, got {seconds!r}")
        return cls(requeue_after=max(0.0, seconds))

    @property
    def is_requeue(self) -> bool:
        return self.requeue_after is not None


class ErrorKind(str, Enum):
    NOT_FOUND_TRANSIENT = "not_found_transient"
    STORE_ERROR = "store_error"
    TIMEOUT = "timeout"


class Action(str, Enum):
    DONE = "done"
    REQUEUE_AFTER = "requeue_after"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    action: Action
    requeue_after: Optional[float] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[BaseException] = None


def error_kind_of(exc: BaseException) -> ErrorKind:
    if isinstance(exc, NotFoundError):
        return ErrorKind.NOT_FOUND_TRANSIENT
    if isinstance(exc, (ReconcileTimeout, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    # Anything else that escapes a reconciler is handled like a store failure:
    # reported and redelivered.
    return ErrorKind.STORE_ERROR


def to_outcome(result: Optional[Result] = None, exc: Optional[BaseException] = None) -> Outcome:
    """
    done                -> Action.DONE
    requeue_after(d)    -> Action.REQUEUE_AFTER
    NotFoundError       -> Action.DONE (never surfaced)
    StoreError/timeout  -> Action.ERROR (retryable)
    """
    if exc is not None:
        kind = error_kind_of(exc)
        if kind == ErrorKind.NOT_FOUND_TRANSIENT:
            return Outcome(action=Action.DONE)
        return Outcome(action=Action.ERROR, error_kind=kind, error=exc)

    if result is not None and result.is_requeue:
        return Outcome(action=Action.REQUEUE_AFTER, requeue_after=result.requeue_after)

    return Outcome(action=Action.DONE)

