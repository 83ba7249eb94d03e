# controller/domain/retention/state_machine.py
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .policy import EffectiveTTL
from .types import BuildRun


class TTLState(str, Enum):
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"
    NO_TTL = "no_ttl"
    AWAITING_EXPIRY = "awaiting_expiry"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TTLDecision:
    """
    Output of the domain decision step.
    The reconciler applies it (delete / requeue) against the store.
    """
    state: TTLState
    ttl: Optional[float] = None
    deadline: Optional[float] = None
    remaining: Optional[float] = None


def decide_ttl(*, now: float, run: Optional[BuildRun], ttls: EffectiveTTL) -> TTLDecision:
    """
    Pure domain logic. No storage reads or writes.

    Rules:
      - no run                      => NOT_FOUND
      - condition not terminal      => UNKNOWN
      - no TTL for the outcome      => NO_TTL
      - now >= completion + ttl     => EXPIRED
      - otherwise                   => AWAITING_EXPIRY, remaining = deadline - now
    """
    if run is None:
        return TTLDecision(state=TTLState.NOT_FOUND)

    if not run.completed:
        return TTLDecision(state=TTLState.UNKNOWN)

    # Terminal but no usable completion timestamp: nothing to measure from.
    if run.completion_time is None or not math.isfinite(run.completion_time):
        return TTLDecision(state=TTLState.UNKNOWN)

    ttl = ttls.for_condition(run.succeeded)
    if ttl is None:
        return TTLDecision(state=TTLState.NO_TTL)

    deadline = float(run.completion_time) + float(ttl)
    if now >= deadline:
        return TTLDecision(state=TTLState.EXPIRED, ttl=ttl, deadline=deadline)

    return TTLDecision(
        state=TTLState.AWAITING_EXPIRY,
        ttl=ttl,
        deadline=deadline,
        remaining=deadline - now,
    )
