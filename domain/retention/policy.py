# controller/domain/retention/policy.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Union

from .types import BuildRun, ConditionStatus


@dataclass(frozen=True)
class EffectiveTTL:
    """TTLs (seconds) that apply to one BuildRun. None means no TTL cleanup."""
    ttl_after_failed: Optional[float] = None
    ttl_after_succeeded: Optional[float] = None

    def for_condition(self, status: Optional[ConditionStatus]) -> Optional[float]:
        if status == ConditionStatus.TRUE:
            return self.ttl_after_succeeded
        if status == ConditionStatus.FALSE:
            return self.ttl_after_failed
        return None

    def has_any(self) -> bool:
        return self.ttl_after_failed is not None or self.ttl_after_succeeded is not None


def resolve_ttls(run: BuildRun) -> EffectiveTTL:
    """
    Two-level resolution: the run's own retention overrides the Build snapshot
    embedded in its status, independently per outcome.
    """
    inherited = run.status_build_retention
    inherited_failed = inherited.ttl_after_failed if inherited is not None else None
    inherited_succeeded = inherited.ttl_after_succeeded if inherited is not None else None

    own = run.retention
    if own is None:
        return EffectiveTTL(ttl_after_failed=inherited_failed, ttl_after_succeeded=inherited_succeeded)

    failed = own.ttl_after_failed
    if failed is None:
        failed = inherited_failed

    succeeded = own.ttl_after_succeeded
    if succeeded is None:
        succeeded = inherited_succeeded

    return EffectiveTTL(ttl_after_failed=failed, ttl_after_succeeded=succeeded)


# -----------------------------------------------------------------------------
# Duration strings ("1h30m", "10m", "90s", "500ms")
# -----------------------------------------------------------------------------

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

    Accepts bare numbers (seconds) and Go-style duration strings made of
    number+unit parts. Negative durations are rejected.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"invalid duration: {value!r}")
        if value < 0:
            raise ValueError(f"negative duration: {value!r}")
        return float(value)

    if not isinstance(value, str):
        raise ValueError(f"invalid duration: {value!r}")

    s = value.strip()
    if not s:
        raise ValueError("empty duration")
    if s.startswith("-"):
        raise ValueError(f"negative duration: {value!r}")
    if s.startswith("+"):
        s = s[1:]

    if _NUMBER_RE.fullmatch(s):
        return float(s)

    total = 0.0
    pos = 0
    for m in _PART_RE.finditer(s):
        if m.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()

    if pos == 0 or pos != len(s):
        raise ValueError(f"invalid duration: {value!r}")

    return total


def format_duration(seconds: Optional[float]) -> Optional[str]:
    """Render seconds back to a compact Go-style string (for read endpoints)."""
    if seconds is None:
        return None
    whole = int(seconds)
    frac = seconds - whole
    h, rem = divmod(whole, 3600)
    m, s = divmod(rem, 60)
    out = ""
    if h:
        out += f"{h}h"
    if m:
        out += f"{m}m"
    if s or frac or not out:
        out += f"{s + frac:g}s"
    return out
