from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from domain.retention.policy import format_duration, parse_duration
from domain.retention.types import (
    Build,
    BuildRetention,
    BuildRun,
    BuildRunRetention,
    ConditionStatus,
)


def parse_timestamp(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Epoch seconds from either a number or an RFC3339 / ISO-8601 string.
    Naive strings are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"invalid timestamp: {value!r}")
        return float(value)

    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"invalid timestamp: {value!r}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _opt_duration(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return parse_duration(value)


def _opt_limit(value: Any) -> Optional[int]:
    if value is None:
        return None
    n = int(value)
    if n < 1:
        raise ValueError(f"limit must be >= 1, got {n}")
    return n


def parse_build_retention(body: Optional[Dict[str, Any]]) -> Optional[BuildRetention]:
    if body is None:
        return None
    return BuildRetention(
        failed_limit=_opt_limit(body.get("failed_limit")),
        succeeded_limit=_opt_limit(body.get("succeeded_limit")),
        ttl_after_failed=_opt_duration(body.get("ttl_after_failed")),
        ttl_after_succeeded=_opt_duration(body.get("ttl_after_succeeded")),
    )


def parse_buildrun_retention(body: Optional[Dict[str, Any]]) -> Optional[BuildRunRetention]:
    if body is None:
        return None
    return BuildRunRetention(
        ttl_after_failed=_opt_duration(body.get("ttl_after_failed")),
        ttl_after_succeeded=_opt_duration(body.get("ttl_after_succeeded")),
    )


def parse_build(namespace: str, name: str, body: Dict[str, Any]) -> Build:
    return Build(
        namespace=namespace,
        name=name,
        retention=parse_build_retention(body.get("retention")),
    )


def parse_buildrun(
    namespace: str,
    name: str,
    body: Dict[str, Any],
    *,
    now: float,
    previous: Optional[BuildRun] = None,
    owner: Optional[Build] = None,
) -> BuildRun:
    """
    Turn an API body into a BuildRun snapshot.

    Filled in the way the execution engine would:
      - completion_time defaults to `now` when the condition is terminal
        (kept from the previous snapshot if it already had one)
      - status_build_retention is captured from the owning Build on first
        write, and kept afterwards
      - creation_time is kept from the previous snapshot
    """
    raw_status = body.get("succeeded")
    succeeded = ConditionStatus(raw_status) if raw_status is not None else None

    completion_time = parse_timestamp(body.get("completion_time"))
    if completion_time is not None and (succeeded is None or not succeeded.terminal):
        raise ValueError("completion_time is only allowed once succeeded is True or False")
    if succeeded is not None and succeeded.terminal and completion_time is None:
        if previous is not None and previous.completion_time is not None:
            completion_time = previous.completion_time
        else:
            completion_time = now

    if "status_build_retention" in body and body["status_build_retention"] is not None:
        snapshot = parse_build_retention(body["status_build_retention"])
    elif previous is not None:
        snapshot = previous.status_build_retention
    elif owner is not None:
        snapshot = owner.retention
    else:
        snapshot = None

    return BuildRun(
        namespace=namespace,
        name=name,
        build_ref=str(body.get("build_ref") or ""),
        succeeded=succeeded,
        completion_time=completion_time,
        retention=parse_buildrun_retention(body.get("retention")),
        status_build_retention=snapshot,
        creation_time=previous.creation_time if previous is not None else now,
    )


# -----------------------------------------------------------------------------
# Rendering (read endpoints)
# -----------------------------------------------------------------------------

def _render_build_retention(r: Optional[BuildRetention]) -> Optional[Dict[str, Any]]:
    if r is None:
        return None
    return {
        "failed_limit": r.failed_limit,
        "succeeded_limit": r.succeeded_limit,
        "ttl_after_failed": format_duration(r.ttl_after_failed),
        "ttl_after_succeeded": format_duration(r.ttl_after_succeeded),
    }


def render_build(b: Build) -> Dict[str, Any]:
    return {
        "namespace": b.namespace,
        "name": b.name,
        "retention": _render_build_retention(b.retention),
    }


def render_buildrun(r: BuildRun) -> Dict[str, Any]:
    retention = None
    if r.retention is not None:
        retention = {
            "ttl_after_failed": format_duration(r.retention.ttl_after_failed),
            "ttl_after_succeeded": format_duration(r.retention.ttl_after_succeeded),
        }
    return {
        "namespace": r.namespace,
        "name": r.name,
        "build_ref": r.build_ref,
        "succeeded": r.succeeded.value if r.succeeded is not None else None,
        "completion_time": r.completion_time,
        "creation_time": r.creation_time,
        "retention": retention,
        "status_build_retention": _render_build_retention(r.status_build_retention),
    }
