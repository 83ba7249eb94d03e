from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .types import BuildRetention, BuildRun, ConditionStatus


@dataclass(frozen=True)
class LimitPrunePlan:
    to_delete_succeeded: List[BuildRun]
    to_delete_failed: List[BuildRun]

    @property
    def to_delete(self) -> List[BuildRun]:
        return self.to_delete_succeeded + self.to_delete_failed


def _newest_first(runs: List[BuildRun]) -> List[BuildRun]:
    # Ties on completion time fall back to name so the plan is deterministic.
    return sorted(runs, key=lambda r: (r.completion_time or 0.0, r.name), reverse=True)


def _over_limit(runs: List[BuildRun], limit: Optional[int]) -> List[BuildRun]:
    if limit is None:
        return []
    keep = max(0, int(limit))
    # Oldest first, so deletions proceed from the tail.
    return list(reversed(_newest_first(runs)[keep:]))


def plan_limit_prune(
    *,
    runs: Iterable[BuildRun],
    retention: Optional[BuildRetention],
) -> LimitPrunePlan:
    """
    Pick completed runs beyond the Build's succeeded/failed limits.
    Runs still executing are never candidates.
    """
    if retention is None or not retention.has_limits():
        return LimitPrunePlan(to_delete_succeeded=[], to_delete_failed=[])

    succeeded: List[BuildRun] = []
    failed: List[BuildRun] = []
    for r in runs:
        if r.succeeded == ConditionStatus.TRUE:
            succeeded.append(r)
        elif r.succeeded == ConditionStatus.FALSE:
            failed.append(r)

    return LimitPrunePlan(
        to_delete_succeeded=_over_limit(succeeded, retention.succeeded_limit),
        to_delete_failed=_over_limit(failed, retention.failed_limit),
    )
