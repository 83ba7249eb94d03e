# controller/domain/retention/types.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

KIND_BUILD = "Build"
KIND_BUILDRUN = "BuildRun"


class ConditionStatus(str, Enum):
    UNKNOWN = "Unknown"
    TRUE = "True"
    FALSE = "False"

    @property
    def terminal(self) -> bool:
        return self in (ConditionStatus.TRUE, ConditionStatus.FALSE)


@dataclass(frozen=True)
class BuildRetention:
    """
    Retention block of a Build.

    Limits are count-based (keep the N most recent runs per outcome).
    TTLs are seconds after completion; they are copied into each BuildRun's
    status when the run is created and enforced per run.
    """
    failed_limit: Optional[int] = None
    succeeded_limit: Optional[int] = None
    ttl_after_failed: Optional[float] = None
    ttl_after_succeeded: Optional[float] = None

    def has_limits(self) -> bool:
        return self.failed_limit is not None or self.succeeded_limit is not None


@dataclass(frozen=True)
class BuildRunRetention:
    ttl_after_failed: Optional[float] = None
    ttl_after_succeeded: Optional[float] = None


@dataclass(frozen=True)
class Build:
    namespace: str
    name: str
    retention: Optional[BuildRetention] = None


@dataclass(frozen=True)
class BuildRun:
    """
    Immutable snapshot of a BuildRun as delivered by the store.

    succeeded is None until the execution engine records the condition at all;
    once recorded it moves Unknown -> True|False exactly once.
    completion_time is set iff the condition is terminal.
    """
    namespace: str
    name: str
    build_ref: str = ""
    succeeded: Optional[ConditionStatus] = None
    completion_time: Optional[float] = None
    retention: Optional[BuildRunRetention] = None
    status_build_retention: Optional[BuildRetention] = None
    creation_time: float = 0.0

    @property
    def completed(self) -> bool:
        return self.succeeded is not None and self.succeeded.terminal


Resource = Union[Build, BuildRun]


def kind_of(obj: object) -> Optional[str]:
    if isinstance(obj, Build):
        return KIND_BUILD
    if isinstance(obj, BuildRun):
        return KIND_BUILDRUN
    return None


@dataclass(frozen=True)
class Request:
    """Reconciliation key. Ephemeral; never persisted."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class EventType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Event:
    """
    Change notification from the store: (kind, old snapshot, new snapshot).
    Create has no old, delete has no new.
    """
    kind: str
    old: Optional[Resource] = None
    new: Optional[Resource] = None

    @property
    def type(self) -> Optional[EventType]:
        if self.old is None and self.new is not None:
            return EventType.CREATE
        if self.old is not None and self.new is not None:
            return EventType.UPDATE
        if self.old is not None and self.new is None:
            return EventType.DELETE
        return None
