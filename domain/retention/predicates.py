# controller/domain/retention/predicates.py
#
# Edge-triggered admission for the retention controllers.
#
# Each watched kind gets three hooks (create / update / delete) that look at
# immutable snapshots and answer ADMIT or DROP. Admitted events are turned into
# a Request by a mapper. Nothing here raises: a malformed event is a DROP.
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .types import (
    KIND_BUILD,
    KIND_BUILDRUN,
    Build,
    BuildRun,
    ConditionStatus,
    Event,
    EventType,
    Request,
    Resource,
)

log = logging.getLogger("retention.predicates")


class Decision(str, Enum):
    ADMIT = "admit"
    DROP = "drop"

    @classmethod
    def of(cls, admit: bool) -> "Decision":
        return cls.ADMIT if admit else cls.DROP


CreateFn = Callable[[Resource], Decision]
UpdateFn = Callable[[Resource, Resource], Decision]
DeleteFn = Callable[[Resource], Decision]
Mapper = Callable[[Resource], Optional[Request]]


def _never(*_objs: Resource) -> Decision:
    # Never reconcile on deletion (or creation, where used); there is nothing we have to do.
    return Decision.DROP


@dataclass(frozen=True)
class Predicates:
    on_create: CreateFn = _never
    on_update: UpdateFn = _never
    on_delete: DeleteFn = _never


@dataclass(frozen=True)
class Watch:
    """One watched kind: which events get in, and which key they become."""
    kind: str
    predicates: Predicates
    mapper: Mapper


@dataclass(frozen=True)
class Classification:
    admit: bool
    request: Optional[Request] = None


DROPPED = Classification(admit=False)


# -----------------------------------------------------------------------------
# Build (primary): count-based limits
# -----------------------------------------------------------------------------

def build_limits_created(obj: Resource) -> Decision:
    if not isinstance(obj, Build):
        return Decision.DROP
    return Decision.of(obj.retention is not None and obj.retention.has_limits())


def _decreased(old: Optional[int], new: Optional[int]) -> bool:
    return old is not None and new is not None and int(new) < int(old)


def _newly_set(old: Optional[int], new: Optional[int]) -> bool:
    return new is not None and old is None


def build_limits_updated(old: Resource, new: Resource) -> Decision:
    """
    Admit only changes that can tighten what must be pruned:
      - retention appears with at least one limit
      - a limit is set where it was absent
      - a limit value decreased
    Removing retention, raising a limit, or unrelated edits are dropped.
    """
    if not isinstance(old, Build) or not isinstance(new, Build):
        return Decision.DROP

    o, n = old.retention, new.retention
    if n is None:
        return Decision.DROP

    if o is None:
        return Decision.of(n.has_limits())

    if _newly_set(o.failed_limit, n.failed_limit):
        return Decision.ADMIT
    if _newly_set(o.succeeded_limit, n.succeeded_limit):
        return Decision.ADMIT
    if _decreased(o.failed_limit, n.failed_limit):
        return Decision.ADMIT
    if _decreased(o.succeeded_limit, n.succeeded_limit):
        return Decision.ADMIT
    return Decision.DROP


build_limit_predicates = Predicates(
    on_create=build_limits_created,
    on_update=build_limits_updated,
)


# -----------------------------------------------------------------------------
# BuildRun (secondary): completion edge
# -----------------------------------------------------------------------------

def completion_edge(old: Resource, new: Resource) -> bool:
    """
    True iff this update moves the Succeeded condition Unknown -> True|False.
    Both snapshots must carry the condition; later updates of an already
    completed run never match.
    """
    if not isinstance(old, BuildRun) or not isinstance(new, BuildRun):
        return False
    if old.succeeded is None or new.succeeded is None:
        return False
    return old.succeeded == ConditionStatus.UNKNOWN and new.succeeded.terminal


def buildrun_completed(old: Resource, new: Resource) -> Decision:
    return Decision.of(completion_edge(old, new))


def buildrun_completed_with_owner(old: Resource, new: Resource) -> Decision:
    # Runs without a Build reference have no limits to enforce.
    if not isinstance(new, BuildRun) or not new.build_ref:
        return Decision.DROP
    return Decision.of(completion_edge(old, new))


buildrun_ttl_predicates = Predicates(on_update=buildrun_completed)

buildrun_completion_predicates = Predicates(on_update=buildrun_completed_with_owner)


# -----------------------------------------------------------------------------
# Key mapping
# -----------------------------------------------------------------------------

def request_for_object(obj: Resource) -> Optional[Request]:
    namespace = getattr(obj, "namespace", None)
    name = getattr(obj, "name", None)
    if not namespace or not name:
        return None
    return Request(namespace=namespace, name=name)


def request_for_owner(obj: Resource) -> Optional[Request]:
    """BuildRun -> Request for its owning Build; None without an owner reference."""
    if not isinstance(obj, BuildRun) or not obj.build_ref or not obj.namespace:
        return None
    return Request(namespace=obj.namespace, name=obj.build_ref)


# -----------------------------------------------------------------------------
# Watch sets
# -----------------------------------------------------------------------------

TTL_WATCHES = (
    Watch(kind=KIND_BUILDRUN, predicates=buildrun_ttl_predicates, mapper=request_for_object),
)

LIMIT_WATCHES = (
    Watch(kind=KIND_BUILD, predicates=build_limit_predicates, mapper=request_for_object),
    Watch(kind=KIND_BUILDRUN, predicates=buildrun_completion_predicates, mapper=request_for_owner),
)


def _decide(event: Event, predicates: Predicates) -> Decision:
    etype = event.type
    if etype == EventType.CREATE:
        return predicates.on_create(event.new)
    if etype == EventType.UPDATE:
        return predicates.on_update(event.old, event.new)
    if etype == EventType.DELETE:
        return predicates.on_delete(event.old)
    return Decision.DROP


def classify(event: Event, watch: Watch) -> Classification:
    """
    Pure: the same (old, new) pair always gives the same answer.
    Events of another kind, hook failures and unmappable objects are dropped.
    """
    if event.kind != watch.kind:
        return DROPPED

    try:
        decision = _decide(event, watch.predicates)
        if decision != Decision.ADMIT:
            return DROPPED

        obj = event.new if event.new is not None else event.old
        request = watch.mapper(obj)
    except Exception:
        log.debug("predicate failed; dropping event", exc_info=True, extra={"kind": event.kind})
        return DROPPED

    if request is None:
        return DROPPED
    return Classification(admit=True, request=request)
