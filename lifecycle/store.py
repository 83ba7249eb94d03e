# controller/lifecycle/store.py
from __future__ import annotations

import math
import threading
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from domain.retention.types import (
    KIND_BUILD,
    KIND_BUILDRUN,
    Build,
    BuildRun,
    Event,
    Resource,
    kind_of,
)

from .errors import NotFoundError, StoreError

Listener = Callable[[Event], None]
Key = Tuple[str, str]


class ResourceStore(Protocol):
    """What the reconcilers need from the durable store."""

    async def get(self, kind: str, namespace: str, name: str) -> Resource:
        ...

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        ...

    async def list_buildruns(self, namespace: str, build_name: str) -> List[BuildRun]:
        ...


def validate_buildrun(old: Optional[BuildRun], new: BuildRun) -> None:
    """
    Reject writes that break the completion invariants:
      - completion_time is set iff the condition is terminal
      - a terminal condition never changes again
    """
    if new.completion_time is not None and not math.isfinite(new.completion_time):
        raise ValueError(f"BuildRun {new.namespace}/{new.name}: completion_time must be finite")
    if new.completed and new.completion_time is None:
        raise ValueError(f"BuildRun {new.namespace}/{new.name}: terminal condition without completion_time")
    if not new.completed and new.completion_time is not None:
        raise ValueError(f"BuildRun {new.namespace}/{new.name}: completion_time set before completion")
    if old is not None and old.completed and new.succeeded != old.succeeded:
        raise ValueError(
            f"BuildRun {new.namespace}/{new.name}: condition already {old.succeeded.value}, "
            f"cannot become {new.succeeded.value if new.succeeded else None}"
        )


class InMemoryStore:
    """
    Dict-backed store with change notifications.

    Writes happen under one lock; listeners are called after the lock is
    released, in write order per caller, with immutable snapshots.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[str, Dict[Key, Resource]] = {
            KIND_BUILD: {},
            KIND_BUILDRUN: {},
        }
        self._listeners: List[Listener] = []

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def subscribe(self, fn: Listener) -> None:
        with self._lock:
            self._listeners.append(fn)

    def _notify(self, event: Event) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for fn in listeners:
            fn(event)

    def _bucket(self, kind: str) -> Dict[Key, Resource]:
        bucket = self._objects.get(kind)
        if bucket is None:
            raise StoreError(f"unknown kind: {kind}")
        return bucket

    # -------------------------------------------------------------------------
    # Writes (sync; used by the API layer and tests)
    # -------------------------------------------------------------------------

    def put(self, obj: Resource) -> Event:
        kind = kind_of(obj)
        if kind is None:
            raise StoreError(f"unsupported object type: {type(obj).__name__}")

        key = (obj.namespace, obj.name)
        with self._lock:
            bucket = self._bucket(kind)
            old = bucket.get(key)
            if isinstance(obj, BuildRun):
                validate_buildrun(old if isinstance(old, BuildRun) else None, obj)
            bucket[key] = obj

        event = Event(kind=kind, old=old, new=obj)
        self._notify(event)
        return event

    def remove(self, kind: str, namespace: str, name: str) -> bool:
        """Idempotent delete. Returns False if nothing was there."""
        with self._lock:
            old = self._bucket(kind).pop((namespace, name), None)
        if old is None:
            return False
        self._notify(Event(kind=kind, old=old, new=None))
        return True

    # -------------------------------------------------------------------------
    # ResourceStore
    # -------------------------------------------------------------------------

    async def get(self, kind: str, namespace: str, name: str) -> Resource:
        with self._lock:
            obj = self._bucket(kind).get((namespace, name))
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return obj

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        if not self.remove(kind, namespace, name):
            raise NotFoundError(kind, namespace, name)

    async def list_buildruns(self, namespace: str, build_name: str) -> List[BuildRun]:
        with self._lock:
            runs = [
                r for (ns, _), r in self._objects[KIND_BUILDRUN].items()
                if ns == namespace and isinstance(r, BuildRun) and r.build_ref == build_name
            ]
        return sorted(runs, key=lambda r: r.name)

    # -------------------------------------------------------------------------
    # Read helpers for the API layer
    # -------------------------------------------------------------------------

    def list(self, kind: str, namespace: Optional[str] = None) -> List[Resource]:
        with self._lock:
            items = [
                obj for (ns, _), obj in self._bucket(kind).items()
                if namespace is None or ns == namespace
            ]
        return sorted(items, key=lambda o: (o.namespace, o.name))

    def count(self, kind: str) -> int:
        with self._lock:
            return len(self._bucket(kind))
