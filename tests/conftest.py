"""
Shared fixtures for the retention controller tests.

FakeStore stands in for the durable store where a test needs to script
failures; InMemoryStore is used where the real notification flow matters.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from domain.retention.types import (
    KIND_BUILD,
    KIND_BUILDRUN,
    Build,
    BuildRetention,
    BuildRun,
    BuildRunRetention,
    ConditionStatus,
    kind_of,
)
from lifecycle.errors import NotFoundError

T0 = 1_700_000_000.0
HOUR = 3600.0
MINUTE = 60.0


class FakeStore:
    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str, str], object] = {}
        self.get_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.delete_calls: List[Tuple[str, str, str]] = []

    def add(self, obj) -> None:
        self.objects[(kind_of(obj), obj.namespace, obj.name)] = obj

    async def get(self, kind, namespace, name):
        if self.get_error is not None:
            raise self.get_error
        obj = self.objects.get((kind, namespace, name))
        if obj is None:
            raise NotFoundError(kind, namespace, name)
        return obj

    async def delete(self, kind, namespace, name):
        self.delete_calls.append((kind, namespace, name))
        if self.delete_error is not None:
            raise self.delete_error
        if self.objects.pop((kind, namespace, name), None) is None:
            raise NotFoundError(kind, namespace, name)

    async def list_buildruns(self, namespace, build_name):
        return [
            o for (k, ns, _), o in self.objects.items()
            if k == KIND_BUILDRUN and ns == namespace and o.build_ref == build_name
        ]

    def has(self, kind, namespace, name) -> bool:
        return (kind, namespace, name) in self.objects


@pytest.fixture
def store():
    return FakeStore()


def _run(
    name: str = "run-1",
    *,
    namespace: str = "ns",
    build_ref: str = "build-a",
    succeeded: Optional[ConditionStatus] = ConditionStatus.UNKNOWN,
    completion_time: Optional[float] = None,
    ttl_after_failed: Optional[float] = None,
    ttl_after_succeeded: Optional[float] = None,
    own_retention: bool = False,
    inherited: Optional[BuildRetention] = None,
) -> BuildRun:
    if succeeded is not None and succeeded.terminal and completion_time is None:
        completion_time = T0
    retention = None
    if own_retention or ttl_after_failed is not None or ttl_after_succeeded is not None:
        retention = BuildRunRetention(
            ttl_after_failed=ttl_after_failed,
            ttl_after_succeeded=ttl_after_succeeded,
        )
    return BuildRun(
        namespace=namespace,
        name=name,
        build_ref=build_ref,
        succeeded=succeeded,
        completion_time=completion_time,
        retention=retention,
        status_build_retention=inherited,
        creation_time=T0 - HOUR,
    )


def _build(
    name: str = "build-a",
    *,
    namespace: str = "ns",
    failed_limit: Optional[int] = None,
    succeeded_limit: Optional[int] = None,
    retention: bool = True,
) -> Build:
    if not retention:
        return Build(namespace=namespace, name=name)
    return Build(
        namespace=namespace,
        name=name,
        retention=BuildRetention(failed_limit=failed_limit, succeeded_limit=succeeded_limit),
    )


@pytest.fixture
def make_run():
    return _run


@pytest.fixture
def make_build():
    return _build

