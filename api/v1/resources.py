# controller/api/v1/resources.py
from __future__ import annotations

import time
from typing import Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from connectors.ingress_http import (
    parse_build,
    parse_buildrun,
    render_build,
    render_buildrun,
)
from domain.retention.types import KIND_BUILD, KIND_BUILDRUN, Build, BuildRun
from lifecycle.errors import NotFoundError, StoreError

from .state import get_manager

router = APIRouter()

DurationValue = Union[str, float]


class BuildRetentionBody(BaseModel):
    failed_limit: Optional[int] = Field(default=None, ge=1, description="Keep at most N failed runs.")
    succeeded_limit: Optional[int] = Field(default=None, ge=1, description="Keep at most N succeeded runs.")
    ttl_after_failed: Optional[DurationValue] = Field(default=None, description="e.g. '1h', '30m', or seconds.")
    ttl_after_succeeded: Optional[DurationValue] = None


class BuildRunRetentionBody(BaseModel):
    ttl_after_failed: Optional[DurationValue] = None
    ttl_after_succeeded: Optional[DurationValue] = None


class BuildBody(BaseModel):
    retention: Optional[BuildRetentionBody] = None


class BuildRunBody(BaseModel):
    build_ref: str = Field(default="", description="Name of the owning Build (same namespace).")
    succeeded: Optional[Literal["Unknown", "True", "False"]] = None
    completion_time: Optional[Union[float, str]] = Field(
        default=None, description="RFC3339 or epoch seconds; defaults to now on completion."
    )
    retention: Optional[BuildRunRetentionBody] = None
    status_build_retention: Optional[BuildRetentionBody] = Field(
        default=None, description="Build retention snapshot; captured from the Build when omitted."
    )


def _unprocessable(e: Exception) -> HTTPException:
    return HTTPException(status_code=422, detail=str(e))


# -----------------------------------------------------------------------------
# Builds
# -----------------------------------------------------------------------------

@router.put("/builds/{namespace}/{name}")
def put_build(namespace: str, name: str, body: BuildBody) -> Dict[str, Any]:
    store = get_manager().store
    try:
        build = parse_build(namespace, name, body.model_dump())
    except ValueError as e:
        raise _unprocessable(e)

    event = store.put(build)
    return {"ok": True, "created": event.old is None, "build": render_build(build)}


@router.get("/builds")
def list_builds(namespace: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    items = get_manager().store.list(KIND_BUILD, namespace)
    return {"items": [render_build(b) for b in items if isinstance(b, Build)]}


@router.get("/builds/{namespace}/{name}")
async def get_build(namespace: str, name: str) -> Dict[str, Any]:
    try:
        build = await get_manager().store.get(KIND_BUILD, namespace, name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return render_build(build)


@router.delete("/builds/{namespace}/{name}")
def delete_build(namespace: str, name: str) -> Dict[str, Any]:
    deleted = get_manager().store.remove(KIND_BUILD, namespace, name)
    return {"ok": True, "deleted": deleted}


# -----------------------------------------------------------------------------
# BuildRuns
# -----------------------------------------------------------------------------

@router.put("/buildruns/{namespace}/{name}")
async def put_buildrun(namespace: str, name: str, body: BuildRunBody) -> Dict[str, Any]:
    store = get_manager().store

    previous: Optional[BuildRun] = None
    try:
        obj = await store.get(KIND_BUILDRUN, namespace, name)
        if isinstance(obj, BuildRun):
            previous = obj
    except NotFoundError:
        pass

    owner: Optional[Build] = None
    if previous is None and body.build_ref:
        try:
            obj = await store.get(KIND_BUILD, namespace, body.build_ref)
            if isinstance(obj, Build):
                owner = obj
        except NotFoundError:
            pass

    try:
        run = parse_buildrun(
            namespace,
            name,
            body.model_dump(exclude_unset=True),
            now=time.time(),
            previous=previous,
            owner=owner,
        )
    except ValueError as e:
        raise _unprocessable(e)

    try:
        event = store.put(run)
    except ValueError as e:
        # Completion invariants (terminal conditions never change).
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"ok": True, "created": event.old is None, "buildrun": render_buildrun(run)}


@router.get("/buildruns")
def list_buildruns(
    namespace: Optional[str] = Query(default=None),
    build: Optional[str] = Query(default=None, description="Only runs of this Build."),
) -> Dict[str, Any]:
    items = get_manager().store.list(KIND_BUILDRUN, namespace)
    runs = [r for r in items if isinstance(r, BuildRun) and (build is None or r.build_ref == build)]
    return {"items": [render_buildrun(r) for r in runs]}


@router.get("/buildruns/{namespace}/{name}")
async def get_buildrun(namespace: str, name: str) -> Dict[str, Any]:
    try:
        run = await get_manager().store.get(KIND_BUILDRUN, namespace, name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return render_buildrun(run)


@router.delete("/buildruns/{namespace}/{name}")
def delete_buildrun(namespace: str, name: str) -> Dict[str, Any]:
    deleted = get_manager().store.remove(KIND_BUILDRUN, namespace, name)
    return {"ok": True, "deleted": deleted}
