# controller/api/v1/__init__.py

from fastapi import APIRouter

# v1 router (mounted by app.py at /v1)
router = APIRouter()

from .state import get_manager, set_manager  # noqa: E402

from .resources import router as resources_router  # noqa: E402
from .events import router as events_router  # noqa: E402

# Object writes + reads
router.include_router(resources_router, tags=["v1/resources"])

# Realtime
router.include_router(events_router, tags=["v1/events"])


__all__ = ["router", "get_manager", "set_manager"]
