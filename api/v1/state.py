# controller/api/v1/state.py
from typing import Optional

from fastapi import HTTPException

from lifecycle.manager import Manager

# Canonical manager for v1 (set by app startup)
MANAGER: Optional[Manager] = None


def set_manager(manager: Optional[Manager]) -> None:
    global MANAGER
    MANAGER = manager


def get_manager() -> Manager:
    if MANAGER is None:
        raise HTTPException(status_code=503, detail="controller not started")
    return MANAGER
