# controller/lifecycle/errors.py
from __future__ import annotations


class RetentionError(Exception):
    """Base for errors raised by the retention controllers."""


class NotFoundError(RetentionError):
    """
    The object vanished (or never existed). Reconcilers treat this as success:
    somebody else already removed it.
    """

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(f"{kind} {namespace}/{name} not found")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class StoreError(RetentionError):
    """Load/list/delete failed for any other reason. Retryable."""


class ReconcileTimeout(RetentionError):
    """The per-reconcile budget elapsed before the attempt finished. Retryable."""

    def __init__(self, request: object, timeout_s: float) -> None:
        super().__init__(f"reconcile of {request} exceeded {timeout_s}s")
        self.request = request
        self.timeout_s = timeout_s
