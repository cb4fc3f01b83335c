"""Translation sync pipeline: validation, hooks and the sync handler."""

from app.sync.handler import SyncHandler
from app.sync.hooks import (
    HookPriority,
    HookRegistry,
    MetricsObserver,
    SyncFilter,
    SyncObserver,
)
from app.sync.validator import Validator

__all__ = [
    "HookPriority",
    "HookRegistry",
    "MetricsObserver",
    "SyncFilter",
    "SyncHandler",
    "SyncObserver",
    "Validator",
]
