"""Sync hooks for extension points around the sync pipeline.

Observers are notified of sync events and cannot change the outcome.
Filters receive a value and return a possibly rewritten one. Both run in
priority order and a failing hook never aborts a sync.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from app.metrics.sync_metrics import (
    sync_failures_total,
    sync_last_success_timestamp,
    sync_total,
    translation_groups_created_total,
)
from app.models.host import HostUser
from app.models.sync import (
    PostSyncRequest,
    SyncError,
    SyncType,
    TaxonomySyncRequest,
)

logger = logging.getLogger(__name__)

AnySyncRequest = Union[TaxonomySyncRequest, PostSyncRequest]


# =============================================================================
# Hook Priority
# =============================================================================


class HookPriority:
    """Hook execution priority (lower = earlier)."""

    CRITICAL = 0  # Security, permission rewrites
    HIGH = 100  # Parameter rewrites
    NORMAL = 200  # Business logic
    LOW = 300  # Logging, metrics


# =============================================================================
# Base Hook Classes
# =============================================================================


class SyncObserver:
    """Base class for sync observers.

    Override any subset of the event methods; the defaults do nothing.

    Example:
        class AuditObserver(SyncObserver):
            def __init__(self):
                super().__init__(name="audit", priority=HookPriority.LOW)

            async def after_sync(self, sync_type, request, result):
                audit_log.append(result)
    """

    def __init__(self, name: str, priority: int = HookPriority.NORMAL):
        self.name = name
        self.priority = priority
        self._logger = logging.getLogger(f"hook.{name}")

    async def before_sync(self, sync_type: SyncType, request: AnySyncRequest) -> None:
        pass

    async def after_sync(
        self, sync_type: SyncType, request: AnySyncRequest, result: Dict[str, Any]
    ) -> None:
        pass

    async def sync_failed(
        self, sync_type: SyncType, request: AnySyncRequest, error: SyncError
    ) -> None:
        pass

    async def translations_saved(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        translations: Dict[str, int],
        group_id: str,
    ) -> None:
        pass


class SyncFilter:
    """Base class for sync filters.

    Every filter method returns its first argument unchanged by default, so
    subclasses only override what they rewrite.
    """

    def __init__(self, name: str, priority: int = HookPriority.NORMAL):
        self.name = name
        self.priority = priority
        self._logger = logging.getLogger(f"hook.{name}")

    async def filter_params(
        self, request: AnySyncRequest, sync_type: SyncType
    ) -> AnySyncRequest:
        return request

    async def filter_response(
        self, data: Dict[str, Any], sync_type: SyncType, request: AnySyncRequest
    ) -> Dict[str, Any]:
        return data

    async def filter_languages(
        self, languages: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        return languages

    async def filter_terms_query(self, query: Dict[str, Any]) -> Dict[str, Any]:
        return query

    async def filter_terms(
        self, terms: List[Dict[str, Any]], taxonomy: str, lang: Optional[str]
    ) -> List[Dict[str, Any]]:
        return terms

    async def filter_permission(
        self, allowed: bool, capability: str, user: HostUser
    ) -> bool:
        return allowed

    async def filter_log_data(
        self, data: Dict[str, Any], action: str, request: AnySyncRequest
    ) -> Dict[str, Any]:
        return data


# =============================================================================
# Registry
# =============================================================================


class HookRegistry:
    """Runs registered observers and filters in priority order."""

    def __init__(
        self,
        observers: Optional[List[SyncObserver]] = None,
        filters: Optional[List[SyncFilter]] = None,
    ):
        self._observers: List[SyncObserver] = sorted(
            observers or [], key=lambda h: h.priority
        )
        self._filters: List[SyncFilter] = sorted(
            filters or [], key=lambda h: h.priority
        )

    def register_observer(self, observer: SyncObserver) -> None:
        self._observers.append(observer)
        self._observers.sort(key=lambda h: h.priority)
        logger.info(
            f"Registered observer '{observer.name}' with priority {observer.priority}"
        )

    def register_filter(self, sync_filter: SyncFilter) -> None:
        self._filters.append(sync_filter)
        self._filters.sort(key=lambda h: h.priority)
        logger.info(
            f"Registered filter '{sync_filter.name}' with priority {sync_filter.priority}"
        )

    def unregister(self, name: str) -> bool:
        """Remove every observer and filter with this name."""
        before = len(self._observers) + len(self._filters)
        self._observers = [h for h in self._observers if h.name != name]
        self._filters = [h for h in self._filters if h.name != name]
        return len(self._observers) + len(self._filters) < before

    @property
    def names(self) -> List[str]:
        return [h.name for h in self._observers] + [h.name for h in self._filters]

    async def _notify(self, event: str, *args: Any) -> None:
        for observer in self._observers:
            try:
                await getattr(observer, event)(*args)
            except Exception:
                logger.exception(f"Observer '{observer.name}' raised in {event}")
                # Continue notifying despite hook failure

    async def _apply(self, name: str, value: Any, *args: Any) -> Any:
        for sync_filter in self._filters:
            try:
                value = await getattr(sync_filter, name)(value, *args)
            except Exception:
                logger.exception(f"Filter '{sync_filter.name}' raised in {name}")
                # Keep the value from the previous filter
        return value

    # -- Events ------------------------------------------------------------

    async def before_sync(self, sync_type: SyncType, request: AnySyncRequest) -> None:
        await self._notify("before_sync", sync_type, request)

    async def after_sync(
        self, sync_type: SyncType, request: AnySyncRequest, result: Dict[str, Any]
    ) -> None:
        await self._notify("after_sync", sync_type, request, result)

    async def sync_failed(
        self, sync_type: SyncType, request: AnySyncRequest, error: SyncError
    ) -> None:
        await self._notify("sync_failed", sync_type, request, error)

    async def translations_saved(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        translations: Dict[str, int],
        group_id: str,
    ) -> None:
        await self._notify("translations_saved", sync_type, request, translations, group_id)

    # -- Filters -----------------------------------------------------------

    async def filter_params(
        self, request: AnySyncRequest, sync_type: SyncType
    ) -> AnySyncRequest:
        return await self._apply("filter_params", request, sync_type)

    async def filter_response(
        self, data: Dict[str, Any], sync_type: SyncType, request: AnySyncRequest
    ) -> Dict[str, Any]:
        return await self._apply("filter_response", data, sync_type, request)

    async def filter_languages(
        self, languages: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        return await self._apply("filter_languages", languages)

    async def filter_terms_query(self, query: Dict[str, Any]) -> Dict[str, Any]:
        return await self._apply("filter_terms_query", query)

    async def filter_terms(
        self, terms: List[Dict[str, Any]], taxonomy: str, lang: Optional[str]
    ) -> List[Dict[str, Any]]:
        return await self._apply("filter_terms", terms, taxonomy, lang)

    async def filter_permission(
        self, allowed: bool, capability: str, user: HostUser
    ) -> bool:
        return bool(await self._apply("filter_permission", allowed, capability, user))

    async def filter_log_data(
        self, data: Dict[str, Any], action: str, request: AnySyncRequest
    ) -> Dict[str, Any]:
        return await self._apply("filter_log_data", data, action, request)


# =============================================================================
# Built-in Hooks
# =============================================================================


class MetricsObserver(SyncObserver):
    """Records sync outcomes as Prometheus metrics."""

    def __init__(self):
        super().__init__(name="metrics", priority=HookPriority.LOW)

    async def after_sync(
        self, sync_type: SyncType, request: AnySyncRequest, result: Dict[str, Any]
    ) -> None:
        sync_total.labels(sync_type=sync_type.value, outcome="success").inc()
        sync_last_success_timestamp.labels(sync_type=sync_type.value).set(time.time())

    async def sync_failed(
        self, sync_type: SyncType, request: AnySyncRequest, error: SyncError
    ) -> None:
        sync_total.labels(sync_type=sync_type.value, outcome="failure").inc()
        sync_failures_total.labels(
            sync_type=sync_type.value, kind=error.kind.value
        ).inc()

    async def translations_saved(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        translations: Dict[str, int],
        group_id: str,
    ) -> None:
        kind = "term" if sync_type is SyncType.TAXONOMY else "post"
        translation_groups_created_total.labels(kind=kind).inc()
