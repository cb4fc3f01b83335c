"""
Sync handler linking two existing objects as translations of each other.

Both sync operations are a linear pipeline with early exit:

    before_sync -> filter_params -> validate -> sanitize -> resolve objects
    -> not already linked -> set languages + link group -> respond

A reported failure is returned as a SyncError rather than raised, so no
exception leaves the handler.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from app.core.config import Settings
from app.host.interfaces import ContentStore, HostError, TranslationStore
from app.models.host import ObjectKind
from app.models.sync import (
    PostSyncRequest,
    PostSyncResult,
    SyncContext,
    SyncError,
    SyncErrorKind,
    SyncOutcome,
    SyncType,
    TaxonomySyncRequest,
    TaxonomySyncResult,
)
from app.sync.hooks import HookRegistry
from app.sync.validator import Validator

logger = logging.getLogger(__name__)

AnySyncRequest = Union[TaxonomySyncRequest, PostSyncRequest]
LinkStep = Callable[[Any], Awaitable[Union[Dict[str, Any], SyncError]]]

OBJECT_LABELS = {ObjectKind.TERM: "Terms", ObjectKind.POST: "Posts"}


class SyncHandler:
    """Runs sync pipelines and read operations against the host."""

    def __init__(
        self,
        content: ContentStore,
        translations: TranslationStore,
        validator: Validator,
        hooks: Optional[HookRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.content = content
        self.translations = translations
        self.validator = validator
        self.hooks = hooks or HookRegistry()
        self.log_enabled = settings.SYNC_LOG_ENABLED if settings else True

    # =========================================================================
    # Sync operations
    # =========================================================================

    async def sync_taxonomy_terms(
        self, request: TaxonomySyncRequest, context: Optional[SyncContext] = None
    ) -> SyncOutcome:
        """Link two terms of one taxonomy as translations.

        Args:
            request: Terms, taxonomy and languages to link
            context: Caller identity and address for the audit log

        Returns:
            Result payload on success, SyncError otherwise
        """
        return await self._run(
            SyncType.TAXONOMY,
            request,
            context,
            check=self.validator.validate_sync_params,
            sanitize=self.validator.sanitize_sync_params,
            link=self._link_terms,
            label="taxonomy terms",
        )

    async def sync_posts(
        self, request: PostSyncRequest, context: Optional[SyncContext] = None
    ) -> SyncOutcome:
        """Link two posts as translations.

        Args:
            request: Posts and languages to link
            context: Caller identity and address for the audit log

        Returns:
            Result payload on success, SyncError otherwise
        """
        return await self._run(
            SyncType.POSTS,
            request,
            context,
            check=self.validator.validate_post_sync_params,
            sanitize=self.validator.sanitize_post_params,
            link=self._link_posts,
            label="posts",
        )

    async def _run(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        context: Optional[SyncContext],
        check: Callable[[Any], List[str]],
        sanitize: Callable[[Any], Any],
        link: LinkStep,
        label: str,
    ) -> SyncOutcome:
        context = context or SyncContext()
        try:
            await self.hooks.before_sync(sync_type, request)
            request = await self.hooks.filter_params(request, sync_type)

            reasons = check(request)
            if not reasons:
                request = sanitize(request)
                # Sanitizing can make two distinct values equal
                reasons = check(request)
            if reasons:
                return await self._fail(
                    sync_type, request, context, _validation_error(reasons)
                )

            outcome = await link(request)
            if isinstance(outcome, SyncError):
                return await self._fail(sync_type, request, context, outcome)
            return await self._succeed(sync_type, request, context, outcome)

        except Exception as e:
            logger.exception(f"Sync of {label} failed unexpectedly: {e}")
            return await self._fail(
                sync_type,
                request,
                context,
                _unexpected_error(f"Failed to sync {label}: {e}"),
            )

    async def _link_terms(
        self, request: TaxonomySyncRequest
    ) -> Union[Dict[str, Any], SyncError]:
        source = await self.content.get_term(request.source_term_id)
        target = await self.content.get_term(request.target_term_id)
        if source is None or target is None:
            return SyncError(
                kind=SyncErrorKind.NOT_FOUND,
                code="term_error",
                message="One or both terms do not exist.",
            )
        if source.taxonomy != request.taxonomy or target.taxonomy != request.taxonomy:
            return SyncError(
                kind=SyncErrorKind.VALIDATION,
                code="taxonomy_mismatch",
                message=f"Both terms must belong to the '{request.taxonomy}' taxonomy.",
            )

        error = await self._link_pair(
            ObjectKind.TERM,
            SyncType.TAXONOMY,
            request,
            (request.source_lang, source.id),
            (request.target_lang, target.id),
        )
        if error is not None:
            return error
        return TaxonomySyncResult(
            source_term_id=source.id,
            target_term_id=target.id,
            source_lang=request.source_lang,
            target_lang=request.target_lang,
            taxonomy=request.taxonomy,
        ).model_dump()

    async def _link_posts(self, request: PostSyncRequest) -> Union[Dict[str, Any], SyncError]:
        source = await self.content.get_post(request.source_post_id)
        target = await self.content.get_post(request.target_post_id)
        if source is None or target is None:
            return SyncError(
                kind=SyncErrorKind.NOT_FOUND,
                code="post_error",
                message="One or both posts do not exist.",
            )

        error = await self._link_pair(
            ObjectKind.POST,
            SyncType.POSTS,
            request,
            (request.source_lang, source.id),
            (request.target_lang, target.id),
        )
        if error is not None:
            return error
        return PostSyncResult(
            source_post_id=source.id,
            target_post_id=target.id,
            source_lang=request.source_lang,
            target_lang=request.target_lang,
        ).model_dump()

    # =========================================================================
    # Read operations
    # =========================================================================

    async def get_available_languages(self) -> List[Dict[str, Any]]:
        """Configured languages in host order, empty if the plugin is inactive."""
        if not await self.translations.is_available():
            logger.warning("Translation plugin not available, no languages to list")
            return []

        languages = [lang.model_dump() for lang in await self.translations.get_languages()]
        return await self.hooks.filter_languages(languages)

    async def get_taxonomy_terms(
        self, taxonomy: str, lang: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List a taxonomy's terms with their language and translations.

        Args:
            taxonomy: Taxonomy name
            lang: Only list terms assigned to this language

        Returns:
            One dict per term; empty when the host cannot list the taxonomy
        """
        query = await self.hooks.filter_terms_query(
            {"taxonomy": taxonomy, "hide_empty": False, "lang": lang}
        )
        try:
            terms = await self.content.list_terms(query["taxonomy"], lang=query.get("lang"))
        except HostError as e:
            logger.warning(f"Could not list terms of '{query['taxonomy']}': {e.message}")
            return []

        if query.get("hide_empty"):
            terms = [term for term in terms if term.count > 0]

        results = []
        for term in terms:
            language = await self.translations.get_language(ObjectKind.TERM, term.id)
            translations = await self.translations.get_translations(ObjectKind.TERM, term.id)
            results.append(
                {
                    "id": term.id,
                    "name": term.name,
                    "slug": term.slug,
                    "description": term.description,
                    "count": term.count,
                    "language": language or "",
                    "translations": translations,
                }
            )
        return await self.hooks.filter_terms(results, taxonomy, lang)

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    async def _already_linked(
        self, kind: ObjectKind, source_id: int, target_id: int
    ) -> bool:
        source_translations = await self.translations.get_translations(kind, source_id)
        target_translations = await self.translations.get_translations(kind, target_id)
        return bool(
            set(source_translations.values()) & set(target_translations.values())
        )

    async def _link_pair(
        self,
        kind: ObjectKind,
        sync_type: SyncType,
        request: AnySyncRequest,
        source: Tuple[str, int],
        target: Tuple[str, int],
    ) -> Optional[SyncError]:
        """Link two resolved objects unless they already are, None on success."""
        if await self._already_linked(kind, source[1], target[1]):
            return SyncError(
                kind=SyncErrorKind.CONFLICT,
                code="already_linked",
                message=f"{OBJECT_LABELS[kind]} are already linked as translations.",
            )
        return await self._link(kind, sync_type, request, dict([source, target]))

    async def _link(
        self,
        kind: ObjectKind,
        sync_type: SyncType,
        request: AnySyncRequest,
        translations: Dict[str, int],
    ) -> Optional[SyncError]:
        """Assign languages and create the group, None on success.

        Languages already changed are set back when a later step fails.
        """
        changed: List[Tuple[int, Optional[str]]] = []
        try:
            for lang, object_id in translations.items():
                previous = await self.translations.get_language(kind, object_id)
                if previous == lang:
                    continue
                await self.translations.set_language(kind, object_id, lang)
                changed.append((object_id, previous))
            group_id = await self.translations.link_group(kind, translations)
        except HostError as e:
            logger.error(
                f"Host rejected {kind.value} link: {e.message}",
                extra={"status_code": e.status_code, "translations": translations},
            )
            await self._restore_languages(kind, changed)
            return SyncError(
                kind=SyncErrorKind.DELEGATE,
                code="polylang_error",
                message=f"Failed to link translations: {e.message}",
                status_code=e.status_code,
            )

        logger.info(f"Linked {kind.value} translations {translations} as group {group_id}")
        await self.hooks.translations_saved(sync_type, request, translations, group_id)
        return None

    async def _restore_languages(
        self, kind: ObjectKind, changed: List[Tuple[int, Optional[str]]]
    ) -> None:
        for object_id, previous in reversed(changed):
            if previous is None:
                # The host has no call to clear a language
                logger.warning(
                    f"{kind.value.capitalize()} {object_id} keeps its new language, "
                    "it had none before"
                )
                continue
            try:
                await self.translations.set_language(kind, object_id, previous)
            except HostError as e:
                logger.error(
                    f"Could not restore language '{previous}' of {kind.value} "
                    f"{object_id}: {e.message}"
                )

    async def _succeed(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        context: SyncContext,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        data = await self.hooks.filter_response(data, sync_type, request)
        await self._log_sync_action(sync_type, request, context, success=True)
        await self.hooks.after_sync(sync_type, request, data)
        return data

    async def _fail(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        context: SyncContext,
        error: SyncError,
    ) -> SyncError:
        logger.warning(
            f"{sync_type.value} sync failed: {error.code} - {error.message}",
            extra={"kind": error.kind.value, "status_code": error.status_code},
        )
        await self._log_sync_action(sync_type, request, context, success=False, error=error)
        await self.hooks.sync_failed(sync_type, request, error)
        return error

    async def _log_sync_action(
        self,
        sync_type: SyncType,
        request: AnySyncRequest,
        context: SyncContext,
        success: bool,
        error: Optional[SyncError] = None,
    ) -> None:
        """Write one JSON audit line per sync attempt."""
        if not self.log_enabled:
            return

        action = f"{sync_type.value}_sync"
        log_data: Dict[str, Any] = {
            "action": action,
            "params": _params_of(request),
            "success": success,
            "user_id": context.user_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "ip": context.client_ip,
        }
        if error is not None:
            log_data["error"] = error.message

        log_data = await self.hooks.filter_log_data(log_data, action, request)
        logger.info(f"Sync action: {json.dumps(log_data, default=str)}")


def _validation_error(reasons: List[str]) -> SyncError:
    return SyncError(
        kind=SyncErrorKind.VALIDATION,
        code="validation_error",
        message=f"Invalid parameters: {', '.join(reasons)}",
        reasons=reasons,
    )


def _unexpected_error(message: str) -> SyncError:
    return SyncError(
        kind=SyncErrorKind.UNEXPECTED,
        code="sync_error",
        message=message,
        status_code=500,
    )


def _params_of(request: Any) -> Any:
    # Filters may hand back something other than a request model
    if hasattr(request, "model_dump"):
        return request.model_dump(exclude={"sync_type"})
    return request
