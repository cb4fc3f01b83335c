"""
Validation and sanitization of sync parameters.

The predicates are used both by route admission control (one predicate per
field) and by the sync handler. They answer true or false and never change
host state.
"""

import logging
import re
from typing import Any, List, Optional, Union

from app.host.interfaces import ContentStore, TranslationStore
from app.models.sync import PostSyncRequest, TaxonomySyncRequest

logger = logging.getLogger(__name__)

TAXONOMY_REQUIRED_FIELDS = (
    "taxonomy",
    "source_term_id",
    "source_lang",
    "target_term_id",
    "target_lang",
)
POST_REQUIRED_FIELDS = ("source_post_id", "source_lang", "target_post_id", "target_lang")

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_text_field(value: Any) -> str:
    """Strip tags and control characters, collapse whitespace and trim."""
    if value is None:
        return ""
    text = _TAG_RE.sub("", str(value))
    text = _CONTROL_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def absint(value: Any) -> int:
    """Coerce to a non-negative integer, 0 when the value is not numeric."""
    try:
        return abs(int(value))
    except (TypeError, ValueError):
        return 0


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class Validator:
    """Stateless predicates over host data plus request validation."""

    def __init__(self, content: ContentStore, translations: TranslationStore):
        self.content = content
        self.translations = translations

    # -- Predicates --------------------------------------------------------

    async def validate_taxonomy(self, taxonomy: Any) -> bool:
        """Taxonomy exists and is managed by the translation plugin."""
        if not taxonomy or not isinstance(taxonomy, str):
            return False
        if not await self.content.taxonomy_exists(taxonomy):
            return False
        if not await self.translations.is_available():
            return False
        return taxonomy in await self.content.translatable_taxonomies()

    async def validate_term_exists(self, term_id: Any) -> bool:
        number = _positive_int(term_id)
        if number is None:
            return False
        return await self.content.get_term(number) is not None

    async def validate_post_exists(self, post_id: Any) -> bool:
        number = _positive_int(post_id)
        if number is None:
            return False
        return await self.content.get_post(number) is not None

    async def validate_language(self, lang: Any) -> bool:
        if not lang or not isinstance(lang, str):
            return False
        languages = await self.translations.get_languages()
        return lang in {language.slug for language in languages}

    # -- Request validation ------------------------------------------------

    def validate_sync_params(self, request: TaxonomySyncRequest) -> List[str]:
        """Check a term sync request, returning the list of problems found."""
        errors = _missing_fields(request, TAXONOMY_REQUIRED_FIELDS)
        if request.source_lang and request.source_lang == request.target_lang:
            errors.append("Source and target languages must be different.")
        source_id, target_id = absint(request.source_term_id), absint(request.target_term_id)
        if source_id and source_id == target_id:
            errors.append("Source and target terms must be different.")
        return errors

    def validate_post_sync_params(self, request: PostSyncRequest) -> List[str]:
        """Check a post sync request, returning the list of problems found."""
        errors = _missing_fields(request, POST_REQUIRED_FIELDS)
        if request.source_lang and request.source_lang == request.target_lang:
            errors.append("Source and target languages must be different.")
        source_id, target_id = absint(request.source_post_id), absint(request.target_post_id)
        if source_id and source_id == target_id:
            errors.append("Source and target posts must be different.")
        return errors

    # -- Sanitization ------------------------------------------------------

    def sanitize_sync_params(self, request: TaxonomySyncRequest) -> TaxonomySyncRequest:
        return request.model_copy(
            update={
                "taxonomy": sanitize_text_field(request.taxonomy),
                "source_term_id": absint(request.source_term_id),
                "source_lang": sanitize_text_field(request.source_lang),
                "target_term_id": absint(request.target_term_id),
                "target_lang": sanitize_text_field(request.target_lang),
            }
        )

    def sanitize_post_params(self, request: PostSyncRequest) -> PostSyncRequest:
        return request.model_copy(
            update={
                "source_post_id": absint(request.source_post_id),
                "source_lang": sanitize_text_field(request.source_lang),
                "target_post_id": absint(request.target_post_id),
                "target_lang": sanitize_text_field(request.target_lang),
            }
        )


def _missing_fields(
    request: Union[TaxonomySyncRequest, PostSyncRequest], fields: tuple
) -> List[str]:
    errors = []
    for name in fields:
        value = getattr(request, name, None)
        if value is None or value == "" or value == 0:
            errors.append(f'Field "{name}" is required.')
    return errors
