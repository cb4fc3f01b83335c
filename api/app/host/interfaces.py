"""
Protocol interfaces for the host content platform.

The sync service never owns content. Terms, posts, languages, translation
groups and user identities all live in the host platform and are reached
through these protocols, which enables pluggable backends (in-memory for
tests and local runs, WordPress + Polylang over REST in production).

Usage:
    class MyHost(ContentStore, TranslationStore, IdentityProvider):
        async def get_term(self, term_id: int) -> Optional[Term]:
            ...
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from app.models.host import HostUser, Language, ObjectKind, Post, Term


class HostError(Exception):
    """Raised when the host platform rejects or fails an operation.

    Attributes:
        message: Human readable reason reported by the host
        status_code: HTTP status the host answered with, 500 when unknown
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@runtime_checkable
class ContentStore(Protocol):
    """Read access to terms, posts and taxonomies."""

    async def get_term(self, term_id: int) -> Optional[Term]:
        """Return the term with this id in any taxonomy, None if absent."""
        ...

    async def get_post(self, post_id: int) -> Optional[Post]:
        """Return the post with this id, None if absent."""
        ...

    async def taxonomy_exists(self, taxonomy: str) -> bool:
        ...

    async def translatable_taxonomies(self) -> List[str]:
        """Names of the taxonomies the translation plugin manages."""
        ...

    async def list_terms(
        self, taxonomy: str, lang: Optional[str] = None
    ) -> List[Term]:
        """List all terms of a taxonomy, empty ones included.

        Args:
            taxonomy: Taxonomy name
            lang: Only return terms assigned to this language

        Returns:
            Terms ordered by name
        """
        ...


@runtime_checkable
class TranslationStore(Protocol):
    """Language assignment and translation groups of the translation plugin."""

    async def is_available(self) -> bool:
        """Whether the translation plugin is installed and active."""
        ...

    async def get_languages(self) -> List[Language]:
        ...

    async def get_language(self, kind: ObjectKind, object_id: int) -> Optional[str]:
        """Language slug assigned to an object, None if unassigned."""
        ...

    async def get_translations(
        self, kind: ObjectKind, object_id: int
    ) -> Dict[str, int]:
        """Language slug to object id map of the object's translation group.

        The object itself is part of the map when it has a language.
        """
        ...

    async def set_language(
        self, kind: ObjectKind, object_id: int, lang: str
    ) -> None:
        ...

    async def link_group(self, kind: ObjectKind, translations: Dict[str, int]) -> str:
        """Put the given objects into one new translation group.

        Objects leave any group they belonged to before. The operation is
        all-or-nothing: on failure no membership has changed.

        Args:
            kind: Kind of the linked objects
            translations: Language slug to object id

        Returns:
            Identifier of the new group

        Raises:
            HostError: If the host rejected the link
        """
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves request credentials to a host user."""

    async def authenticate(self, authorization: str) -> Optional[HostUser]:
        """Resolve an Authorization header value, None if it does not verify."""
        ...


def describe_host(host: Any) -> Dict[str, bool]:
    """Report which host protocols an object implements."""
    return {
        "content_store": isinstance(host, ContentStore),
        "translation_store": isinstance(host, TranslationStore),
        "identity_provider": isinstance(host, IdentityProvider),
    }
