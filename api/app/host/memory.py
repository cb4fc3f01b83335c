"""
In-memory host platform.

Keeps languages, taxonomies, terms, posts, users and translation groups in
process memory, seeded from a JSON site file. It behaves like a site running
the translation plugin: objects carry one language, belong to at most one
translation group per kind, and linking always allocates a new group.
"""

import json
import logging
import secrets
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.host.interfaces import HostError
from app.models.host import (
    HostUser,
    Language,
    ObjectKind,
    Post,
    Term,
    TranslationGroup,
)

logger = logging.getLogger(__name__)

ObjectKey = Tuple[ObjectKind, int]


class InMemoryHost:
    """Content store, translation store and identity provider in one object.

    Tests inject failures by subclassing and overriding ``_assign_group``.
    """

    def __init__(
        self,
        languages: Optional[Iterable[Language]] = None,
        taxonomies: Optional[Dict[str, bool]] = None,
        terms: Optional[Iterable[Term]] = None,
        posts: Optional[Iterable[Post]] = None,
        users: Optional[Dict[str, HostUser]] = None,
        plugin_active: bool = True,
    ):
        self.plugin_active = plugin_active
        self._languages: List[Language] = list(languages or [])
        # taxonomy name -> managed by the translation plugin
        self._taxonomies: Dict[str, bool] = dict(taxonomies or {})
        self._terms: Dict[int, Term] = {term.id: term for term in terms or []}
        self._posts: Dict[int, Post] = {post.id: post for post in posts or []}
        self._users: Dict[str, HostUser] = dict(users or {})
        self._object_lang: Dict[ObjectKey, str] = {}
        self._groups: Dict[str, TranslationGroup] = {}
        self._membership: Dict[ObjectKey, str] = {}

    # -- Loading -----------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryHost":
        """Build a host from a site description.

        Terms and posts may carry a ``lang`` key, users a ``token`` key and
        ``groups`` lists existing translation groups.
        """
        host = cls(
            languages=[Language(**lang) for lang in data.get("languages", [])],
            taxonomies={
                tax["name"]: bool(tax.get("translatable", True))
                for tax in data.get("taxonomies", [])
            },
            terms=[Term(**_without(term, "lang")) for term in data.get("terms", [])],
            posts=[Post(**_without(post, "lang")) for post in data.get("posts", [])],
            users={
                user["token"]: HostUser(**_without(user, "token"))
                for user in data.get("users", [])
            },
            plugin_active=data.get("plugin_active", True),
        )

        for kind, items in ((ObjectKind.TERM, "terms"), (ObjectKind.POST, "posts")):
            for item in data.get(items, []):
                if item.get("lang"):
                    host._object_lang[(kind, item["id"])] = item["lang"]

        for group in data.get("groups", []):
            record = TranslationGroup(**group)
            host._groups[record.group_id] = record
            for object_id in record.translations.values():
                host._membership[(record.kind, object_id)] = record.group_id

        return host

    @classmethod
    def from_file(cls, path: str) -> "InMemoryHost":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        host = cls.from_dict(data)
        logger.info(
            f"Loaded in-memory site from {path}: {len(host._terms)} terms, "
            f"{len(host._posts)} posts, {len(host._languages)} languages"
        )
        return host

    # -- ContentStore ------------------------------------------------------

    async def get_term(self, term_id: int) -> Optional[Term]:
        return self._terms.get(term_id)

    async def get_post(self, post_id: int) -> Optional[Post]:
        return self._posts.get(post_id)

    async def taxonomy_exists(self, taxonomy: str) -> bool:
        return taxonomy in self._taxonomies

    async def translatable_taxonomies(self) -> List[str]:
        return [name for name, translatable in self._taxonomies.items() if translatable]

    async def list_terms(self, taxonomy: str, lang: Optional[str] = None) -> List[Term]:
        if taxonomy not in self._taxonomies:
            raise HostError(f"Invalid taxonomy: {taxonomy}", status_code=400)
        terms = [
            term
            for term in self._terms.values()
            if term.taxonomy == taxonomy
            and (not lang or self._object_lang.get((ObjectKind.TERM, term.id)) == lang)
        ]
        return sorted(terms, key=lambda term: (term.name.lower(), term.id))

    # -- TranslationStore --------------------------------------------------

    async def is_available(self) -> bool:
        return self.plugin_active

    async def get_languages(self) -> List[Language]:
        return list(self._languages)

    async def get_language(self, kind: ObjectKind, object_id: int) -> Optional[str]:
        return self._object_lang.get((kind, object_id))

    async def get_translations(self, kind: ObjectKind, object_id: int) -> Dict[str, int]:
        group_id = self._membership.get((kind, object_id))
        if group_id is not None:
            return dict(self._groups[group_id].translations)

        lang = self._object_lang.get((kind, object_id))
        return {lang: object_id} if lang else {}

    async def set_language(self, kind: ObjectKind, object_id: int, lang: str) -> None:
        self._require_plugin()
        if not self._object_exists(kind, object_id):
            raise HostError(f"Unknown {kind.value} {object_id}", status_code=404)
        if not any(language.slug == lang for language in self._languages):
            raise HostError(f"Unknown language: {lang}", status_code=400)

        self._object_lang[(kind, object_id)] = lang

        # Keep the group map keyed by the object's current language
        group_id = self._membership.get((kind, object_id))
        if group_id is None:
            return
        translations = self._groups[group_id].translations
        for held, member in list(translations.items()):
            if member == object_id and held != lang:
                del translations[held]
        displaced = translations.get(lang)
        if displaced is not None and displaced != object_id:
            # One member per language: the sibling that held it leaves the group
            self._membership.pop((kind, displaced), None)
            logger.info(
                f"{kind.value.capitalize()} {displaced} left group {group_id}: "
                f"{kind.value} {object_id} took language '{lang}'"
            )
        translations[lang] = object_id

    async def link_group(self, kind: ObjectKind, translations: Dict[str, int]) -> str:
        self._require_plugin()
        for object_id in translations.values():
            if not self._object_exists(kind, object_id):
                raise HostError(f"Unknown {kind.value} {object_id}", status_code=404)

        group_id = self._new_group_id()
        previous: Dict[int, Optional[str]] = {
            object_id: self._membership.get((kind, object_id))
            for object_id in translations.values()
        }
        snapshots = {
            old_id: dict(self._groups[old_id].translations)
            for old_id in previous.values()
            if old_id is not None
        }
        self._groups[group_id] = TranslationGroup(
            group_id=group_id, kind=kind, translations=dict(translations)
        )

        try:
            for object_id in translations.values():
                self._assign_group(kind, object_id, group_id)
        except Exception as e:
            logger.warning(f"Linking {kind.value} group {group_id} failed, rolling back: {e}")
            for object_id, old_id in previous.items():
                if old_id is None:
                    self._membership.pop((kind, object_id), None)
                else:
                    self._membership[(kind, object_id)] = old_id
            for old_id, old_translations in snapshots.items():
                self._groups[old_id].translations = old_translations
            del self._groups[group_id]
            if isinstance(e, HostError):
                raise
            raise HostError(f"Could not link translations: {e}") from e

        for old_id in set(snapshots):
            if not self._groups[old_id].translations:
                del self._groups[old_id]

        logger.debug(f"Created {kind.group_taxonomy} group {group_id}: {translations}")
        return group_id

    # -- IdentityProvider --------------------------------------------------

    async def authenticate(self, authorization: str) -> Optional[HostUser]:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None

        token = token.strip()
        for known_token, user in self._users.items():
            if secrets.compare_digest(known_token.encode(), token.encode()):
                return user
        return None

    # -- Inspection --------------------------------------------------------

    def get_group(self, kind: ObjectKind, object_id: int) -> Optional[TranslationGroup]:
        group_id = self._membership.get((kind, object_id))
        return self._groups.get(group_id) if group_id else None

    @property
    def group_count(self) -> int:
        return len(self._groups)

    # -- Internals ---------------------------------------------------------

    def _assign_group(self, kind: ObjectKind, object_id: int, group_id: str) -> None:
        """Move one object into a group, leaving its previous group."""
        key = (kind, object_id)
        old_id = self._membership.get(key)
        if old_id is not None and old_id != group_id:
            old_translations = self._groups[old_id].translations
            for lang, member in list(old_translations.items()):
                if member == object_id:
                    del old_translations[lang]
        self._membership[key] = group_id

    def _object_exists(self, kind: ObjectKind, object_id: int) -> bool:
        store = self._terms if kind is ObjectKind.TERM else self._posts
        return object_id in store

    def _require_plugin(self) -> None:
        if not self.plugin_active:
            raise HostError("Polylang is not active.", status_code=500)

    @staticmethod
    def _new_group_id() -> str:
        return f"pll_{uuid.uuid4().hex[:13]}"


def _without(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in keys}
