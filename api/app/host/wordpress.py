"""
WordPress + Polylang host over the WordPress REST API.

Reads use the core ``wp/v2`` routes with ``context=edit`` so that Polylang's
``lang`` and ``translations`` fields are present. Languages come from
Polylang's ``pll/v1/languages`` route. Writes authenticate with an
application password, identity checks forward the caller's own
Authorization header to ``wp/v2/users/me``.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.core.config import Settings
from app.host.interfaces import HostError
from app.models.host import HostUser, Language, ObjectKind, Post, Term

logger = logging.getLogger(__name__)

POST_REST_BASES = ("posts", "pages")
TERMS_PER_PAGE = 100

_SERVICE_AUTH = object()


class WordPressHost:
    """Content store, translation store and identity provider backed by WordPress."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.base_url = settings.WORDPRESS_URL.rstrip("/")
        self.timeout = settings.WORDPRESS_TIMEOUT
        self._client = client
        self._service_auth: Optional[httpx.Auth] = None
        if settings.WORDPRESS_USERNAME and settings.WORDPRESS_APP_PASSWORD:
            self._service_auth = httpx.BasicAuth(
                settings.WORDPRESS_USERNAME, settings.WORDPRESS_APP_PASSWORD
            )

        logger.info(
            f"WordPressHost initialized (base_url={self.base_url}, "
            f"timeout={self.timeout}s, service_auth={self._service_auth is not None})"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("WordPressHost HTTP client closed")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Any = _SERVICE_AUTH,
    ) -> Tuple[Optional[Any], httpx.Headers]:
        """Make a request to the WordPress REST API.

        Returns:
            Decoded JSON body and response headers; the body is None on 404

        Raises:
            HostError: On any other non-2xx answer or a transport failure
        """
        client = await self._get_client()
        request_auth = self._service_auth if auth is _SERVICE_AUTH else auth
        try:
            response = await client.request(
                method,
                path,
                params=params,
                json=json,
                headers=headers,
                auth=request_auth,
            )
        except httpx.HTTPError as e:
            logger.error(f"Error making {method} request to WordPress {path}: {e}")
            raise HostError(f"WordPress request failed: {e}", status_code=502) from e

        if response.status_code == 404:
            return None, response.headers
        if response.is_error:
            raise HostError(_error_message(response), status_code=response.status_code)
        return response.json(), response.headers

    async def _get(self, path: str, **params: Any) -> Optional[Any]:
        data, _ = await self._request("GET", path, params=params or None)
        return data

    # -- ContentStore ------------------------------------------------------

    async def get_term(self, term_id: int) -> Optional[Term]:
        located = await self._locate_term(term_id)
        return _to_term(located[1]) if located else None

    async def get_post(self, post_id: int) -> Optional[Post]:
        located = await self._locate_post(post_id)
        return _to_post(located[1]) if located else None

    async def taxonomy_exists(self, taxonomy: str) -> bool:
        return await self._get(f"/wp/v2/taxonomies/{taxonomy}", context="edit") is not None

    async def translatable_taxonomies(self) -> List[str]:
        return list(self.settings.TRANSLATABLE_TAXONOMIES)

    async def list_terms(self, taxonomy: str, lang: Optional[str] = None) -> List[Term]:
        rest_base = await self._rest_base(taxonomy)
        if rest_base is None:
            raise HostError(f"Invalid taxonomy: {taxonomy}", status_code=400)

        params: Dict[str, Any] = {
            "per_page": TERMS_PER_PAGE,
            "hide_empty": "false",
            "orderby": "name",
            "context": "edit",
        }
        if lang:
            params["lang"] = lang

        terms: List[Term] = []
        page = 1
        while True:
            data, headers = await self._request(
                "GET", f"/wp/v2/{rest_base}", params={**params, "page": page}
            )
            terms.extend(_to_term(item) for item in data or [])
            total_pages = int(headers.get("X-WP-TotalPages", "1") or 1)
            if page >= total_pages or not data:
                break
            page += 1
        return terms

    # -- TranslationStore --------------------------------------------------

    async def is_available(self) -> bool:
        try:
            return await self._get("/pll/v1/languages") is not None
        except HostError as e:
            logger.warning(f"Polylang availability check failed: {e.message}")
            return False

    async def get_languages(self) -> List[Language]:
        data = await self._get("/pll/v1/languages") or []
        return [
            Language(
                slug=item.get("slug", ""),
                name=item.get("name", ""),
                flag=item.get("flag_url") or item.get("flag_code") or "",
            )
            for item in data
        ]

    async def get_language(self, kind: ObjectKind, object_id: int) -> Optional[str]:
        located = await self._locate(kind, object_id)
        if located is None:
            return None
        return located[1].get("lang") or None

    async def get_translations(self, kind: ObjectKind, object_id: int) -> Dict[str, int]:
        located = await self._locate(kind, object_id)
        if located is None:
            return {}
        data = located[1]
        translations = {
            lang: int(member) for lang, member in (data.get("translations") or {}).items()
        }
        if data.get("lang"):
            translations.setdefault(data["lang"], object_id)
        return translations

    async def set_language(self, kind: ObjectKind, object_id: int, lang: str) -> None:
        path = await self._require_path(kind, object_id)
        await self._request("POST", path, json={"lang": lang})

    async def link_group(self, kind: ObjectKind, translations: Dict[str, int]) -> str:
        # Polylang saves the whole group from any member in one write
        first_id = next(iter(translations.values()))
        path = await self._require_path(kind, first_id)
        await self._request("POST", path, json={"translations": translations})
        return f"{kind.group_taxonomy}:{min(translations.values())}"

    # -- IdentityProvider --------------------------------------------------

    async def authenticate(self, authorization: str) -> Optional[HostUser]:
        try:
            data, _ = await self._request(
                "GET",
                "/wp/v2/users/me",
                params={"context": "edit"},
                headers={"Authorization": authorization},
                auth=None,
            )
        except HostError as e:
            if e.status_code in (401, 403):
                return None
            raise
        if not data:
            return None
        capabilities = {cap for cap, granted in (data.get("capabilities") or {}).items() if granted}
        return HostUser(id=data["id"], name=data.get("name", ""), capabilities=capabilities)

    # -- Internals ---------------------------------------------------------

    async def _rest_base(self, taxonomy: str) -> Optional[str]:
        data = await self._get(f"/wp/v2/taxonomies/{taxonomy}", context="edit")
        if data is None:
            return None
        return data.get("rest_base") or taxonomy

    async def _locate_term(self, term_id: int) -> Optional[Tuple[str, Dict[str, Any]]]:
        for taxonomy in await self.translatable_taxonomies():
            rest_base = await self._rest_base(taxonomy)
            if rest_base is None:
                continue
            path = f"/wp/v2/{rest_base}/{term_id}"
            data = await self._get(path, context="edit")
            if data is not None:
                return path, data
        return None

    async def _locate_post(self, post_id: int) -> Optional[Tuple[str, Dict[str, Any]]]:
        for rest_base in POST_REST_BASES:
            path = f"/wp/v2/{rest_base}/{post_id}"
            data = await self._get(path, context="edit")
            if data is not None:
                return path, data
        return None

    async def _locate(
        self, kind: ObjectKind, object_id: int
    ) -> Optional[Tuple[str, Dict[str, Any]]]:
        if kind is ObjectKind.TERM:
            return await self._locate_term(object_id)
        return await self._locate_post(object_id)

    async def _require_path(self, kind: ObjectKind, object_id: int) -> str:
        located = await self._locate(kind, object_id)
        if located is None:
            raise HostError(f"Unknown {kind.value} {object_id}", status_code=404)
        return located[0]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"WordPress answered {response.status_code}"


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("raw") or value.get("rendered") or ""
    return value or ""


def _to_term(data: Dict[str, Any]) -> Term:
    return Term(
        id=data["id"],
        taxonomy=data.get("taxonomy", ""),
        name=data.get("name", ""),
        slug=data.get("slug", ""),
        description=data.get("description", ""),
        count=data.get("count", 0),
    )


def _to_post(data: Dict[str, Any]) -> Post:
    return Post(
        id=data["id"],
        title=_rendered(data.get("title")),
        post_type=data.get("type", "post"),
        status=data.get("status", "publish"),
    )
