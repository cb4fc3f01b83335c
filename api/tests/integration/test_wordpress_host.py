"""Tests for the WordPress + Polylang host against a mocked REST API."""

import json
from typing import Dict, List

import httpx
import pytest
from app.core.config import Settings
from app.host.interfaces import HostError
from app.host.wordpress import WordPressHost
from app.models.host import ObjectKind

BASE_URL = "https://example.com/wp-json"


class FakeWordPress:
    """Minimal stand-in for the WordPress REST routes the host uses."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.languages = [
            {"slug": "en", "name": "English", "flag_url": "https://example.com/en.png"},
            {"slug": "de", "name": "Deutsch", "flag_url": "https://example.com/de.png"},
        ]
        self.taxonomies = {
            "category": {"slug": "category", "rest_base": "categories"},
            "post_tag": {"slug": "post_tag", "rest_base": "tags"},
        }
        self.terms: Dict[str, Dict[int, dict]] = {
            "categories": {
                1: {"id": 1, "name": "News", "slug": "news", "taxonomy": "category", "count": 2, "lang": "en", "translations": {}},
                2: {"id": 2, "name": "Nachrichten", "slug": "nachrichten", "taxonomy": "category", "count": 0, "lang": "de", "translations": {}},
            },
            "tags": {},
        }
        self.posts = {
            100: {"id": 100, "type": "post", "status": "publish", "title": {"raw": "Hello"}, "lang": "en", "translations": {"de": 101}},
        }
        self.users = {
            "Bearer good": {"id": 5, "name": "editor", "capabilities": {"edit_posts": True, "manage_terms": False}},
        }
        self.fail_writes_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/wp-json", "", 1)
        parts = [part for part in path.split("/") if part]

        if path == "/pll/v1/languages":
            return httpx.Response(200, json=self.languages)

        if path == "/wp/v2/users/me":
            user = self.users.get(request.headers.get("Authorization", ""))
            if user is None:
                return httpx.Response(401, json={"code": "rest_not_logged_in", "message": "You are not currently logged in."})
            return httpx.Response(200, json=user)

        if parts[:3] == ["wp", "v2", "taxonomies"]:
            taxonomy = self.taxonomies.get(parts[3])
            return httpx.Response(200, json=taxonomy) if taxonomy else _not_found()

        if parts[:2] == ["wp", "v2"] and parts[2] in self.terms:
            store = self.terms[parts[2]]
            if len(parts) == 3:
                items = list(store.values())
                page = int(request.url.params.get("page", "1"))
                return httpx.Response(
                    200,
                    json=items[(page - 1):page],
                    headers={"X-WP-TotalPages": str(max(len(items), 1))},
                )
            return self._object(request, store, int(parts[3]))

        if parts[:3] == ["wp", "v2", "posts"]:
            return self._object(request, self.posts, int(parts[3]))
        if parts[:3] == ["wp", "v2", "pages"]:
            return _not_found()

        return _not_found()

    def _object(self, request: httpx.Request, store: dict, object_id: int) -> httpx.Response:
        item = store.get(object_id)
        if item is None:
            return _not_found()
        if request.method == "POST":
            if self.fail_writes_with:
                return httpx.Response(self.fail_writes_with, json={"message": "Sorry, you are not allowed to do that."})
            item.update(json.loads(request.content))
        return httpx.Response(200, json=item)


def _not_found() -> httpx.Response:
    return httpx.Response(404, json={"code": "rest_no_route", "message": "No route was found."})


@pytest.fixture
def fake_wordpress() -> FakeWordPress:
    return FakeWordPress()


@pytest.fixture
def wp_settings() -> Settings:
    return Settings(
        HOST_BACKEND="wordpress",
        WORDPRESS_URL=BASE_URL,
        WORDPRESS_USERNAME="sync-bot",
        WORDPRESS_APP_PASSWORD="abcd efgh ijkl",
        TRANSLATABLE_TAXONOMIES="category,post_tag",
    )


@pytest.fixture
def wp_host(wp_settings, fake_wordpress) -> WordPressHost:
    client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(fake_wordpress)
    )
    return WordPressHost(wp_settings, client=client)


class TestReads:
    @pytest.mark.asyncio
    async def test_languages(self, wp_host):
        languages = await wp_host.get_languages()

        assert [lang.slug for lang in languages] == ["en", "de"]
        assert languages[0].flag == "https://example.com/en.png"
        assert await wp_host.is_available() is True

    @pytest.mark.asyncio
    async def test_get_post(self, wp_host, fake_wordpress):
        post = await wp_host.get_post(100)

        assert post.title == "Hello"
        assert await wp_host.get_post(999) is None
        assert fake_wordpress.requests[0].url.params["context"] == "edit"

    @pytest.mark.asyncio
    async def test_get_term_searches_translatable_taxonomies(self, wp_host):
        term = await wp_host.get_term(2)

        assert term.taxonomy == "category"
        assert term.name == "Nachrichten"
        assert await wp_host.get_term(42) is None

    @pytest.mark.asyncio
    async def test_taxonomy_exists(self, wp_host):
        assert await wp_host.taxonomy_exists("category") is True
        assert await wp_host.taxonomy_exists("nope") is False
        assert await wp_host.translatable_taxonomies() == ["category", "post_tag"]

    @pytest.mark.asyncio
    async def test_list_terms_follows_pagination(self, wp_host):
        terms = await wp_host.list_terms("category", lang="en")

        assert [term.id for term in terms] == [1, 2]

    @pytest.mark.asyncio
    async def test_translations_include_the_object_itself(self, wp_host):
        assert await wp_host.get_translations(ObjectKind.POST, 100) == {"de": 101, "en": 100}
        assert await wp_host.get_language(ObjectKind.POST, 100) == "en"
        assert await wp_host.get_translations(ObjectKind.POST, 999) == {}

    @pytest.mark.asyncio
    async def test_reads_use_service_credentials(self, wp_host, fake_wordpress):
        await wp_host.get_post(100)

        assert fake_wordpress.requests[0].headers["Authorization"].startswith("Basic ")


class TestWrites:
    @pytest.mark.asyncio
    async def test_set_language_and_link_group(self, wp_host, fake_wordpress):
        await wp_host.set_language(ObjectKind.TERM, 2, "de")
        group_id = await wp_host.link_group(ObjectKind.TERM, {"en": 1, "de": 2})

        writes = [r for r in fake_wordpress.requests if r.method == "POST"]
        assert json.loads(writes[0].content) == {"lang": "de"}
        assert json.loads(writes[1].content) == {"translations": {"en": 1, "de": 2}}
        assert writes[1].url.path.endswith("/wp/v2/categories/1")
        assert group_id == "term_translations:1"
        assert await wp_host.get_translations(ObjectKind.TERM, 1) == {"en": 1, "de": 2}

    @pytest.mark.asyncio
    async def test_host_rejection_raises_with_status(self, wp_host, fake_wordpress):
        fake_wordpress.fail_writes_with = 403

        with pytest.raises(HostError) as exc_info:
            await wp_host.link_group(ObjectKind.POST, {"en": 100, "de": 101})

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Sorry, you are not allowed to do that."

    @pytest.mark.asyncio
    async def test_write_to_unknown_object_is_404(self, wp_host):
        with pytest.raises(HostError) as exc_info:
            await wp_host.set_language(ObjectKind.POST, 999, "en")

        assert exc_info.value.status_code == 404


class TestIdentity:
    @pytest.mark.asyncio
    async def test_authenticate_forwards_caller_header(self, wp_host, fake_wordpress):
        user = await wp_host.authenticate("Bearer good")

        assert user.id == 5
        assert user.capabilities == {"edit_posts"}
        me_request = fake_wordpress.requests[-1]
        assert me_request.headers["Authorization"] == "Bearer good"

    @pytest.mark.asyncio
    async def test_authenticate_rejected_credentials(self, wp_host):
        assert await wp_host.authenticate("Bearer bad") is None


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_connection_error_becomes_host_error(self, wp_settings):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(refuse))
        host = WordPressHost(wp_settings, client=client)

        with pytest.raises(HostError) as exc_info:
            await host.get_languages()

        assert exc_info.value.status_code == 502
        assert await host.is_available() is False

    @pytest.mark.asyncio
    async def test_aclose(self, wp_host):
        await wp_host.aclose()

        assert wp_host._client is None
