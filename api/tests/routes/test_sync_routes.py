"""Tests for the translation sync HTTP routes."""

import pytest
from app.core.dependencies import get_sync_handler
from app.host.interfaces import HostError
from app.host.memory import InMemoryHost
from app.models.host import ObjectKind
from app.plugin import Plugin
from app.sync.hooks import SyncFilter

PREFIX = "/4wp-polylang-sync/v1"

TERM_PAYLOAD = {
    "taxonomy": "category",
    "source_term_id": 1,
    "source_lang": "en",
    "target_term_id": 2,
    "target_lang": "de",
}
POST_PAYLOAD = {
    "source_post_id": 100,
    "source_lang": "en",
    "target_post_id": 101,
    "target_lang": "de",
}


def _error(response) -> dict:
    return response.json()["error"]


# =============================================================================
# Authorization
# =============================================================================


class TestAuthorization:
    def test_unauthenticated_post_is_401_before_body_validation(self, test_client):
        response = test_client.post(
            f"{PREFIX}/taxonomy",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 401
        assert _error(response)["message"] == "Authentication required."

    def test_unknown_token_is_401(self, test_client):
        response = test_client.get(
            f"{PREFIX}/languages", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    def test_missing_capability_is_403(self, test_client, auth_headers):
        response = test_client.post(
            f"{PREFIX}/taxonomy",
            json=TERM_PAYLOAD,
            headers=auth_headers("editor-token"),
        )

        assert response.status_code == 403
        assert _error(response)["message"] == "Insufficient permissions."

    def test_missing_nonce_is_403(self, test_client, auth_headers):
        response = test_client.post(
            f"{PREFIX}/posts",
            json=POST_PAYLOAD,
            headers=auth_headers("editor-token", nonce=False),
        )

        assert response.status_code == 403
        assert _error(response)["message"] == "Invalid nonce."

    def test_nonce_of_other_user_is_403(self, test_client, auth_headers):
        headers = auth_headers("editor-token")
        headers["Authorization"] = "Bearer admin-token"

        response = test_client.post(f"{PREFIX}/posts", json=POST_PAYLOAD, headers=headers)

        assert response.status_code == 403
        assert _error(response)["message"] == "Invalid nonce."

    def test_permission_filter_can_grant_capability(
        self, test_client, auth_headers, memory_host
    ):
        class GrantManageTerms(SyncFilter):
            async def filter_permission(self, allowed, capability, user):
                return allowed or capability == "manage_terms"

        test_client.app.state.hooks.register_filter(GrantManageTerms(name="grant"))

        response = test_client.post(
            f"{PREFIX}/taxonomy",
            json=TERM_PAYLOAD,
            headers=auth_headers("editor-token"),
        )

        assert response.status_code == 200


# =============================================================================
# Taxonomy sync
# =============================================================================


class TestTaxonomyRoute:
    def test_success(self, test_client, auth_headers, memory_host):
        response = test_client.post(
            f"{PREFIX}/taxonomy", json=TERM_PAYLOAD, headers=auth_headers()
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Taxonomy terms synchronized successfully."
        assert body["data"]["source_term_id"] == 1
        assert body["data"]["target_term_id"] == 2
        assert body["data"]["taxonomy"] == "category"
        assert memory_host.get_group(ObjectKind.TERM, 1) is not None

    def test_string_ids_are_coerced(self, test_client, auth_headers):
        payload = {**TERM_PAYLOAD, "source_term_id": "1", "target_term_id": "2"}

        response = test_client.post(f"{PREFIX}/taxonomy", json=payload, headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["data"]["source_term_id"] == 1

    def test_query_params_are_accepted(self, test_client, auth_headers):
        response = test_client.post(
            f"{PREFIX}/taxonomy", params=TERM_PAYLOAD, headers=auth_headers()
        )

        assert response.status_code == 200

    def test_double_sync_is_conflict(self, test_client, auth_headers):
        first = test_client.post(f"{PREFIX}/taxonomy", json=TERM_PAYLOAD, headers=auth_headers())
        second = test_client.post(f"{PREFIX}/taxonomy", json=TERM_PAYLOAD, headers=auth_headers())

        assert first.status_code == 200
        assert second.status_code == 400
        assert _error(second)["code"] == "already_linked"

    def test_missing_field_is_invalid_param(self, test_client, auth_headers):
        payload = {k: v for k, v in TERM_PAYLOAD.items() if k != "target_lang"}

        response = test_client.post(f"{PREFIX}/taxonomy", json=payload, headers=auth_headers())

        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "rest_invalid_param"
        assert set(error["details"]["params"]) == {"target_lang"}

    def test_admission_reports_every_bad_field(self, test_client, auth_headers):
        payload = {
            **TERM_PAYLOAD,
            "taxonomy": "product_type",
            "target_term_id": 999,
            "source_lang": "xx",
        }

        response = test_client.post(f"{PREFIX}/taxonomy", json=payload, headers=auth_headers())

        assert response.status_code == 400
        params = _error(response)["details"]["params"]
        assert set(params) == {"taxonomy", "target_term_id", "source_lang"}

    def test_same_term_is_validation_error(self, test_client, auth_headers):
        payload = {**TERM_PAYLOAD, "target_term_id": 1}

        response = test_client.post(f"{PREFIX}/taxonomy", json=payload, headers=auth_headers())

        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "validation_error"
        assert "Source and target terms must be different." in error["details"]["reasons"]

    def test_taxonomy_mismatch(self, test_client, auth_headers):
        payload = {**TERM_PAYLOAD, "taxonomy": "post_tag"}

        response = test_client.post(f"{PREFIX}/taxonomy", json=payload, headers=auth_headers())

        assert response.status_code == 400
        assert _error(response)["code"] == "taxonomy_mismatch"

    def test_malformed_json_is_400(self, test_client, auth_headers):
        headers = {**auth_headers(), "Content-Type": "application/json"}

        response = test_client.post(f"{PREFIX}/taxonomy", content=b"{oops", headers=headers)

        assert response.status_code == 400
        assert _error(response)["code"] == "rest_invalid_json"


# =============================================================================
# Post sync
# =============================================================================


class HostRejectingLinks(InMemoryHost):
    async def link_group(self, kind, translations):
        raise HostError("Sorry, you are not allowed to edit this post.", status_code=403)


class TestPostsRoute:
    def test_success(self, test_client, auth_headers, memory_host):
        response = test_client.post(
            f"{PREFIX}/posts", json=POST_PAYLOAD, headers=auth_headers("editor-token")
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Posts synchronized successfully."
        assert body["data"]["target_post_id"] == 101
        assert "taxonomy" not in body["data"]

    def test_same_post_is_validation_error(self, test_client, auth_headers):
        payload = {**POST_PAYLOAD, "target_post_id": 100}

        response = test_client.post(f"{PREFIX}/posts", json=payload, headers=auth_headers())

        assert response.status_code == 400
        assert "must be different" in _error(response)["message"]

    def test_missing_post_is_invalid_param(self, test_client, auth_headers, memory_host):
        payload = {**POST_PAYLOAD, "target_post_id": 999}

        response = test_client.post(f"{PREFIX}/posts", json=payload, headers=auth_headers())

        assert response.status_code == 400
        assert _error(response)["details"]["params"] == {
            "target_post_id": "Invalid parameter: target_post_id."
        }
        assert memory_host.group_count == 1

    def test_host_rejection_keeps_host_status(self, test_client, auth_headers, test_settings):
        host = HostRejectingLinks.from_file(test_settings.HOST_SITE_PATH)
        Plugin(test_settings, host=host).bind(test_client.app)

        response = test_client.post(f"{PREFIX}/posts", json=POST_PAYLOAD, headers=auth_headers())

        assert response.status_code == 403
        assert _error(response)["code"] == "polylang_error"

    def test_route_exception_message_is_passed_through(self, test_client, auth_headers):
        class BrokenHandler:
            async def sync_posts(self, request, context):
                raise RuntimeError("handler exploded")

        test_client.app.dependency_overrides[get_sync_handler] = lambda: BrokenHandler()

        response = test_client.post(f"{PREFIX}/posts", json=POST_PAYLOAD, headers=auth_headers())

        assert response.status_code == 500
        assert _error(response)["message"] == "handler exploded"
        assert _error(response)["code"] == "sync_error"


# =============================================================================
# Read routes
# =============================================================================


class TestReadRoutes:
    def test_languages(self, test_client, auth_headers):
        response = test_client.get(
            f"{PREFIX}/languages", headers=auth_headers("subscriber-token", nonce=False)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [lang["slug"] for lang in body["data"]] == ["en", "de", "fr"]

    def test_taxonomy_terms(self, test_client, auth_headers):
        response = test_client.get(
            f"{PREFIX}/taxonomy/category/terms",
            params={"lang": "en"},
            headers=auth_headers(nonce=False),
        )

        assert response.status_code == 200
        terms = response.json()["data"]
        assert [term["id"] for term in terms] == [4, 1]
        assert terms[1]["language"] == "en"
        assert terms[1]["translations"] == {"en": 1}

    @pytest.mark.parametrize(
        "path,params,field",
        [
            ("/taxonomy/product_type/terms", {}, "taxonomy"),
            ("/taxonomy/unknown/terms", {}, "taxonomy"),
            ("/taxonomy/bad.name/terms", {}, "taxonomy"),
            ("/taxonomy/category/terms", {"lang": "xx"}, "lang"),
        ],
    )
    def test_taxonomy_terms_admission(self, test_client, auth_headers, path, params, field):
        response = test_client.get(
            f"{PREFIX}{path}", params=params, headers=auth_headers(nonce=False)
        )

        assert response.status_code == 400
        assert field in _error(response)["details"]["params"]

    def test_nonce_endpoint_mints_usable_nonce(self, test_client):
        minted = test_client.get(
            f"{PREFIX}/nonce", headers={"Authorization": "Bearer admin-token"}
        )

        assert minted.status_code == 200
        data = minted.json()["data"]
        assert data["header"] == "X-WP-Nonce"
        assert data["action"] == "wp_rest"

        response = test_client.post(
            f"{PREFIX}/taxonomy",
            json=TERM_PAYLOAD,
            headers={"Authorization": "Bearer admin-token", "X-WP-Nonce": data["nonce"]},
        )
        assert response.status_code == 200


# =============================================================================
# Service endpoints
# =============================================================================


class TestServiceEndpoints:
    def test_health_reports_host(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["host"] == "healthy"

    def test_health_degraded_when_plugin_inactive(self, test_client, memory_host):
        memory_host.plugin_active = False

        response = test_client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["services"]["host"] == "plugin_inactive"

    def test_readiness_and_liveness(self, test_client):
        assert test_client.get("/health/ready").json() == {"status": "ready"}
        assert test_client.get("/health/live").json() == {"status": "alive"}

    def test_metrics_expose_sync_counters(self, test_client, auth_headers):
        test_client.post(f"{PREFIX}/taxonomy", json=TERM_PAYLOAD, headers=auth_headers())

        response = test_client.get("/metrics")

        assert response.status_code == 200
        assert "translation_sync_total" in response.text
