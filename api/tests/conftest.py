"""
Pytest configuration and fixtures for the Polylang sync API.

This module provides:
- Test settings with an isolated in-memory host
- A fresh in-memory site per test, seeded from the bundled sample site
- Sync pipeline fixtures (validator, hooks, handler)
- A FastAPI test client with the services bound to app.state
"""

from typing import Callable, Dict, Generator

import pytest
from app.core.config import Settings
from app.core.security import NONCE_HEADER, create_nonce
from app.host.memory import InMemoryHost
from app.plugin import Plugin
from app.sync.handler import SyncHandler
from app.sync.hooks import HookRegistry
from app.sync.validator import Validator
from fastapi.testclient import TestClient

TEST_NONCE_SECRET = "test-nonce-secret"

# Bearer tokens of the users in the bundled sample site
ADMIN_TOKEN = "admin-token"
EDITOR_TOKEN = "editor-token"
SUBSCRIBER_TOKEN = "subscriber-token"
USER_IDS = {ADMIN_TOKEN: 1, EDITOR_TOKEN: 2, SUBSCRIBER_TOKEN: 3}


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings backed by the bundled sample site.

    Returns:
        Settings: Configured settings instance for testing
    """
    return Settings(
        DEBUG=True,
        ENVIRONMENT="testing",
        HOST_BACKEND="memory",
        NONCE_SECRET=TEST_NONCE_SECRET,
        NONCE_LIFETIME=86400,
        SYNC_LOG_ENABLED=True,
    )


@pytest.fixture
def memory_host(test_settings: Settings) -> InMemoryHost:
    """Fresh in-memory site for every test so links never leak between tests."""
    return InMemoryHost.from_file(test_settings.HOST_SITE_PATH)


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def validator(memory_host: InMemoryHost) -> Validator:
    return Validator(content=memory_host, translations=memory_host)


@pytest.fixture
def sync_handler(
    memory_host: InMemoryHost,
    validator: Validator,
    hooks: HookRegistry,
    test_settings: Settings,
) -> SyncHandler:
    return SyncHandler(
        content=memory_host,
        translations=memory_host,
        validator=validator,
        hooks=hooks,
        settings=test_settings,
    )


@pytest.fixture
def test_client(
    test_settings: Settings, memory_host: InMemoryHost
) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client bound to the test host.

    The lifespan is not run; the services are bound to app.state directly.

    Yields:
        TestClient: FastAPI test client
    """
    # Import app here to avoid triggering Settings validation at module load time
    from app.main import app

    plugin = Plugin(test_settings, host=memory_host)
    plugin.bind(app)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(test_settings: Settings) -> Callable[..., Dict[str, str]]:
    """Build request headers for a sample-site user.

    Usage:
        headers = auth_headers(EDITOR_TOKEN)
        headers = auth_headers(ADMIN_TOKEN, nonce=False)
    """

    def _headers(token: str = ADMIN_TOKEN, nonce: bool = True) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {token}"}
        if nonce and token in USER_IDS:
            headers[NONCE_HEADER] = create_nonce(
                USER_IDS[token],
                test_settings.NONCE_SECRET,
                test_settings.NONCE_LIFETIME,
            )
        return headers

    return _headers


@pytest.fixture
def sample_site() -> dict:
    """Provide a minimal site description for InMemoryHost.from_dict.

    Returns:
        dict: Two languages, one translatable taxonomy, terms and posts
    """
    return {
        "languages": [
            {"slug": "en", "name": "English", "flag": "us"},
            {"slug": "de", "name": "Deutsch", "flag": "de"},
        ],
        "taxonomies": [{"name": "category", "translatable": True}],
        "terms": [
            {"id": 1, "taxonomy": "category", "name": "News", "lang": "en"},
            {"id": 2, "taxonomy": "category", "name": "Nachrichten", "lang": "de"},
            {"id": 3, "taxonomy": "category", "name": "Neuigkeiten", "lang": "de"},
        ],
        "posts": [
            {"id": 10, "title": "Hello", "lang": "en"},
            {"id": 11, "title": "Hallo", "lang": "de"},
        ],
        "users": [
            {"id": 1, "name": "admin", "token": "t0k3n", "capabilities": ["manage_terms"]}
        ],
    }
