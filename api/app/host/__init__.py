"""Host platform adapters (content, translations and identity)."""

import logging

from app.core.config import Settings
from app.host.interfaces import (
    ContentStore,
    HostError,
    IdentityProvider,
    TranslationStore,
)
from app.host.memory import InMemoryHost
from app.host.wordpress import WordPressHost

logger = logging.getLogger(__name__)


def build_host(settings: Settings):
    """Create the host adapter selected by HOST_BACKEND."""
    if settings.HOST_BACKEND == "wordpress":
        return WordPressHost(settings)

    logger.info(f"Using in-memory host seeded from {settings.HOST_SITE_PATH}")
    return InMemoryHost.from_file(settings.HOST_SITE_PATH)


__all__ = [
    "ContentStore",
    "HostError",
    "IdentityProvider",
    "InMemoryHost",
    "TranslationStore",
    "WordPressHost",
    "build_host",
]
