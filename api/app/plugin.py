"""
Composition root for the sync service.

Builds the host adapter, hook registry, validator and sync handler from
settings and publishes them on ``app.state`` where the route dependencies
look them up.
"""

import logging
from typing import Any, List, Optional

from app.core.config import Settings
from app.host import build_host
from app.sync.handler import SyncHandler
from app.sync.hooks import HookRegistry, MetricsObserver, SyncFilter, SyncObserver
from app.sync.validator import Validator
from fastapi import FastAPI

logger = logging.getLogger(__name__)


class Plugin:
    """Wires one host to the sync pipeline."""

    def __init__(
        self,
        settings: Settings,
        host: Optional[Any] = None,
        observers: Optional[List[SyncObserver]] = None,
        filters: Optional[List[SyncFilter]] = None,
    ):
        self.settings = settings
        self.host = host if host is not None else build_host(settings)
        self.hooks = HookRegistry(
            observers=[MetricsObserver(), *(observers or [])],
            filters=filters,
        )
        self.validator = Validator(content=self.host, translations=self.host)
        self.sync_handler = SyncHandler(
            content=self.host,
            translations=self.host,
            validator=self.validator,
            hooks=self.hooks,
            settings=settings,
        )

    def bind(self, app: FastAPI) -> None:
        """Publish the services on app.state."""
        app.state.settings = self.settings
        app.state.host = self.host
        app.state.identity_provider = self.host
        app.state.hooks = self.hooks
        app.state.validator = self.validator
        app.state.sync_handler = self.sync_handler

    async def check_host(self) -> bool:
        """Log whether the host's translation plugin can be used."""
        available = await self.host.is_available()
        if available:
            logger.info(f"Translation plugin available on {self.settings.HOST_BACKEND} host")
        else:
            logger.warning(
                "4WP Polylang API Sync requires the Polylang plugin to be installed "
                "and activated. Sync requests will be rejected until it is."
            )

        if not self.settings.NONCE_SECRET:
            logger.warning(
                "NONCE_SECRET is not set; nonces are signed with an empty key. "
                "Set it before exposing write routes."
            )
        return available

    async def shutdown(self) -> None:
        close = getattr(self.host, "aclose", None)
        if close is not None:
            await close()
