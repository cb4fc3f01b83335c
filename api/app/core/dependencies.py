"""FastAPI dependencies resolving services stored on app.state."""

from app.core.config import Settings, get_settings
from app.core.exceptions import ServiceUnavailableError
from app.host.interfaces import IdentityProvider
from app.sync.handler import SyncHandler
from app.sync.hooks import HookRegistry
from app.sync.validator import Validator
from fastapi import Request


def get_app_settings(request: Request) -> Settings:
    """Settings the application was built with, process settings otherwise."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_sync_handler(request: Request) -> SyncHandler:
    handler = getattr(request.app.state, "sync_handler", None)
    if handler is None:
        raise ServiceUnavailableError("Sync handler")
    return handler


def get_validator(request: Request) -> Validator:
    validator = getattr(request.app.state, "validator", None)
    if validator is None:
        raise ServiceUnavailableError("Validator")
    return validator


def get_identity_provider(request: Request) -> IdentityProvider:
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        raise ServiceUnavailableError("Identity provider")
    return provider


def get_hooks(request: Request) -> HookRegistry:
    hooks = getattr(request.app.state, "hooks", None)
    return hooks if hooks is not None else HookRegistry()
