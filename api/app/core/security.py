"""
Security utilities for the Polylang sync API.

Callers authenticate with the host platform's own credentials; this module
resolves them to a HostUser, checks capabilities and mints/verifies the
origin token (nonce) that write routes require.
"""

import hashlib
import hmac
import logging
import math
import time
from typing import Callable, Optional

from app.core.config import Settings
from app.core.dependencies import (
    get_app_settings,
    get_hooks,
    get_identity_provider,
)
from app.core.exceptions import (
    AuthenticationError,
    InvalidNonceError,
    PermissionDeniedError,
)
from app.host.interfaces import IdentityProvider
from app.models.host import HostUser
from app.sync.hooks import HookRegistry
from fastapi import Depends, Request

NONCE_ACTION = "wp_rest"
NONCE_HEADER = "X-WP-Nonce"

logger = logging.getLogger(__name__)


# =============================================================================
# Origin token (nonce)
# =============================================================================


def nonce_tick(lifetime: int, now: Optional[float] = None) -> int:
    """Half-lifetime window counter; a nonce verifies for two ticks."""
    current = time.time() if now is None else now
    return math.ceil(current / (lifetime / 2))


def _nonce_for_tick(tick: int, action: str, user_id: int, secret: str) -> str:
    body = f"{tick}|{action}|{user_id}"
    mac = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256)
    return mac.hexdigest()[-12:-2]


def create_nonce(
    user_id: int,
    secret: str,
    lifetime: int,
    action: str = NONCE_ACTION,
    now: Optional[float] = None,
) -> str:
    """Mint a nonce bound to the user, the action and the current tick."""
    return _nonce_for_tick(nonce_tick(lifetime, now), action, user_id, secret)


def verify_nonce(
    nonce: str,
    user_id: int,
    secret: str,
    lifetime: int,
    action: str = NONCE_ACTION,
    now: Optional[float] = None,
) -> Optional[int]:
    """Check a nonce against the current and the previous tick.

    Returns:
        1 if minted in the current tick, 2 if in the previous one, None if invalid
    """
    if not nonce:
        return None

    tick = nonce_tick(lifetime, now)
    for age, candidate in enumerate((tick, tick - 1), start=1):
        expected = _nonce_for_tick(candidate, action, user_id, secret)
        if hmac.compare_digest(nonce.encode("utf-8"), expected.encode("utf-8")):
            return age
    return None


# =============================================================================
# Request dependencies
# =============================================================================


async def get_current_user(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> HostUser:
    """Resolve the caller from the Authorization header.

    Raises:
        AuthenticationError: If there are no credentials or they do not verify
    """
    authorization = request.headers.get("Authorization", "").strip()
    user = await provider.authenticate(authorization) if authorization else None
    if user is None:
        logger.warning(
            f"Unauthenticated request to {request.url.path} from "
            f"{request.client.host if request.client else 'unknown'}"
        )
        raise AuthenticationError()
    return user


def require_capability(
    capability: Optional[str] = None, check_nonce: bool = False
) -> Callable:
    """Build a dependency that authorizes the caller for a route.

    Args:
        capability: Host capability the caller must hold, None for any user
        check_nonce: Also require a valid X-WP-Nonce header

    Returns:
        Dependency returning the authorized HostUser
    """

    async def dependency(
        request: Request,
        user: HostUser = Depends(get_current_user),
        hooks: HookRegistry = Depends(get_hooks),
        settings: Settings = Depends(get_app_settings),
    ) -> HostUser:
        if capability:
            allowed = await hooks.filter_permission(
                user.can(capability), capability, user
            )
            if not allowed:
                logger.warning(f"User {user.id} lacks capability '{capability}'")
                raise PermissionDeniedError()

        if check_nonce:
            nonce = request.headers.get(NONCE_HEADER, "")
            valid = verify_nonce(
                nonce, user.id, settings.NONCE_SECRET, settings.NONCE_LIFETIME
            )
            if valid is None:
                logger.warning(f"Invalid nonce from user {user.id}")
                raise InvalidNonceError()

        return user

    return dependency
