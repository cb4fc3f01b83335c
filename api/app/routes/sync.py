"""
Translation sync API endpoints.

Every route authorizes the caller before the request body is read, then
runs admission control (typed request model plus one host-backed predicate
per field) before handing over to the SyncHandler.
"""

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from app.core.config import Settings
from app.core.dependencies import get_app_settings, get_sync_handler, get_validator
from app.core.exceptions import (
    ConflictError,
    DelegateError,
    InvalidParamsError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from app.core.security import NONCE_ACTION, NONCE_HEADER, create_nonce, require_capability
from app.models.host import HostUser
from app.models.sync import (
    SYNC_REQUEST_ADAPTER,
    DataResponse,
    NonceResponse,
    PostSyncRequest,
    SyncContext,
    SyncError,
    SyncErrorKind,
    SyncOutcome,
    SyncResponse,
    SyncType,
    TaxonomySyncRequest,
)
from app.sync.handler import SyncHandler
from app.sync.validator import Validator, sanitize_text_field
from app.utils.request import get_client_ip
from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Translation Sync"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Insufficient permissions or invalid nonce"},
    },
)

TAXONOMY_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

Predicate = Callable[[Any], Awaitable[bool]]


# =============================================================================
# Admission control
# =============================================================================


async def _read_params(request: Request) -> Dict[str, Any]:
    """Merge query parameters with the JSON body, the body taking precedence."""
    params: Dict[str, Any] = dict(request.query_params)
    body = await request.body()
    if not body:
        return params

    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError("Invalid JSON body.", error_code="rest_invalid_json")
    if not isinstance(payload, dict):
        raise ValidationError(
            "JSON body must be an object.", error_code="rest_invalid_json"
        )
    params.update(payload)
    return params


def _build_request(sync_type: SyncType, params: Dict[str, Any]):
    """Validate raw params into the typed request model of this sync type."""
    try:
        return SYNC_REQUEST_ADAPTER.validate_python(
            {**params, "sync_type": sync_type.value}
        )
    except PydanticValidationError as e:
        invalid: Dict[str, str] = {}
        for error in e.errors():
            # loc starts with the union tag, e.g. ("taxonomy", "source_term_id")
            field = str(error["loc"][-1]) if error["loc"] else "body"
            invalid.setdefault(field, error["msg"])
        raise InvalidParamsError(invalid)


async def _admit(checks: Dict[str, Tuple[Predicate, Any]]) -> None:
    """Run the predicate paired with each field, collecting every failure."""
    invalid: Dict[str, str] = {}
    for field, (predicate, value) in checks.items():
        if not await predicate(value):
            invalid[field] = f"Invalid parameter: {field}."
    if invalid:
        raise InvalidParamsError(invalid)


def _raise_for_error(error: SyncError) -> None:
    """Translate a reported sync failure into an HTTP error."""
    if error.kind is SyncErrorKind.VALIDATION:
        raise ValidationError(error.message, error_code=error.code, reasons=error.reasons)
    if error.kind is SyncErrorKind.NOT_FOUND:
        raise NotFoundError(error.message, error_code=error.code)
    if error.kind is SyncErrorKind.CONFLICT:
        raise ConflictError(error.message, error_code=error.code)
    if error.kind is SyncErrorKind.DELEGATE:
        raise DelegateError(error.message, status_code=error.status_code, error_code=error.code)
    raise UnexpectedError(error.message, error_code=error.code)


def _respond(outcome: SyncOutcome, message: str) -> SyncResponse:
    if isinstance(outcome, SyncError):
        _raise_for_error(outcome)
    return SyncResponse(success=True, message=message, data=outcome)


def _context(request: Request, user: HostUser) -> SyncContext:
    return SyncContext(user_id=user.id, client_ip=get_client_ip(request))


# =============================================================================
# Write routes
# =============================================================================


@router.post("/taxonomy", response_model=SyncResponse)
async def sync_taxonomy(
    request: Request,
    user: HostUser = Depends(require_capability("manage_terms", check_nonce=True)),
    handler: SyncHandler = Depends(get_sync_handler),
    validator: Validator = Depends(get_validator),
):
    """Link two terms of a taxonomy as translations of each other.

    Requires the manage_terms capability and a valid X-WP-Nonce header.
    """
    params = await _read_params(request)
    sync_request: TaxonomySyncRequest = _build_request(SyncType.TAXONOMY, params)
    await _admit(
        {
            "taxonomy": (validator.validate_taxonomy, sync_request.taxonomy),
            "source_term_id": (validator.validate_term_exists, sync_request.source_term_id),
            "target_term_id": (validator.validate_term_exists, sync_request.target_term_id),
            "source_lang": (validator.validate_language, sync_request.source_lang),
            "target_lang": (validator.validate_language, sync_request.target_lang),
        }
    )

    try:
        logger.debug(
            f"Taxonomy sync requested by user {user.id}",
            extra={"params": sync_request.model_dump()},
        )
        outcome = await handler.sync_taxonomy_terms(sync_request, _context(request, user))
    except Exception as e:
        logger.exception(f"Taxonomy sync route failed: {e}")
        raise UnexpectedError(str(e)) from e

    return _respond(outcome, "Taxonomy terms synchronized successfully.")


@router.post("/posts", response_model=SyncResponse)
async def sync_posts(
    request: Request,
    user: HostUser = Depends(require_capability("edit_posts", check_nonce=True)),
    handler: SyncHandler = Depends(get_sync_handler),
    validator: Validator = Depends(get_validator),
):
    """Link two posts as translations of each other.

    Requires the edit_posts capability and a valid X-WP-Nonce header.
    """
    params = await _read_params(request)
    sync_request: PostSyncRequest = _build_request(SyncType.POSTS, params)
    await _admit(
        {
            "source_post_id": (validator.validate_post_exists, sync_request.source_post_id),
            "target_post_id": (validator.validate_post_exists, sync_request.target_post_id),
            "source_lang": (validator.validate_language, sync_request.source_lang),
            "target_lang": (validator.validate_language, sync_request.target_lang),
        }
    )

    try:
        logger.debug(
            f"Post sync requested by user {user.id}",
            extra={"params": sync_request.model_dump()},
        )
        outcome = await handler.sync_posts(sync_request, _context(request, user))
    except Exception as e:
        logger.exception(f"Post sync route failed: {e}")
        raise UnexpectedError(str(e)) from e

    return _respond(outcome, "Posts synchronized successfully.")


# =============================================================================
# Read routes
# =============================================================================


@router.get("/languages", response_model=DataResponse)
async def list_languages(
    user: HostUser = Depends(require_capability()),
    handler: SyncHandler = Depends(get_sync_handler),
):
    """List the languages configured in the translation plugin."""
    try:
        languages = await handler.get_available_languages()
    except Exception as e:
        logger.exception(f"Listing languages failed: {e}")
        raise UnexpectedError(str(e), error_code="languages_error") from e
    return DataResponse(success=True, data=languages)


@router.get("/taxonomy/{taxonomy}/terms", response_model=DataResponse)
async def list_taxonomy_terms(
    taxonomy: str,
    lang: Optional[str] = Query(None, description="Only list terms in this language"),
    user: HostUser = Depends(require_capability()),
    handler: SyncHandler = Depends(get_sync_handler),
    validator: Validator = Depends(get_validator),
):
    """List a taxonomy's terms with their language and translations."""
    if not TAXONOMY_NAME_RE.match(taxonomy):
        raise InvalidParamsError({"taxonomy": "Invalid parameter: taxonomy."})

    taxonomy = sanitize_text_field(taxonomy)
    checks: Dict[str, Tuple[Predicate, Any]] = {
        "taxonomy": (validator.validate_taxonomy, taxonomy)
    }
    if lang is not None:
        lang = sanitize_text_field(lang)
        checks["lang"] = (validator.validate_language, lang)
    await _admit(checks)

    try:
        terms = await handler.get_taxonomy_terms(taxonomy, lang=lang or None)
    except Exception as e:
        logger.exception(f"Listing terms of '{taxonomy}' failed: {e}")
        raise UnexpectedError(str(e), error_code="terms_error") from e
    return DataResponse(success=True, data=terms)


@router.get("/nonce", response_model=DataResponse)
async def issue_nonce(
    user: HostUser = Depends(require_capability()),
    settings: Settings = Depends(get_app_settings),
):
    """Mint an X-WP-Nonce value for the calling user."""
    nonce = create_nonce(user.id, settings.NONCE_SECRET, settings.NONCE_LIFETIME)
    return DataResponse(
        success=True,
        data=NonceResponse(
            nonce=nonce,
            action=NONCE_ACTION,
            header=NONCE_HEADER,
            expires_in=settings.NONCE_LIFETIME,
        ).model_dump(),
    )
