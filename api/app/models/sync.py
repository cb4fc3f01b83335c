"""Pydantic models for sync requests, results and error outcomes."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

SYNC_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SyncType(str, Enum):
    TAXONOMY = "taxonomy"
    POSTS = "posts"


class SyncErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DELEGATE = "delegate"
    UNEXPECTED = "unexpected"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TaxonomySyncRequest(BaseModel):
    """Link two terms of one taxonomy as translations of each other."""

    sync_type: Literal["taxonomy"] = "taxonomy"
    taxonomy: str = Field(..., description="Taxonomy both terms belong to")
    source_term_id: int
    source_lang: str
    target_term_id: int
    target_lang: str


class PostSyncRequest(BaseModel):
    """Link two posts as translations of each other."""

    sync_type: Literal["posts"] = "posts"
    source_post_id: int
    source_lang: str
    target_post_id: int
    target_lang: str


SyncRequest = Annotated[
    Union[TaxonomySyncRequest, PostSyncRequest], Field(discriminator="sync_type")
]
SYNC_REQUEST_ADAPTER: TypeAdapter = TypeAdapter(SyncRequest)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def format_sync_date(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now(timezone.utc)).strftime(SYNC_DATE_FORMAT)


class TaxonomySyncResult(BaseModel):
    source_term_id: int
    target_term_id: int
    source_lang: str
    target_lang: str
    taxonomy: str
    sync_date: str = Field(default_factory=format_sync_date)


class PostSyncResult(BaseModel):
    source_post_id: int
    target_post_id: int
    source_lang: str
    target_lang: str
    sync_date: str = Field(default_factory=format_sync_date)


class SyncError(BaseModel):
    """Failure outcome of a sync operation, returned rather than raised.

    ``reasons`` is only filled for validation failures. ``status_code`` is
    the HTTP status the outer surface should answer with.
    """

    kind: SyncErrorKind
    code: str
    message: str
    reasons: List[str] = Field(default_factory=list)
    status_code: int = 400


SyncOutcome = Union[Dict[str, Any], SyncError]


@dataclass
class SyncContext:
    """Who asked for a sync and from where, used for the audit log."""

    user_id: int = 0
    client_ip: str = "unknown"


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class SyncResponse(BaseModel):
    success: bool = True
    message: str
    data: Dict[str, Any]


class DataResponse(BaseModel):
    success: bool = True
    data: Any


class NonceResponse(BaseModel):
    nonce: str
    action: str
    header: str
    expires_in: int
