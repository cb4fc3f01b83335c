"""Pydantic models for objects owned by the host content platform."""

from enum import Enum
from typing import Dict, Set

from pydantic import BaseModel, Field


class ObjectKind(str, Enum):
    """Kind of content object a translation group links."""

    TERM = "term"
    POST = "post"

    @property
    def group_taxonomy(self) -> str:
        """Name of the host taxonomy that stores groups of this kind."""
        return f"{self.value}_translations"


class Language(BaseModel):
    """A language configured in the translation plugin."""

    slug: str = Field(..., description="Language code, e.g. 'en'")
    name: str = Field(..., description="Display name, e.g. 'English'")
    flag: str = Field("", description="Flag code or URL")


class Term(BaseModel):
    """A taxonomy term as seen by the sync service."""

    id: int = Field(..., gt=0)
    taxonomy: str
    name: str = ""
    slug: str = ""
    description: str = ""
    count: int = Field(0, ge=0)


class Post(BaseModel):
    """A post of any post type."""

    id: int = Field(..., gt=0)
    title: str = ""
    post_type: str = "post"
    status: str = "publish"


class HostUser(BaseModel):
    """Identity resolved from request credentials."""

    id: int = Field(..., gt=0)
    name: str = ""
    capabilities: Set[str] = Field(default_factory=set)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


class TranslationGroup(BaseModel):
    """Objects of one kind linked as translations of each other."""

    group_id: str
    kind: ObjectKind
    translations: Dict[str, int] = Field(
        default_factory=dict, description="Language slug to object id"
    )
