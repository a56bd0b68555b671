"""
Schemas for entity resolution.

Entities are transient references to a tenant's domain records
(projects, contacts, wallets, categories).  They live only for the
duration of one pipeline run and are never persisted.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    PROJECT = "project"
    CONTACT = "contact"
    SUBCONTRACTOR = "subcontractor"
    MEMBER = "member"
    WALLET = "wallet"
    CATEGORY = "category"


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    ALIAS = "alias"


class EntityCollection(str, Enum):
    """Tenant-scoped collections the resolver can search."""
    PROJECTS = "projects"
    CONTACTS = "contacts"
    WALLETS = "wallets"
    CATEGORIES = "categories"


# Entity type → collection it is searched in
COLLECTION_FOR_TYPE: dict[EntityType, EntityCollection] = {
    EntityType.PROJECT: EntityCollection.PROJECTS,
    EntityType.CONTACT: EntityCollection.CONTACTS,
    EntityType.WALLET: EntityCollection.WALLETS,
    EntityType.CATEGORY: EntityCollection.CATEGORIES,
}


class Entity(BaseModel):
    """A resolved domain object reference."""
    id: str
    name: str
    type: EntityType
    organization_id: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_alias: str | None = None
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(use_enum_values=True)


class EntitySearchResult(BaseModel):
    """One candidate produced by a per-type search, before deduplication."""
    entity: Entity
    score: float
    match_type: MatchType
    matched_term: str

    model_config = ConfigDict(use_enum_values=True)


class EntitySynonym(BaseModel):
    """Canonical name plus the aliases that should resolve to it."""
    canonical: str
    aliases: list[str] = Field(default_factory=list)
    entity_type: EntityType | None = None

    model_config = ConfigDict(use_enum_values=True)


class EntityRecord(BaseModel):
    """
    Row shape returned by an entity store.

    Contacts may carry only ``first_name`` / ``last_name``; everything
    else carries ``name``.
    """
    id: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
