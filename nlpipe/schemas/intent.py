"""
Schema for the intent classification stage.

``Intent`` is the single structured object that flows from the
classifier into validation and query planning.  It is frozen: once the
classifier produces it, nothing downstream mutates it.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from nlpipe.schemas.entity import Entity, EntityType


class IntentType(str, Enum):
    FINANCIAL_QUERY = "financial_query"
    PROJECT_QUERY = "project_query"
    GENERAL = "general"
    UNKNOWN = "unknown"


Period = Literal["today", "week", "month", "year", "custom"]
Currency = Literal["USD", "ARS"]
MovementType = Literal["Ingreso", "Egreso"]
Role = Literal["subcontractor", "personnel", "partner"]


class IntentPattern(BaseModel):
    """
    Static registry row.  The classifier scores every pattern and keeps
    the best one; on equal scores the earlier row wins.
    """
    type: IntentType
    subtype: str | None = None
    keywords: list[str]
    priority: int
    required_entities: list[EntityType] | None = None
    suggested_tool: str | None = None

    model_config = ConfigDict(use_enum_values=True, frozen=True)


class TemporalScope(BaseModel):
    """Explicit date range and/or a keyword-inferred period."""
    start: date | None = None
    end: date | None = None
    period: Period | None = None

    model_config = ConfigDict(frozen=True)


class IntentFilters(BaseModel):
    currency: Currency | None = None
    type: MovementType | None = None
    role: Role | None = None

    model_config = ConfigDict(frozen=True)

    def is_empty(self) -> bool:
        return self.currency is None and self.type is None and self.role is None


class Intent(BaseModel):
    """Classification result."""
    type: IntentType
    subtype: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    entities: list[Entity] = Field(default_factory=list)
    temporal_scope: TemporalScope | None = None
    filters: IntentFilters | None = None

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    def first_entity(self, entity_type: EntityType) -> Entity | None:
        """First resolved entity of a type (entities are sorted by score)."""
        return next((e for e in self.entities if e.type == entity_type), None)

    def has_entity(self, entity_type: EntityType) -> bool:
        return self.first_entity(entity_type) is not None


class IntentValidation(BaseModel):
    """Outcome of ``validate_intent``.  Warnings never invalidate."""
    valid: bool
    missing_context: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
