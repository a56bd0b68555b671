"""
Pydantic schemas for every pipeline boundary.
Each module covers one pipeline stage or cross-cutting concern.
"""

from nlpipe.schemas.entity import (
    COLLECTION_FOR_TYPE,
    Entity,
    EntityCollection,
    EntityRecord,
    EntitySearchResult,
    EntitySynonym,
    EntityType,
    MatchType,
)
from nlpipe.schemas.intent import (
    Intent,
    IntentFilters,
    IntentPattern,
    IntentType,
    IntentValidation,
    TemporalScope,
)
from nlpipe.schemas.query_plan import (
    PARAMETERS_BY_TOOL,
    DateRange,
    QueryPlan,
    ToolParameters,
)
from nlpipe.schemas.pipeline import (
    AIContext,
    PipelineContext,
    PipelineMetadata,
    PipelineMetrics,
    PipelinePhase,
)
from nlpipe.schemas.api import (
    AskRequest,
    AskResponse,
    CacheResultRequest,
    InvalidationResponse,
)

__all__ = [
    # Entities
    "COLLECTION_FOR_TYPE",
    "Entity",
    "EntityCollection",
    "EntityRecord",
    "EntitySearchResult",
    "EntitySynonym",
    "EntityType",
    "MatchType",
    # Intent
    "Intent",
    "IntentFilters",
    "IntentPattern",
    "IntentType",
    "IntentValidation",
    "TemporalScope",
    # Query plan
    "PARAMETERS_BY_TOOL",
    "DateRange",
    "QueryPlan",
    "ToolParameters",
    # Pipeline
    "AIContext",
    "PipelineContext",
    "PipelineMetadata",
    "PipelineMetrics",
    "PipelinePhase",
    # API
    "AskRequest",
    "AskResponse",
    "CacheResultRequest",
    "InvalidationResponse",
]
