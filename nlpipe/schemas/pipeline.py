"""
PipelineContext carries state between the pipeline phases.

One instance per request.  The orchestrator creates it, enriches it
phase by phase, and hands it back to the caller, which uses it to
drive the delegated LLM call.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from nlpipe.schemas.intent import Intent
from nlpipe.schemas.query_plan import QueryPlan


class PipelinePhase(str, Enum):
    NORMALIZING = "normalizing"
    RESOLVING_ENTITIES = "resolving_entities"
    CLASSIFYING_INTENT = "classifying_intent"
    PLANNING_QUERY = "planning_query"
    EXECUTING = "executing"
    FORMATTING = "formatting"
    COMPLETE = "complete"
    ERROR = "error"


class AIContext(BaseModel):
    """Who is asking, and on behalf of which tenant."""
    user_id: str
    organization_id: str
    session_id: str | None = None
    language: str = "es"
    timezone: str | None = None


class PipelineMetadata(BaseModel):
    """Observability data collected while the pipeline runs."""
    phase: PipelinePhase = PipelinePhase.NORMALIZING
    start_time: float = Field(default_factory=time.time)
    end_time: float | None = None
    # Phase name → elapsed milliseconds
    timings: dict[str, float] = Field(default_factory=dict)
    cache_hit: bool = False
    confidence: float | None = None
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)


class PipelineContext(BaseModel):
    """
    Shared context object threaded through every pipeline phase.

    ``original_question`` is what goes to the LLM; ``normalized_question``
    is the cleaned, synonym-expanded text used for matching.
    """

    # ── Inputs ───────────────────────────────────────────────────────
    original_question: str
    normalized_question: str = ""
    ai_context: AIContext

    # ── Phase outputs (populated progressively) ─────────────────────
    intent: Intent | None = None
    query_plan: QueryPlan | None = None
    result: Any = None
    error: str | None = None

    metadata: PipelineMetadata = Field(default_factory=PipelineMetadata)

    @property
    def is_complete(self) -> bool:
        return self.metadata.phase == PipelinePhase.COMPLETE

    def finish(self, phase: PipelinePhase) -> None:
        """Move into a terminal phase and stamp the end time."""
        self.metadata.phase = phase
        self.metadata.end_time = time.time()


class PipelineMetrics(BaseModel):
    """Timing summary for one run (milliseconds)."""
    total_time: float
    phase_breakdown: dict[str, float] = Field(default_factory=dict)
    cache_hit: bool = False
    confidence: float = 0.0
