"""
External API contract for the HTTP routes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from nlpipe.schemas.pipeline import PipelineContext, PipelineMetrics


class AskRequest(BaseModel):
    question: str
    user_id: str
    organization_id: str
    session_id: str | None = None
    language: str = "es"
    timezone: str | None = None
    # When given, the response carries it enriched with the pipeline context
    base_prompt: str | None = None


class AskResponse(BaseModel):
    context: PipelineContext
    metrics: PipelineMetrics
    enriched_prompt: str | None = None


class CacheResultRequest(BaseModel):
    """Final answer produced by the LLM collaborator, to be memoized."""
    question: str
    organization_id: str
    result: Any


class InvalidationResponse(BaseModel):
    organization_id: str
    invalidated: int
