"""
Thin API routes for the /ask endpoints.

No business logic: validates the request, calls the orchestrator, and
returns the context.  Pipeline failures come back inside the context
(``phase == "error"``), never as HTTP errors.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from nlpipe.pipeline.entity_resolver import invalidate_entity_cache
from nlpipe.pipeline.orchestrator import (
    cache_ai_result,
    enrich_system_prompt,
    get_pipeline_metrics,
    run_ai_pipeline,
)
from nlpipe.pipeline.services import PipelineServices
from nlpipe.schemas.api import AskRequest, AskResponse, CacheResultRequest, InvalidationResponse
from nlpipe.schemas.pipeline import AIContext
from nlpipe.utils.logging import get_logger

logger = get_logger("nlpipe.api.ask")

router = APIRouter(tags=["Ask"])


def get_pipeline_services(request: Request) -> PipelineServices:
    """The process-wide services built at app creation."""
    return request.app.state.services


@router.post("/ask", response_model=AskResponse)
async def ask_question(
    request: AskRequest,
    services: PipelineServices = Depends(get_pipeline_services),
):
    """
    Run the pipeline for one question and return the enriched context.

    When ``base_prompt`` is given, the response also carries it enriched
    with the detected intent, entities and suggested tool call.
    """
    q = (request.question or "").strip()[:80]
    logger.info("[ASK] New question: %s%s", q, "..." if len(request.question or "") > 80 else "")

    context = AIContext(
        user_id=request.user_id,
        organization_id=request.organization_id,
        session_id=request.session_id,
        language=request.language,
        timezone=request.timezone,
    )
    ctx = await run_ai_pipeline(request.question, context, services)
    metrics = get_pipeline_metrics(ctx)

    logger.info(
        "[ASK] Pipeline %s in %.1fms | cache_hit=%s",
        ctx.metadata.phase, metrics.total_time, metrics.cache_hit,
    )

    enriched = None
    if request.base_prompt is not None:
        enriched = enrich_system_prompt(request.base_prompt, ctx)

    return AskResponse(context=ctx, metrics=metrics, enriched_prompt=enriched)


@router.post("/ask/result", status_code=status.HTTP_204_NO_CONTENT)
async def store_answer(
    request: CacheResultRequest,
    services: PipelineServices = Depends(get_pipeline_services),
):
    """Memoize the final answer for a question (whole-answer cache)."""
    if request.result is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="result must not be null",
        )
    cache_ai_result(request.question, request.organization_id, request.result, services)
    logger.info("[ASK] Cached answer for org %s", request.organization_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/organizations/{organization_id}/entity-cache/invalidate",
    response_model=InvalidationResponse,
)
async def invalidate_entities(
    organization_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    """Drop cached entity searches after projects/contacts/wallets/categories change."""
    removed = invalidate_entity_cache(organization_id, services.cache)
    return InvalidationResponse(organization_id=organization_id, invalidated=removed)
