"""
Pipeline Orchestrator: top-level entry point.

Runs the phases in sequence, with a short-circuit exit on a cached
answer:

  normalizing → resolving_entities → classifying_intent
              → planning_query → executing → formatting → complete

Execution itself is delegated: the caller feeds the returned context
into ``enrich_system_prompt`` and lets the tool-calling LLM run the
suggested tool.  Failures never escape: the context comes back in the
``error`` phase with a message instead.
"""

from __future__ import annotations

import time
from typing import Any

from nlpipe.core.config import settings
from nlpipe.pipeline.entity_resolver import resolve_entities
from nlpipe.pipeline.intent import classify_intent, validate_intent
from nlpipe.pipeline.query_planner import plan_query
from nlpipe.pipeline.services import PipelineServices
from nlpipe.pipeline.synonyms import expand_with_synonyms
from nlpipe.pipeline.temporal import today_in
from nlpipe.prompts.pipeline_context import enrich_system_prompt
from nlpipe.schemas.pipeline import AIContext, PipelineContext, PipelineMetrics, PipelinePhase
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import clean_whitespace
from nlpipe.utils.timing import Timer

logger = get_logger("nlpipe.pipeline.orchestrator")

__all__ = [
    "run_ai_pipeline",
    "normalize_input",
    "cache_ai_result",
    "get_pipeline_metrics",
    "enrich_system_prompt",
]


def normalize_input(question: str) -> str:
    """Whitespace cleanup + synonym expansion.  Case and accents are kept."""
    return expand_with_synonyms(clean_whitespace(question))


async def run_ai_pipeline(
    question: str,
    context: AIContext,
    services: PipelineServices,
) -> PipelineContext:
    """
    Execute the full pipeline for one question.

    Always returns a well-formed ``PipelineContext``; check
    ``ctx.metadata.phase`` (``complete`` or ``error``) and ``ctx.error``.
    """
    ctx = PipelineContext(
        original_question=question if isinstance(question, str) else "",
        ai_context=context,
    )
    logger.info(
        "[PIPELINE] Started | org=%s | question: %s",
        context.organization_id, ctx.original_question[:80],
    )

    try:
        if not isinstance(question, str):
            raise TypeError(f"question must be a string, got {type(question).__name__}")

        # ── Phase 1: Normalization ──────────────────────────────────
        with Timer("normalization", ctx.metadata.timings):
            ctx.normalized_question = normalize_input(question)

        # ── Phase 2: Whole-answer cache ─────────────────────────────
        ctx.metadata.phase = PipelinePhase.RESOLVING_ENTITIES
        cached = services.cache.get_ai_response(question, context.organization_id)
        if cached is not None:
            ctx.result = cached
            ctx.metadata.cache_hit = True
            ctx.finish(PipelinePhase.COMPLETE)
            logger.info("[PIPELINE] Short-circuit: cached answer")
            return ctx

        # ── Phase 3: Entity resolution ──────────────────────────────
        # Resolved from the cleaned original text so synonym folding
        # never rewrites a proper noun
        with Timer("entity_resolution", ctx.metadata.timings):
            entities = await resolve_entities(
                clean_whitespace(question),
                context,
                services.entity_store,
                services.cache,
                services.synonyms,
                min_confidence=settings.entity_min_confidence,
                max_results=settings.entity_max_results,
            )

        # ── Phase 4: Intent classification ──────────────────────────
        ctx.metadata.phase = PipelinePhase.CLASSIFYING_INTENT
        today = today_in(context.timezone)
        with Timer("intent_classification", ctx.metadata.timings):
            intent = classify_intent(ctx.normalized_question, entities, today=today)
        ctx.intent = intent
        ctx.metadata.confidence = intent.confidence

        validation = validate_intent(intent)
        if not validation.valid:
            ctx.metadata.warnings = list(validation.missing_context)
            ctx.error = ". ".join(validation.missing_context)
            ctx.finish(PipelinePhase.ERROR)
            logger.info("[PIPELINE] Stopped: %s", ctx.error)
            return ctx
        ctx.metadata.warnings = list(validation.warnings)

        # ── Phase 5: Query planning ─────────────────────────────────
        ctx.metadata.phase = PipelinePhase.PLANNING_QUERY
        with Timer("query_planning", ctx.metadata.timings):
            ctx.query_plan = plan_query(intent, today=today)

        # ── Phases 6-7: execution and formatting happen downstream ──
        ctx.metadata.phase = PipelinePhase.EXECUTING
        ctx.metadata.phase = PipelinePhase.FORMATTING

        ctx.finish(PipelinePhase.COMPLETE)
        logger.info(
            "[PIPELINE] Done | intent=%s/%s | tool=%s | confidence=%.2f",
            intent.type, intent.subtype or "-", ctx.query_plan.tool_name, intent.confidence,
        )
        return ctx

    except Exception as e:
        logger.exception("[PIPELINE] Failed in phase %s", ctx.metadata.phase)
        ctx.error = str(e) or e.__class__.__name__
        ctx.finish(PipelinePhase.ERROR)
        return ctx


def cache_ai_result(
    question: str,
    tenant_id: str,
    result: Any,
    services: PipelineServices,
) -> None:
    """Remember the final answer so the same question short-circuits next time."""
    services.cache.cache_ai_response(question, tenant_id, result)


def get_pipeline_metrics(ctx: PipelineContext) -> PipelineMetrics:
    """Timing summary in milliseconds (measured up to now if still running)."""
    end = ctx.metadata.end_time if ctx.metadata.end_time is not None else time.time()
    return PipelineMetrics(
        total_time=(end - ctx.metadata.start_time) * 1000,
        phase_breakdown=dict(ctx.metadata.timings),
        cache_hit=ctx.metadata.cache_hit,
        confidence=ctx.metadata.confidence or 0.0,
    )
