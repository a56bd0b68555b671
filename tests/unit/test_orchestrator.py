"""Unit tests for the pipeline orchestrator, metrics and prompt enrichment."""

import json
from datetime import date

import pytest

import nlpipe.pipeline.orchestrator as orchestrator
from nlpipe.pipeline.cache import AICache
from nlpipe.pipeline.orchestrator import (
    cache_ai_result,
    enrich_system_prompt,
    get_pipeline_metrics,
    normalize_input,
    run_ai_pipeline,
)
from nlpipe.pipeline.services import create_pipeline_services
from nlpipe.pipeline.synonyms import EntitySynonymRegistry
from nlpipe.repositories.entity_store import EntityStore, InMemoryEntityStore
from nlpipe.schemas.entity import EntityCollection
from nlpipe.schemas.pipeline import AIContext, PipelineContext

ORG = "org-1"
TODAY = date(2024, 5, 15)


class ExplodingStore(EntityStore):
    """Fails on every lookup."""

    async def list_records(self, collection, organization_id):
        raise RuntimeError("database is locked")


@pytest.fixture
def services():
    store = InMemoryEntityStore()
    store.add(EntityCollection.PROJECTS, ORG, [{"id": "p1", "name": "Casa Sur"}])
    store.add(EntityCollection.CONTACTS, ORG, [{"id": "c1", "name": "María González"}])
    return create_pipeline_services(
        store, cache=AICache(), synonyms=EntitySynonymRegistry(),
    )


@pytest.fixture
def context():
    return AIContext(user_id="u1", organization_id=ORG)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr(orchestrator, "today_in", lambda timezone=None: TODAY)


def test_normalize_input_keeps_case_and_expands():
    assert normalize_input("  movs   de la  Caja ") == "movimientos de la Caja"


# ── Scenarios ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_expenses_this_month_for_a_project(services, context):
    ctx = await run_ai_pipeline("¿Cuánto gasté en Casa Sur este mes?", context, services)

    assert ctx.metadata.phase == "complete"
    assert ctx.error is None
    assert ctx.intent.type == "financial_query"
    assert ctx.intent.subtype == "expenses"
    assert ctx.intent.temporal_scope.period == "month"
    assert ctx.intent.filters.type == "Egreso"

    project = ctx.intent.entities[0]
    assert (project.type, project.name, project.confidence) == ("project", "Casa Sur", 1.0)

    assert ctx.query_plan.tool_name == "getDateRangeMovements"
    args = ctx.query_plan.parameters.to_arguments()
    assert args["projectName"] == "Casa Sur"
    assert args["dateRange"] == {"start": "2024-05-01", "end": "2024-05-31"}

    assert set(ctx.metadata.timings) == {
        "normalization", "entity_resolution", "intent_classification", "query_planning",
    }
    assert ctx.metadata.end_time is not None
    assert ctx.metadata.cache_hit is False


@pytest.mark.asyncio
async def test_repeated_question_hits_the_answer_cache(services, context):
    question = "¿Cuánto gasté en Casa Sur este mes?"
    first = await run_ai_pipeline(question, context, services)
    cache_ai_result(question, ORG, {"answer": "ARS 120.000"}, services)

    second = await run_ai_pipeline(question, context, services)

    assert first.metadata.cache_hit is False
    assert second.metadata.cache_hit is True
    assert second.metadata.phase == "complete"
    assert second.result == {"answer": "ARS 120.000"}
    assert second.intent is None
    assert "entity_resolution" not in second.metadata.timings
    assert "intent_classification" not in second.metadata.timings


@pytest.mark.asyncio
async def test_answer_cache_is_tenant_scoped(services, context):
    question = "balance total"
    cache_ai_result(question, "other-org", "cached", services)
    ctx = await run_ai_pipeline(question, context, services)
    assert ctx.metadata.cache_hit is False


@pytest.mark.asyncio
async def test_unknown_contact_ends_in_error(services, context):
    ctx = await run_ai_pipeline("Movimientos de Juan Pérez", context, services)

    assert ctx.intent.entities == []
    assert ctx.intent.subtype == "contact_movements"
    assert ctx.metadata.phase == "error"
    assert "no contact detected" in ctx.error.lower()
    assert ctx.metadata.warnings == ["No contact detected in the question"]
    assert ctx.query_plan is None


@pytest.mark.asyncio
async def test_unclassifiable_question_ends_in_error(services, context):
    ctx = await run_ai_pipeline("zzz qwerty", context, services)
    assert ctx.metadata.phase == "error"
    assert ctx.intent.type == "unknown"
    assert ctx.metadata.confidence == 0.0


@pytest.mark.asyncio
async def test_low_confidence_is_a_warning_not_an_error(services, context):
    ctx = await run_ai_pipeline("gasté", context, services)
    assert ctx.metadata.phase == "complete"
    assert len(ctx.metadata.warnings) == 1


@pytest.mark.asyncio
async def test_store_failures_do_not_fail_the_pipeline(context):
    services = create_pipeline_services(
        ExplodingStore(), cache=AICache(), synonyms=EntitySynonymRegistry(),
    )
    ctx = await run_ai_pipeline("¿Cuánto gasté en Casa Sur este mes?", context, services)
    assert ctx.metadata.phase == "complete"
    assert ctx.intent.entities == []
    assert "projectName" not in ctx.query_plan.parameters.to_arguments()


@pytest.mark.asyncio
async def test_unexpected_exception_is_caught(services, context, monkeypatch):
    def boom(*args, **kwargs):
        raise ValueError("classifier exploded")

    monkeypatch.setattr(orchestrator, "classify_intent", boom)
    ctx = await run_ai_pipeline("gastos de Casa Sur", context, services)

    assert ctx.metadata.phase == "error"
    assert ctx.error == "classifier exploded"
    assert ctx.metadata.end_time is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("question, type_name", [(None, "NoneType"), (123, "int")])
async def test_non_string_question_ends_in_error(services, context, question, type_name):
    ctx = await run_ai_pipeline(question, context, services)

    assert isinstance(ctx, PipelineContext)
    assert ctx.original_question == ""
    assert ctx.metadata.phase == "error"
    assert ctx.error == f"question must be a string, got {type_name}"
    assert ctx.intent is None


# ── Metrics & prompt ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_metrics_summarize_the_run(services, context):
    ctx = await run_ai_pipeline("¿Cuánto gasté en Casa Sur este mes?", context, services)
    metrics = get_pipeline_metrics(ctx)
    assert metrics.total_time >= 0
    assert metrics.phase_breakdown == ctx.metadata.timings
    assert metrics.cache_hit is False
    assert metrics.confidence == ctx.intent.confidence


def test_metrics_for_a_running_context(context):
    ctx = PipelineContext(original_question="q", ai_context=context)
    metrics = get_pipeline_metrics(ctx)
    assert metrics.total_time >= 0
    assert metrics.confidence == 0.0


@pytest.mark.asyncio
async def test_enriched_prompt_describes_the_plan(services, context):
    ctx = await run_ai_pipeline("¿Cuánto gasté en Casa Sur este mes?", context, services)
    prompt = enrich_system_prompt("You are a finance assistant.", ctx)

    assert prompt.startswith("You are a finance assistant.")
    assert "financial_query (expenses)" in prompt
    assert 'project: "Casa Sur" (confidence: 100%)' in prompt
    assert "getDateRangeMovements" in prompt
    assert json.dumps("Casa Sur") in prompt
    assert "**Instruction:**" in prompt


@pytest.mark.asyncio
async def test_prompt_is_untouched_on_cache_hit(services, context):
    question = "balance total"
    cache_ai_result(question, ORG, "cached answer", services)
    ctx = await run_ai_pipeline(question, context, services)
    assert enrich_system_prompt("base", ctx) == "base"
