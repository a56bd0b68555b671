"""
Pipeline Phase 5: Query planning.

Turns an ``Intent`` into the tool call the LLM should make: which tool,
with which typed parameters.  Each tool's parameter model decides which
values it accepts; anything else is dropped here rather than sent.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from nlpipe.pipeline.intent import suggest_tool_for_intent
from nlpipe.pipeline.temporal import scope_to_date_range, today_in
from nlpipe.schemas.entity import EntityType
from nlpipe.schemas.intent import Intent
from nlpipe.schemas.query_plan import PARAMETERS_BY_TOOL, NoToolParameters, QueryPlan
from nlpipe.utils.logging import get_logger

logger = get_logger("nlpipe.pipeline.query_planner")


def _candidate_values(intent: Intent, today: date) -> dict[str, Any]:
    """Every parameter value the intent can supply, keyed by field name."""
    def name_of(entity_type: EntityType) -> str | None:
        entity = intent.first_entity(entity_type)
        return entity.name if entity else None

    filters = intent.filters
    return {
        "project_name": name_of(EntityType.PROJECT),
        "contact_name": name_of(EntityType.CONTACT),
        "wallet": name_of(EntityType.WALLET),
        "category": name_of(EntityType.CATEGORY),
        "currency": filters.currency if filters else None,
        "type": filters.type if filters else None,
        "role": filters.role if filters else None,
        "date_range": scope_to_date_range(intent.temporal_scope, today),
    }


def plan_query(intent: Intent, *, today: date | None = None) -> QueryPlan:
    """
    Build the ``QueryPlan`` for an intent.

    ``today`` anchors keyword periods ("este mes"); it defaults to the
    current date in the configured timezone.
    """
    tool = suggest_tool_for_intent(intent)
    if tool is None:
        logger.info("[PLANNER] No tool for %s/%s", intent.type, intent.subtype)
        return QueryPlan(
            parameters=NoToolParameters(),
            confidence=0.0,
            reasoning=f"No tool handles {intent.type}/{intent.subtype or '-'}",
        )

    model = PARAMETERS_BY_TOOL[tool]
    values = _candidate_values(intent, today or today_in())
    accepted = {
        field: value
        for field, value in values.items()
        if value is not None and field in model.model_fields
    }
    parameters = model(**accepted)

    reasoning = f"{intent.type}/{intent.subtype} → {tool}"
    if accepted:
        reasoning += f" with {', '.join(sorted(accepted))}"

    logger.info("[PLANNER] %s", reasoning)
    return QueryPlan(parameters=parameters, confidence=intent.confidence, reasoning=reasoning)
