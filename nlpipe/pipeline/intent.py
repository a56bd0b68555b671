"""
Pipeline Phase 4: Rule-based intent classification.

Scores every row of ``INTENT_PATTERNS`` against the synonym-expanded
question and keeps the best one.  Temporal scope and filters (currency,
movement type, role) are detected independently of the winning pattern.
Zero cost, no LLM.
"""

from __future__ import annotations

import re
from datetime import date

from nlpipe.core.config import settings
from nlpipe.pipeline.synonyms import expand_with_synonyms, extract_key_terms
from nlpipe.pipeline.temporal import detect_temporal_scope
from nlpipe.schemas.entity import Entity, EntityType
from nlpipe.schemas.intent import (
    Intent,
    IntentFilters,
    IntentPattern,
    IntentType,
    IntentValidation,
)
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import normalize_text

logger = get_logger("nlpipe.pipeline.intent")

# Bonus / penalty applied when a pattern declares required entity types
REQUIRED_ENTITIES_BONUS = 15
REQUIRED_ENTITIES_PENALTY = 10

# Keywords are written in the canonical vocabulary produced by
# ``expand_with_synonyms`` ("saldo" arrives as "balance").
INTENT_PATTERNS: list[IntentPattern] = [
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="expenses",
        keywords=["gasté", "gastos", "gastamos", "egresos", "pagué", "compras"],
        priority=20, suggested_tool="getDateRangeMovements",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="income",
        keywords=["ingresos", "cobramos", "cobré", "ventas", "recibimos"],
        priority=20, suggested_tool="getDateRangeMovements",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="balance",
        keywords=["balance", "cuánto tengo", "disponible", "dinero", "fondos"],
        priority=18, suggested_tool="getOrganizationBalance",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="contact_movements",
        keywords=["movimientos de", "movimientos con", "contacto", "pagos a", "cuenta corriente"],
        priority=18, required_entities=[EntityType.CONTACT],
        suggested_tool="getContactMovements",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="payments_by_contact",
        keywords=["cuánto le pagué", "cuánto le pagamos", "total pagado", "total de pagos"],
        priority=17, required_entities=[EntityType.CONTACT],
        suggested_tool="getTotalPaymentsByContactAndProject",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="role_spending",
        keywords=["personal", "subcontratista", "socios", "mano de obra"],
        priority=16, suggested_tool="getRoleSpending",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="cashflow",
        keywords=["flujo de caja", "tendencia", "evolución", "mes a mes"],
        priority=16, suggested_tool="getCashflowTrend",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="client_commitments",
        keywords=["compromisos", "cuotas", "pendiente", "nos deben"],
        priority=16, suggested_tool="getClientCommitments",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="project_summary",
        keywords=["resumen", "rentabilidad", "cómo va", "estado del proyecto", "ganancia"],
        priority=15, required_entities=[EntityType.PROJECT],
        suggested_tool="getProjectFinancialSummary",
    ),
    IntentPattern(
        type=IntentType.PROJECT_QUERY, subtype="list",
        keywords=["proyectos", "obras", "lista de proyectos", "mis proyectos"],
        priority=14, suggested_tool="getProjectsList",
    ),
    IntentPattern(
        type=IntentType.PROJECT_QUERY, subtype="details",
        keywords=["detalles", "información del proyecto", "datos del proyecto", "ficha"],
        priority=14, required_entities=[EntityType.PROJECT],
        suggested_tool="getProjectDetails",
    ),
    IntentPattern(
        type=IntentType.FINANCIAL_QUERY, subtype="date_range",
        keywords=["entre", "desde", "hasta", "rango", "período"],
        priority=12, suggested_tool="getDateRangeMovements",
    ),
    IntentPattern(
        type=IntentType.GENERAL, subtype="help",
        keywords=["ayuda", "help", "qué podés hacer", "hola"],
        priority=5,
    ),
]

# Subtypes that cannot be answered without a specific entity
_REQUIRES_CONTACT = {"contact_movements", "payments_by_contact"}
_REQUIRES_PROJECT = {"project_summary", "details"}


# ── Filters ─────────────────────────────────────────────────────────

# Probed on folded text, first match per group wins
_CURRENCY_PATTERNS = [
    ("USD", re.compile(r"\b(?:usd|dolar(?:es)?|u\$s|us\$)")),
    ("ARS", re.compile(r"\b(?:ars|pesos?)\b")),
]
_MOVEMENT_TYPE_PATTERNS = [
    ("Egreso", re.compile(
        r"\b(?:gast\w*|egreso\w*|pagu\w*|pagamos|pagad\w*|pagos?\b(?!\s+recibid)|compra\w*|compre\b)"
    )),
    ("Ingreso", re.compile(r"\b(?:ingres\w*|cobr\w*|recib\w*|venta\w*)")),
]
_ROLE_PATTERNS = [
    ("subcontractor", re.compile(r"\bsubcontrat\w*")),
    ("personnel", re.compile(
        r"\b(?:personal|emplead\w*|obrer\w*|trabajador\w*|jornal\w*|mano de obra)"
    )),
    ("partner", re.compile(r"\b(?:socios?|partners?|aportes?|inversor\w*)")),
]


def _first_hit(patterns: list[tuple[str, re.Pattern[str]]], text: str) -> str | None:
    return next((value for value, pattern in patterns if pattern.search(text)), None)


def detect_filters(text: str) -> IntentFilters:
    """Currency, movement type and role cues, each detected independently."""
    folded = normalize_text(expand_with_synonyms(text))
    return IntentFilters(
        currency=_first_hit(_CURRENCY_PATTERNS, folded),
        type=_first_hit(_MOVEMENT_TYPE_PATTERNS, folded),
        role=_first_hit(_ROLE_PATTERNS, folded),
    )


# ── Scoring ─────────────────────────────────────────────────────────

def _count_keywords(pattern: IntentPattern, folded_question: str, key_terms: list[str]) -> int:
    matched = 0
    for keyword in pattern.keywords:
        folded_keyword = normalize_text(keyword)
        if folded_keyword in folded_question or any(folded_keyword in t for t in key_terms):
            matched += 1
    return matched


def score_pattern(
    pattern: IntentPattern,
    folded_question: str,
    key_terms: list[str],
    entities: list[Entity],
) -> int:
    """``matched_keywords × priority``, adjusted for required entity types."""
    score = _count_keywords(pattern, folded_question, key_terms) * pattern.priority
    if pattern.required_entities:
        present = {e.type for e in entities}
        if all(t in present for t in pattern.required_entities):
            score += REQUIRED_ENTITIES_BONUS
        else:
            score -= REQUIRED_ENTITIES_PENALTY
    return score


def classify_intent(
    question: str,
    entities: list[Entity],
    *,
    patterns: list[IntentPattern] = INTENT_PATTERNS,
    today: date | None = None,
) -> Intent:
    """
    Pick the best-scoring pattern for ``question``.

    Ties go to the pattern listed first.  When nothing scores above
    zero the intent is ``unknown`` with confidence 0.
    """
    expanded = expand_with_synonyms(question)
    folded = normalize_text(expanded)
    key_terms = [normalize_text(t) for t in extract_key_terms(question)]

    temporal_scope = detect_temporal_scope(expanded, today=today)
    filters = detect_filters(expanded)
    filters = None if filters.is_empty() else filters

    best: IntentPattern | None = None
    best_score = 0
    for pattern in patterns:
        score = score_pattern(pattern, folded, key_terms, entities)
        if score > best_score:
            best, best_score = pattern, score

    if best is None:
        logger.info("[INTENT] No pattern matched; intent=unknown")
        return Intent(
            type=IntentType.UNKNOWN,
            confidence=0.0,
            entities=entities,
            temporal_scope=temporal_scope,
            filters=filters,
        )

    max_score = best.priority * len(best.keywords) + REQUIRED_ENTITIES_BONUS
    confidence = max(0.0, min(best_score / max_score, 1.0))

    intent = Intent(
        type=best.type,
        subtype=best.subtype,
        confidence=confidence,
        entities=entities,
        temporal_scope=temporal_scope,
        filters=filters,
    )
    logger.info(
        "[INTENT] Classified: %s/%s | score=%d | confidence=%.2f | period=%s",
        intent.type, intent.subtype, best_score, confidence,
        temporal_scope.period if temporal_scope else "-",
    )
    return intent


# ── Validation & tool suggestion ────────────────────────────────────

def validate_intent(intent: Intent) -> IntentValidation:
    """
    Check the intent carries the context its tool needs.

    Missing context invalidates; low confidence only warns.
    """
    missing: list[str] = []
    warnings: list[str] = []

    if intent.type == IntentType.UNKNOWN:
        missing.append("Could not determine what the question is asking for")
    if intent.subtype in _REQUIRES_CONTACT and not intent.has_entity(EntityType.CONTACT):
        missing.append("No contact detected in the question")
    if intent.subtype in _REQUIRES_PROJECT and not intent.has_entity(EntityType.PROJECT):
        missing.append("No project detected in the question")

    if intent.type != IntentType.UNKNOWN and intent.confidence < settings.low_confidence_threshold:
        warnings.append(
            f"Low confidence ({intent.confidence:.0%}) for {intent.type}/{intent.subtype}"
        )

    return IntentValidation(valid=not missing, missing_context=missing, warnings=warnings)


def suggest_tool_for_intent(
    intent: Intent,
    patterns: list[IntentPattern] = INTENT_PATTERNS,
) -> str | None:
    """The downstream tool registered for the intent's type/subtype, if any."""
    for pattern in patterns:
        if pattern.type == intent.type and pattern.subtype == intent.subtype:
            return pattern.suggested_tool
    return None
