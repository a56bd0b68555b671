"""
Pipeline Phase 3: Entity resolution.

Finds the tenant's projects, contacts, wallets and categories mentioned
in a question:

  1. Pull candidate terms out of the question (quoted text, capitalized
     sequences, words after "en" / "de" / "para" / ...)
  2. Map each term through the synonym registry
  3. Search every (term × entity type) pair concurrently, cache-first
  4. Score each record: exact 1.0, partial 0.8, fuzzy 0.6
  5. Drop weak matches, keep the best score per (type, id), sort, cap
"""

from __future__ import annotations

import asyncio
import re

from nlpipe.core.config import settings
from nlpipe.pipeline.cache import AICache
from nlpipe.pipeline.synonyms import EntitySynonymRegistry, generate_entity_variants
from nlpipe.repositories.entity_store import EntityStore
from nlpipe.schemas.entity import (
    COLLECTION_FOR_TYPE,
    Entity,
    EntityCollection,
    EntitySearchResult,
    EntityType,
    MatchType,
)
from nlpipe.schemas.pipeline import AIContext
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import clean_whitespace, normalize_text, text_includes

logger = get_logger("nlpipe.pipeline.entity_resolver")

EXACT_SCORE = 1.0
PARTIAL_SCORE = 0.8
FUZZY_SCORE = 0.6

DEFAULT_TYPES: tuple[EntityType, ...] = (
    EntityType.PROJECT,
    EntityType.CONTACT,
    EntityType.WALLET,
    EntityType.CATEGORY,
)

# Low-cardinality collections only get exact / partial matching
_FUZZY_COLLECTIONS = frozenset({EntityCollection.PROJECTS, EntityCollection.CONTACTS})

# Capitalized words that are too generic to be entity names on their own
_COMMON_WORDS = frozenset(normalize_text(w) for w in (
    "Casa", "Proyecto", "Obra", "Edificio", "Torre", "Barrio",
    "Norte", "Sur", "Este", "Oeste", "Centro",
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
    "Cuánto", "Cuánta", "Cuántos", "Cuántas", "Qué", "Cuál", "Cuáles",
    "Cómo", "Dónde", "Cuándo", "Quién", "Mostrame", "Muéstrame", "Dame",
    "Decime", "Quiero", "Necesito", "Hola", "Gracias", "Hoy", "Ayer",
    "What", "How", "Which", "Show", "List", "The",
))

_QUOTED_RE = re.compile(r'"([^"]+)"|“([^”]+)”|«([^»]+)»|\'([^\']+)\'')
_CAPITALIZED_RE = re.compile(
    r"\b([A-ZÁÉÍÓÚÑ][a-záéíóúüñ]+(?:\s+[A-ZÁÉÍÓÚÑ][a-záéíóúüñ]+)*)\b"
)
_PREPOSITION_RE = re.compile(
    r"\b(?:en|de|del|para|al|in|of|for)\s+([a-záéíóúüñ\s]{3,}?)(?=\s|,|\.|\?|!|$)",
    re.IGNORECASE,
)


# ── Candidate extraction ────────────────────────────────────────────

def _is_common_word(term: str) -> bool:
    return normalize_text(term) in _COMMON_WORDS


def extract_potential_entities(question: str) -> list[str]:
    """
    Candidate entity names, in discovery order, without duplicates.

    Heuristics: quoted text (strongest signal), capitalized word
    sequences, and the word following a key preposition.
    """
    q = question or ""
    terms: dict[str, None] = {}

    for match in _QUOTED_RE.finditer(q):
        clean = clean_whitespace(next(g for g in match.groups() if g is not None))
        if len(clean) >= 3:
            terms.setdefault(clean, None)

    for match in _CAPITALIZED_RE.finditer(q):
        clean = clean_whitespace(match.group(1))
        if len(clean) >= 3 and not _is_common_word(clean):
            terms.setdefault(clean, None)

    for match in _PREPOSITION_RE.finditer(q):
        clean = clean_whitespace(match.group(1))
        if len(clean) >= 3 and not _is_common_word(clean):
            terms.setdefault(clean, None)

    return list(terms)


# ── Scoring ─────────────────────────────────────────────────────────

def score_candidate(
    name: str,
    term: str,
    *,
    allow_fuzzy: bool = True,
) -> tuple[float, MatchType] | None:
    """
    Score one record name against one term, or ``None`` if unrelated.

    Fuzzy matching stops at the first variant that contains the term,
    so every fuzzy hit scores the same.
    """
    if not normalize_text(name) or not normalize_text(term):
        return None
    if normalize_text(name) == normalize_text(term):
        return EXACT_SCORE, MatchType.EXACT
    if text_includes(name, term):
        return PARTIAL_SCORE, MatchType.PARTIAL
    if allow_fuzzy:
        variant = next((v for v in generate_entity_variants(name) if text_includes(v, term)), None)
        if variant is not None:
            return FUZZY_SCORE, MatchType.FUZZY
    return None


def _cache_key(collection: EntityCollection, organization_id: str, term: str) -> str:
    return f"{collection.value}:{organization_id}:{normalize_text(term)}"


async def search_entities(
    entity_type: EntityType,
    term: str,
    organization_id: str,
    *,
    store: EntityStore,
    cache: AICache,
) -> list[EntitySearchResult]:
    """
    Score every record of one type against one term.

    Store failures and empty collections both come back as ``[]``.
    """
    collection = COLLECTION_FOR_TYPE[entity_type]
    key = _cache_key(collection, organization_id, term)
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        records = await store.list_records(collection, organization_id)
    except Exception as e:
        logger.warning(
            "[ENTITIES] %s lookup failed for org %s: %s", collection.value, organization_id, e,
        )
        return []
    if not records:
        return []

    allow_fuzzy = collection in _FUZZY_COLLECTIONS
    results: list[EntitySearchResult] = []
    for record in records:
        name = record.display_name
        scored = score_candidate(name, term, allow_fuzzy=allow_fuzzy)
        if scored is None:
            continue
        score, match_type = scored
        results.append(EntitySearchResult(
            entity=Entity(
                id=record.id,
                name=name,
                type=entity_type,
                organization_id=organization_id,
                confidence=score,
            ),
            score=score,
            match_type=match_type,
            matched_term=term,
        ))

    results.sort(key=lambda r: r.score, reverse=True)
    if results:
        cache.set(key, results, settings.entity_cache_ttl_seconds)
    return results


# ── Resolution ──────────────────────────────────────────────────────

def _apply_alias(result: EntitySearchResult, alias: str) -> EntitySearchResult:
    """Re-tag a result found through the synonym registry."""
    return result.model_copy(update={
        "entity": result.entity.model_copy(update={"matched_alias": alias}),
        "match_type": MatchType.ALIAS.value,
        "matched_term": alias,
    })


def merge_results(
    results: list[EntitySearchResult],
    *,
    min_confidence: float,
    max_results: int,
) -> list[Entity]:
    """Filter, keep the best score per (type, id), sort by score, cap."""
    best: dict[str, EntitySearchResult] = {}
    for result in results:
        if result.score < min_confidence:
            continue
        key = f"{result.entity.type}:{result.entity.id}"
        existing = best.get(key)
        if existing is None or result.score > existing.score:
            best[key] = result

    ranked = sorted(best.values(), key=lambda r: r.score, reverse=True)[:max_results]
    return [
        r.entity.model_copy(update={
            "confidence": r.score,
            "metadata": {"match_type": r.match_type, "matched_term": r.matched_term},
        })
        for r in ranked
    ]


async def resolve_entities(
    question: str,
    context: AIContext,
    store: EntityStore,
    cache: AICache,
    registry: EntitySynonymRegistry,
    *,
    types: list[EntityType] | tuple[EntityType, ...] | None = None,
    min_confidence: float | None = None,
    max_results: int | None = None,
) -> list[Entity]:
    """
    Resolve every entity mentioned in ``question`` for the tenant.

    Returns at most ``max_results`` entities, best first, none below
    ``min_confidence`` and never two with the same (type, id).
    """
    wanted = [EntityType(t) for t in (types or DEFAULT_TYPES)]
    min_confidence = settings.entity_min_confidence if min_confidence is None else min_confidence
    max_results = settings.entity_max_results if max_results is None else max_results

    terms = extract_potential_entities(question)
    if not terms:
        logger.debug("[ENTITIES] No candidate terms in question")
        return []

    searches: dict[tuple[str, EntityType], str | None] = {}
    for term in terms:
        canonical = registry.resolve(term) or term
        alias = term if normalize_text(canonical) != normalize_text(term) else None
        for entity_type in wanted:
            if entity_type not in COLLECTION_FOR_TYPE:
                continue
            searches.setdefault((canonical, entity_type), alias)

    batches = await asyncio.gather(*(
        search_entities(
            entity_type, term, context.organization_id, store=store, cache=cache,
        )
        for term, entity_type in searches
    ))

    flat: list[EntitySearchResult] = []
    for alias, batch in zip(searches.values(), batches):
        if alias is None:
            flat.extend(batch)
        else:
            flat.extend(_apply_alias(r, alias) for r in batch)

    entities = merge_results(flat, min_confidence=min_confidence, max_results=max_results)
    logger.info(
        "[ENTITIES] %d term(s) → %d entit%s: %s",
        len(terms),
        len(entities),
        "y" if len(entities) == 1 else "ies",
        ", ".join(f"{e.type}:{e.name} ({e.confidence:.1f})" for e in entities) or "-",
    )
    return entities


def invalidate_entity_cache(tenant_id: str, cache: AICache) -> int:
    """
    Drop every cached entity search for a tenant.

    Must be called whenever a project, contact, wallet or category is
    created, renamed or deleted, or the resolver keeps serving stale names.
    """
    pattern = re.compile(
        rf"^(projects|contacts|wallets|categories):{re.escape(tenant_id)}:"
    )
    removed = cache.invalidate_pattern(pattern)
    logger.info("[ENTITIES] Invalidated %d cached searches for org %s", removed, tenant_id)
    return removed
