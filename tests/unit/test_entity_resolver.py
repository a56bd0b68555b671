"""Unit tests for candidate extraction, scoring and entity resolution."""

import pytest

from nlpipe.pipeline.cache import AICache
from nlpipe.pipeline.entity_resolver import (
    extract_potential_entities,
    invalidate_entity_cache,
    merge_results,
    resolve_entities,
    score_candidate,
)
from nlpipe.pipeline.synonyms import EntitySynonymRegistry, create_default_registry
from nlpipe.repositories.entity_store import EntityStore, InMemoryEntityStore
from nlpipe.schemas.entity import (
    Entity,
    EntityCollection,
    EntitySearchResult,
    EntitySynonym,
    EntityType,
    MatchType,
)
from nlpipe.schemas.pipeline import AIContext

ORG = "org-1"


# ── Fakes ────────────────────────────────────────────────────────────


class CountingStore(EntityStore):
    """Wraps an in-memory store and counts lookups per collection."""

    def __init__(self, inner: EntityStore):
        self.inner = inner
        self.calls: dict[str, int] = {}

    async def list_records(self, collection, organization_id):
        key = EntityCollection(collection).value
        self.calls[key] = self.calls.get(key, 0) + 1
        return await self.inner.list_records(collection, organization_id)


class FailingStore(EntityStore):
    """Raises for one collection, delegates the rest."""

    def __init__(self, inner: EntityStore, failing: EntityCollection):
        self.inner = inner
        self.failing = failing

    async def list_records(self, collection, organization_id):
        if EntityCollection(collection) == self.failing:
            raise ConnectionError("store unavailable")
        return await self.inner.list_records(collection, organization_id)


@pytest.fixture
def store():
    s = InMemoryEntityStore()
    s.add(EntityCollection.PROJECTS, ORG, [
        {"id": "p1", "name": "Casa Sur"},
        {"id": "p2", "name": "Casa Sur Anexo"},
        {"id": "p3", "name": "Edificio Torre-Norte"},
    ])
    s.add(EntityCollection.CONTACTS, ORG, [
        {"id": "c1", "first_name": "Juan", "last_name": "Pérez"},
        {"id": "c2", "name": "María González"},
    ])
    s.add(EntityCollection.WALLETS, ORG, [{"id": "w1", "name": "Caja Chica"}])
    s.add(EntityCollection.CATEGORIES, ORG, [{"id": "k1", "name": "Materiales"}])
    s.add(EntityCollection.PROJECTS, "org-2", [{"id": "x1", "name": "Casa Sur"}])
    return s


@pytest.fixture
def context():
    return AIContext(user_id="u1", organization_id=ORG)


@pytest.fixture
def cache():
    return AICache()


# ── Candidate extraction ─────────────────────────────────────────────


def test_extracts_capitalized_sequences_and_skips_question_words():
    terms = extract_potential_entities("¿Cuánto gasté en Casa Sur este mes?")
    assert "Casa Sur" in terms
    assert "Cuánto" not in terms
    assert "Casa" not in terms


def test_extracts_quoted_terms():
    terms = extract_potential_entities('movimientos de "torre norte" en marzo')
    assert terms[0] == "torre norte"


def test_extracts_text_after_prepositions():
    terms = extract_potential_entities("pagos del corralon")
    assert "corralon" in terms


def test_extraction_deduplicates_and_ignores_short_terms():
    terms = extract_potential_entities('"ab" de Juan Pérez y Juan Pérez')
    assert "ab" not in terms
    assert terms.count("Juan Pérez") == 1


def test_extraction_of_empty_question():
    assert extract_potential_entities("") == []


# ── Scoring ──────────────────────────────────────────────────────────


def test_score_tiers_are_ordered():
    exact = score_candidate("Casa Sur", "casa sur")
    partial = score_candidate("Casa Sur Anexo", "Casa Sur")
    fuzzy = score_candidate("Edificio Torre-Norte", "torre norte")
    assert exact == (1.0, MatchType.EXACT)
    assert partial == (0.8, MatchType.PARTIAL)
    assert fuzzy == (0.6, MatchType.FUZZY)


def test_no_fuzzy_tier_when_disabled():
    assert score_candidate("Edificio Torre-Norte", "torre norte", allow_fuzzy=False) is None


def test_unrelated_name_scores_none():
    assert score_candidate("Casa Sur", "Banco") is None
    assert score_candidate("", "Banco") is None


def _result(entity_id: str, score: float, entity_type=EntityType.PROJECT) -> EntitySearchResult:
    return EntitySearchResult(
        entity=Entity(id=entity_id, name=entity_id, type=entity_type, organization_id=ORG),
        score=score,
        match_type=MatchType.PARTIAL,
        matched_term="t",
    )


def test_merge_keeps_highest_score_per_type_and_id():
    merged = merge_results(
        [_result("p1", 0.6), _result("p1", 1.0), _result("p1", 0.8, EntityType.CONTACT)],
        min_confidence=0.5,
        max_results=5,
    )
    assert [(e.type, e.id, e.confidence) for e in merged] == [
        ("project", "p1", 1.0),
        ("contact", "p1", 0.8),
    ]


def test_merge_filters_and_truncates():
    merged = merge_results(
        [_result("a", 0.4), _result("b", 0.9), _result("c", 0.7), _result("d", 0.8)],
        min_confidence=0.5,
        max_results=2,
    )
    assert [e.id for e in merged] == ["b", "d"]


# ── Resolution ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_resolves_exact_project_first(store, context, cache):
    entities = await resolve_entities(
        "¿Cuánto gasté en Casa Sur este mes?", context, store, cache, create_default_registry(),
    )
    assert entities[0].id == "p1"
    assert entities[0].type == "project"
    assert entities[0].confidence == 1.0
    assert entities[1].id == "p2"
    assert entities[1].confidence == 0.8
    assert all(e.organization_id == ORG for e in entities)


@pytest.mark.asyncio
async def test_contacts_use_first_and_last_name(store, context, cache):
    entities = await resolve_entities(
        "movimientos de Juan Pérez", context, store, cache, EntitySynonymRegistry(),
    )
    contact = next(e for e in entities if e.type == "contact")
    assert contact.id == "c1"
    assert contact.name == "Juan Pérez"
    assert contact.confidence == 1.0


@pytest.mark.asyncio
async def test_fuzzy_match_for_projects(store, context, cache):
    entities = await resolve_entities(
        'gastos de "torre norte"', context, store, cache, EntitySynonymRegistry(),
    )
    assert [(e.id, e.confidence) for e in entities] == [("p3", 0.6)]


@pytest.mark.asyncio
async def test_min_confidence_drops_fuzzy_matches(store, context, cache):
    entities = await resolve_entities(
        'gastos de "torre norte"', context, store, cache, EntitySynonymRegistry(),
        min_confidence=0.7,
    )
    assert entities == []


@pytest.mark.asyncio
async def test_alias_resolves_through_registry(store, context, cache):
    registry = EntitySynonymRegistry([
        EntitySynonym(canonical="Caja Chica", aliases=["Fondo Fijo"], entity_type=EntityType.WALLET),
    ])
    entities = await resolve_entities(
        'cuánto queda en "fondo fijo"', context, store, cache, registry,
    )
    wallet = next(e for e in entities if e.type == "wallet")
    assert wallet.id == "w1"
    assert wallet.matched_alias == "fondo fijo"
    assert wallet.metadata["match_type"] == "alias"


@pytest.mark.asyncio
async def test_results_are_tenant_scoped(store, cache):
    other = AIContext(user_id="u2", organization_id="org-2")
    entities = await resolve_entities(
        "gastos en Casa Sur", other, store, cache, EntitySynonymRegistry(),
    )
    assert [e.id for e in entities] == ["x1"]


@pytest.mark.asyncio
async def test_types_restrict_the_search(store, context, cache):
    entities = await resolve_entities(
        "gastos en Casa Sur de Juan Pérez", context, store, cache, EntitySynonymRegistry(),
        types=[EntityType.CONTACT],
    )
    assert {e.type for e in entities} == {"contact"}


@pytest.mark.asyncio
async def test_max_results_caps_output(store, context, cache):
    entities = await resolve_entities(
        "Casa Sur y Juan Pérez", context, store, cache, EntitySynonymRegistry(),
        max_results=1,
    )
    assert len(entities) == 1


@pytest.mark.asyncio
async def test_store_failure_only_empties_that_type(store, context, cache):
    failing = FailingStore(store, EntityCollection.CONTACTS)
    entities = await resolve_entities(
        "Casa Sur y Juan Pérez", context, failing, cache, EntitySynonymRegistry(),
    )
    assert "p1" in [e.id for e in entities]
    assert all(e.type != "contact" for e in entities)


@pytest.mark.asyncio
async def test_no_candidates_returns_empty(store, context, cache):
    assert await resolve_entities("hola", context, store, cache, EntitySynonymRegistry()) == []


# ── Caching ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_searches_are_cached_per_term(store, context, cache):
    counting = CountingStore(store)
    registry = EntitySynonymRegistry()
    await resolve_entities("gastos en Casa Sur", context, counting, cache, registry)
    first = dict(counting.calls)
    await resolve_entities("gastos en Casa Sur", context, counting, cache, registry)
    # Only the project search found something, so only it was cached
    assert counting.calls["projects"] == first["projects"]
    assert counting.calls["contacts"] == first["contacts"] + 1


@pytest.mark.asyncio
async def test_invalidate_entity_cache_is_tenant_scoped(store, context, cache):
    await resolve_entities("gastos en Casa Sur", context, store, cache, EntitySynonymRegistry())
    cache.set("projects:org-2:casa sur", [])
    cache.set("ai_response:org-1:abc", "answer")

    removed = invalidate_entity_cache(ORG, cache)

    assert removed == 1
    assert cache.get("projects:org-1:casa sur") is None
    assert cache.get("projects:org-2:casa sur") == []
    assert cache.get("ai_response:org-1:abc") == "answer"
