"""
Process-wide pipeline collaborators.

Built once at startup and passed by reference into every pipeline run,
so tests can swap any of them (a fake store, a cache with a fixed
clock) without touching module state.
"""

from __future__ import annotations

from nlpipe.pipeline.cache import AICache
from nlpipe.pipeline.synonyms import EntitySynonymRegistry, create_default_registry
from nlpipe.repositories.entity_store import EntityStore, SqlEntityStore


class PipelineServices:
    """Cache, synonym registry and entity store shared by all requests."""

    def __init__(
        self,
        cache: AICache,
        synonyms: EntitySynonymRegistry,
        entity_store: EntityStore,
    ):
        self.cache = cache
        self.synonyms = synonyms
        self.entity_store = entity_store


def create_pipeline_services(
    entity_store: EntityStore | None = None,
    *,
    cache: AICache | None = None,
    synonyms: EntitySynonymRegistry | None = None,
) -> PipelineServices:
    """Wire the default services; any argument overrides its default."""
    return PipelineServices(
        cache=cache if cache is not None else AICache(),
        synonyms=synonyms if synonyms is not None else create_default_registry(),
        entity_store=entity_store if entity_store is not None else SqlEntityStore(),
    )
