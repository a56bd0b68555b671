"""
Pipeline modules for natural-language question orchestration.

Phase 1: Normalization          (synonyms.py)
Phase 2: Whole-answer cache     (cache.py)
Phase 3: Entity resolution      (entity_resolver.py)
Phase 4: Intent classification  (intent.py, temporal.py)
Phase 5: Query planning         (query_planner.py)

Orchestrated by: orchestrator.py, with shared collaborators from services.py
"""
