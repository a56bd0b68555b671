"""
Health check endpoint for monitoring.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from nlpipe.api.ask import get_pipeline_services
from nlpipe.core.config import settings
from nlpipe.pipeline.services import PipelineServices

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(services: PipelineServices = Depends(get_pipeline_services)):
    """Liveness plus cache and synonym registry counters."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "cache": services.cache.get_stats(),
        "synonyms": services.synonyms.get_stats(),
    }
