from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nlpipe.api.ask import router as ask_router
from nlpipe.api.health import router as health_router
from nlpipe.core.config import settings
from nlpipe.pipeline.services import create_pipeline_services
from nlpipe.sqlite.database import init_db
from nlpipe.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger("nlpipe.main")

app = FastAPI(
    title=settings.app_name,
    description="Natural-language question orchestration: entities, intent and tool plans",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Cache, synonym registry and entity store shared by every request
app.state.services = create_pipeline_services()

app.include_router(ask_router, prefix="/api/v1")     # /api/v1/ask, /api/v1/ask/result, ...
app.include_router(health_router, prefix="/api")     # /api/health


@app.on_event("startup")
async def on_startup():
    """Verify the entity database and create missing tables."""
    logger.info("Starting %s (%s)...", settings.app_name, settings.environment)
    if not init_db():
        logger.error("Failed to initialize entity database")
        raise RuntimeError("Database initialization failed")
