import uvicorn

from nlpipe.core.config import settings

if __name__ == "__main__":
    # Single worker: the pipeline cache and synonym registry live in-process
    uvicorn.run(
        "nlpipe.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",  # Only reload in development
        log_level=settings.log_level.lower(),
    )
