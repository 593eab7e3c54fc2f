import logging
from contextlib import asynccontextmanager

from elasticsearch import AsyncElasticsearch
from fastapi import Depends, FastAPI

from .config import get_settings
from .lib.embeddings import HttpEmbeddingProvider
from .lib.rate_limit import SlidingWindowRateLimiter
from .routers import follows, health, recommendations
from .security import verify_api_key

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.es = AsyncElasticsearch(settings.es_url, api_key=settings.es_api_key)
    app.state.follow_rate_limiter = SlidingWindowRateLimiter(
        settings.follow_rate_limit, settings.follow_rate_window
    )

    provider = None
    if settings.embedding_url:
        provider = HttpEmbeddingProvider(settings.embedding_url, timeout=settings.embedding_timeout)
        await provider.start()
    else:
        logger.info("No embedding provider configured; semantic retrieval disabled")
        if settings.scoring_scheme == "semantic":
            logger.warning("Semantic scoring configured without EMBEDDING_URL; using additive scores")
    app.state.embedding_provider = provider

    try:
        yield
    finally:
        if provider is not None:
            await provider.stop()
        await app.state.es.close()


app = FastAPI(
    title="Follow Recommendations API",
    description="Account recommendations and follow-graph operations for the social app",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(recommendations.router)
app.include_router(follows.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "Follow Recommendations API"}
