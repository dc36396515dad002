# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn corpus_qa.main:app --reload
#
# Interactive docs are served at /docs.
#
# The generation provider is built during startup, so a missing API key
# or unknown provider stops the service before it accepts requests.
# =============================================================================

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from corpus_qa.api import ask, sessions
from corpus_qa.config import settings
from corpus_qa.models.responses import HealthResponse
from corpus_qa.services.resilience import get_resilient_llm

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ConfigurationError propagates and aborts startup
    get_resilient_llm()
    logger.info(
        "%s v%s started (provider=%s, model=%s)",
        settings.app_name, settings.app_version,
        settings.llm_provider, settings.llm_model,
    )
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Answers questions strictly from an uploaded document corpus, "
        "citing the source documents for every claim."
    ),
    lifespan=lifespan,
)

app.include_router(sessions.router)
app.include_router(ask.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
