# =============================================================================
# API Dependencies: FastAPI Dependency Injection
# =============================================================================
#
# Route handlers receive the session registry, the resilient LLM and the
# enricher through Depends(), so tests swap them via
# app.dependency_overrides without touching module globals.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException

from corpus_qa.exceptions import ConfigurationError, SessionNotFound
from corpus_qa.services.enricher import DocumentEnricher
from corpus_qa.services.llm import LLMProvider
from corpus_qa.services.resilience import get_resilient_llm
from corpus_qa.services.sessions import Session, SessionRegistry, registry

logger = logging.getLogger(__name__)


def get_registry() -> SessionRegistry:
    return registry


def get_llm() -> LLMProvider:
    """
    The configured provider wrapped in the retry policy.

    Raises:
        HTTPException 503: The provider is not configured.
    """
    try:
        return get_resilient_llm()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e


def get_enricher(llm: LLMProvider = Depends(get_llm)) -> DocumentEnricher:
    return DocumentEnricher(llm)


def get_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_registry),
) -> Session:
    """
    Raises:
        HTTPException 404: Unknown session id.
    """
    try:
        return sessions.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(
            status_code=404,
            detail=f"Session {session_id} not found.",
        ) from e
