# =============================================================================
# Sessions API: Session Lifecycle and Corpus Management
# =============================================================================
#
# ENDPOINTS:
#   POST   /sessions                                  - start a session
#   DELETE /sessions/{session_id}                     - discard it
#   GET    /sessions/{session_id}/documents           - list the corpus
#   POST   /sessions/{session_id}/documents           - add parsed documents
#   DELETE /sessions/{session_id}/documents/{doc_id}  - remove a document
#
# Adding documents returns 202: the documents are queryable at once, but
# their descriptions (used by retrieval) are generated in the background.
# Until then the listing shows description "..." for each of them.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from corpus_qa.api.deps import get_enricher, get_llm, get_registry, get_session
from corpus_qa.config import settings
from corpus_qa.exceptions import CorpusLimitExceeded, DocumentNotFound, SessionNotFound
from corpus_qa.models.requests import AddDocumentsRequest
from corpus_qa.models.responses import (
    AddDocumentsResponse,
    CorpusResponse,
    DocumentResponse,
    SessionResponse,
)
from corpus_qa.services.corpus import Document, new_document_id
from corpus_qa.services.enricher import DocumentEnricher
from corpus_qa.services.llm import LLMProvider
from corpus_qa.services.sessions import Session, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post(
    "",
    response_model=SessionResponse,
    status_code=201,
    summary="Start a new session with an empty corpus",
)
async def create_session(
    sessions: SessionRegistry = Depends(get_registry),
    llm: LLMProvider = Depends(get_llm),
) -> SessionResponse:
    session = sessions.create(llm)
    return SessionResponse(session_id=session.id)


@router.delete(
    "/{session_id}",
    status_code=204,
    summary="Discard a session, its corpus and its conversation",
)
async def delete_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_registry),
) -> None:
    try:
        sessions.delete(session_id)
    except SessionNotFound as e:
        raise HTTPException(
            status_code=404, detail=f"Session {session_id} not found.",
        ) from e


@router.get(
    "/{session_id}/documents",
    response_model=CorpusResponse,
    summary="List the documents in the session corpus",
)
async def list_documents(session: Session = Depends(get_session)) -> CorpusResponse:
    snapshot = session.corpus.snapshot
    return CorpusResponse(
        version=snapshot.version,
        documents=[DocumentResponse.from_document(d) for d in snapshot],
        max_documents=settings.max_corpus_documents,
    )


@router.post(
    "/{session_id}/documents",
    response_model=AddDocumentsResponse,
    status_code=202,
    summary="Add parsed documents to the corpus",
    description=(
        "Adds plain-text documents to the session corpus. Duplicate names "
        "are skipped. A description, title and date are generated for each "
        "new document in the background."
    ),
)
async def add_documents(
    request: AddDocumentsRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    enricher: DocumentEnricher = Depends(get_enricher),
) -> AddDocumentsResponse:
    """
    Error handling:
    - Corpus would exceed the document cap → 400, corpus unchanged
    """
    uploads = [
        Document(id=new_document_id(), name=u.name, content=u.content)
        for u in request.documents
    ]

    try:
        added = session.corpus.add(uploads)
    except CorpusLimitExceeded as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    added_ids = {doc.id for doc in added}
    skipped = [doc.name for doc in uploads if doc.id not in added_ids]

    if added:
        background_tasks.add_task(
            enricher.enrich_many, session.corpus, [doc.id for doc in added],
        )

    logger.info(
        "Session %s: added %d document(s), skipped %d",
        session.id, len(added), len(skipped),
    )

    return AddDocumentsResponse(
        added=[DocumentResponse.from_document(d) for d in added],
        skipped=skipped,
        version=session.corpus.snapshot.version,
    )


@router.delete(
    "/{session_id}/documents/{document_id}",
    status_code=204,
    summary="Remove a document from the corpus",
)
async def remove_document(
    document_id: str,
    session: Session = Depends(get_session),
) -> None:
    try:
        session.corpus.remove(document_id)
    except DocumentNotFound as e:
        raise HTTPException(
            status_code=404, detail=f"Document {document_id} not found.",
        ) from e
