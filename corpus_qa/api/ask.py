# =============================================================================
# Ask API: Cited Q&A and Corpus Summary Endpoints
# =============================================================================
#
# ENDPOINTS:
#   POST /sessions/{session_id}/ask       - answer a question from the corpus
#   GET  /sessions/{session_id}/messages  - the conversation so far
#   POST /sessions/{session_id}/summary   - summary + countries + stakeholders
#
# FLOW (ask):
#   1. Take the current corpus snapshot
#   2. Run the orchestrator (select → extract ×N → synthesize)
#   3. Return the final turn with its sources and the terminal outcome
#
# Pipeline failures never surface as HTTP errors: the orchestrator turns
# them into a chat message with outcome "failed". This endpoint is thin;
# it only validates input and maps the result.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from corpus_qa.api.deps import get_session
from corpus_qa.models.requests import AskRequest
from corpus_qa.models.responses import (
    AskResponse,
    ConversationResponse,
    MessageResponse,
)
from corpus_qa.services.sessions import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Question Answering"])


@router.post(
    "/{session_id}/ask",
    response_model=AskResponse,
    summary="Ask a question about the uploaded documents",
    description=(
        "Selects the relevant documents, extracts key points from each in "
        "parallel, and synthesises one answer with inline citations. The "
        "sources list names the documents the answer drew upon."
    ),
)
async def ask_endpoint(
    request: AskRequest,
    session: Session = Depends(get_session),
) -> AskResponse:
    logger.info(
        "Ask request: session=%s, question='%s'",
        session.id, request.question[:80],
    )

    result = await session.orchestrator.ask(
        request.question, session.corpus.snapshot,
    )
    if result is None:
        # Whitespace-only question: nothing was appended
        return AskResponse(
            outcome="idle",
            reply=MessageResponse(id="", sender="assistant", text=""),
        )

    return AskResponse(
        outcome=result["outcome"].value,
        reply=MessageResponse.from_message(result["reply"]),
        selected_documents=[doc.name for doc in result.get("selected", [])],
    )


@router.get(
    "/{session_id}/messages",
    response_model=ConversationResponse,
    summary="Get the conversation, including any in-progress status turn",
)
async def list_messages(session: Session = Depends(get_session)) -> ConversationResponse:
    return ConversationResponse(
        messages=[
            MessageResponse.from_message(m)
            for m in session.conversation.messages
        ],
    )


@router.post(
    "/{session_id}/summary",
    response_model=MessageResponse,
    summary="Summarise the whole corpus and extract entities",
    description=(
        "Generates a Markdown summary across every uploaded document plus "
        "an alphabetised list of countries and a list of key stakeholders."
    ),
)
async def summary_endpoint(session: Session = Depends(get_session)) -> MessageResponse:
    logger.info("Summary request: session=%s", session.id)
    reply = await session.orchestrator.summarize(session.corpus.snapshot)
    return MessageResponse.from_message(reply)
