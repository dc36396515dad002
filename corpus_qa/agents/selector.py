# =============================================================================
# Selector: Retrieval Stage
# =============================================================================
#
# Narrows the corpus to the documents worth reading in full for a query.
# There is no vector index: relevance is decided by ONE model call that
# sees the query plus every document's name and description.
#
# FLOW:
#   1. Small corpus (≤ passthrough threshold) → return it unchanged,
#      no model call. Reading everything is already cheap.
#   2. Otherwise ask the model for {"relevant_documents": [names]}
#   3. Keep corpus documents whose name was returned, in corpus order
#
# Unparseable output returns an EMPTY selection (fail closed). The
# orchestrator reports that exactly like "nothing relevant found" and
# never falls back to reading the whole corpus.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from corpus_qa.config import settings
from corpus_qa.exceptions import MalformedResponse
from corpus_qa.services.corpus import Document
from corpus_qa.services.llm import LLMProvider, parse_structured

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available."


class SelectionPayload(BaseModel):
    """Structured reply expected from the selection call."""

    relevant_documents: list[str] = Field(
        description=(
            "Names of the documents most likely to contain information "
            "needed to answer the question, exactly as listed."
        ),
    )


_SELECTION_SYSTEM = """You are a research librarian for a document \
question-answering system.

You will receive a user's question and a catalogue of documents, each with \
its file name and a short description. Decide which documents are likely to \
contain information needed to answer the question.

Rules:
- Return at most {max_documents} document names in "relevant_documents"
- Copy each name EXACTLY as it appears in the catalogue
- Prefer recall over precision: include a document when in doubt
- A document marked "{no_description}" may still be relevant; judge it by \
its name
- Return an empty list only if no document could plausibly help"""


async def select(
    query: str,
    documents: Sequence[Document],
    llm: LLMProvider,
) -> list[Document]:
    """
    Return the subset of `documents` relevant to `query`.

    Args:
        query: The user's question.
        documents: The corpus snapshot being queried.
        llm: A resilient provider. ServiceUnavailable propagates.

    Returns:
        Relevant documents in corpus order; empty if none were chosen or
        the reply was malformed.
    """
    if len(documents) <= settings.selector_passthrough_threshold:
        logger.info(
            "Selector pass-through: %d document(s) ≤ threshold %d",
            len(documents), settings.selector_passthrough_threshold,
        )
        return list(documents)

    max_documents = settings.selector_max_documents
    user_message = (
        f"Question: {query}\n\n"
        f"Document catalogue ({len(documents)} documents):\n\n"
        f"{_format_catalogue(documents)}"
    )

    logger.info(
        "Selecting from %d documents: query='%s'",
        len(documents), query[:80],
    )

    response = await llm.complete(
        messages=[{"role": "user", "content": user_message}],
        system=_SELECTION_SYSTEM.format(
            max_documents=max_documents, no_description=NO_DESCRIPTION,
        ),
        temperature=0.0,
        response_schema=SelectionPayload,
    )

    try:
        payload = parse_structured(response, SelectionPayload)
    except MalformedResponse as e:
        logger.warning(
            "Selector reply unparseable, selecting nothing: %s (raw=%r)",
            e, e.raw_response[:200],
        )
        return []

    chosen = set(payload.relevant_documents[:max_documents])
    selected = [doc for doc in documents if doc.name in chosen]

    unknown = chosen - {doc.name for doc in selected}
    if unknown:
        logger.warning("Selector returned unknown names: %s", sorted(unknown))

    logger.info("Selected %d of %d documents", len(selected), len(documents))
    return selected


def _format_catalogue(documents: Sequence[Document]) -> str:
    """
    One entry per document:

        - Name: q3-report.pdf
          Description: Quarterly update on the mediation process.
    """
    return "\n".join(
        f"- Name: {doc.name}\n"
        f"  Description: {doc.usable_description or NO_DESCRIPTION}"
        for doc in documents
    )
