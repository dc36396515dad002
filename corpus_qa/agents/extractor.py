# =============================================================================
# Extractor: Map Stage
# =============================================================================
#
# Reads ONE selected document and pulls out only the points relevant to
# the query. Runs once per document, all documents concurrently.
#
# The model is told to return an empty string when a document holds
# nothing relevant; that empty result is how documents the Selector let
# through get pruned before synthesis.
#
# Each call reads its own document and returns its own result. Failures
# (retries exhausted, malformed reply) resolve to empty points for that
# document only, so one bad document never sinks its siblings.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from corpus_qa.config import settings
from corpus_qa.exceptions import MalformedResponse, ServiceUnavailable
from corpus_qa.services.corpus import Document
from corpus_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Key points extracted from one document; empty if nothing relevant."""

    document: Document
    extracted_points: str

    @property
    def is_empty(self) -> bool:
        return not self.extracted_points


_EXTRACTION_SYSTEM = """You are a meticulous research analyst. You read ONE \
document and extract the information that helps answer a user's question.

Rules:
- Use ONLY the document provided; never add outside knowledge
- Return concise bullet points, each strictly relevant to the question
- Keep figures, names and dates exactly as written in the document
- Do not write an introduction, conclusion or commentary
- If the document contains nothing relevant to the question, return an \
empty response: no text at all"""

# Replies that mean "nothing relevant" even though the model was asked
# for no text at all.
_EMPTY_MARKERS = frozenset({'""', "''", "none", "n/a", "none."})


async def extract(
    query: str,
    document: Document,
    llm: LLMProvider,
) -> ExtractionResult:
    """
    Extract query-relevant key points from a single document.

    Returns:
        ExtractionResult; `extracted_points` is "" when the document has
        nothing relevant or the call failed.
    """
    truncated = document.content[: settings.extraction_max_chars]
    user_message = (
        f"Question: {query}\n\n"
        f"--- DOCUMENT START: {document.name} ---\n"
        f"{truncated}\n"
        f"--- DOCUMENT END: {document.name} ---"
    )

    try:
        response = await llm.complete(
            messages=[{"role": "user", "content": user_message}],
            system=_EXTRACTION_SYSTEM,
            temperature=0.0,
            max_tokens=settings.extraction_max_tokens,
        )
    except (ServiceUnavailable, MalformedResponse) as e:
        logger.warning(
            "Extraction failed for %s, excluding it: %s", document.name, e,
        )
        return ExtractionResult(document=document, extracted_points="")

    points = response.content.strip()
    if points.lower() in _EMPTY_MARKERS:
        points = ""

    logger.info(
        "Extracted %d chars from %s", len(points), document.name,
    )
    return ExtractionResult(document=document, extracted_points=points)


async def extract_all(
    query: str,
    documents: Sequence[Document],
    llm: LLMProvider,
) -> list[ExtractionResult]:
    """
    Fan out one extraction per document and wait for ALL of them.

    Results are returned in the order of `documents`.
    """
    logger.info("Extracting from %d documents in parallel", len(documents))
    results = await asyncio.gather(
        *(extract(query, doc, llm) for doc in documents),
    )
    return list(results)
