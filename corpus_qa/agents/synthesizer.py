# =============================================================================
# Synthesizer: Reduce Stage
# =============================================================================
#
# Combines the key points extracted from several documents into ONE
# answer with an inline citation for every claim.
#
# Input is only the non-empty extraction results; the orchestrator
# short-circuits before calling this with nothing. Each document is
# presented in its own delimited block carrying its file name, and its
# title and date when enrichment found them, so citations can name all
# three.
#
# The reply is schema-constrained: {"answer": str, "sources": [names]}.
# `sources` is cut down to names that were actually passed in; the model
# can narrow the list but never invent a source. A malformed reply becomes
# a fixed apology with no sources instead of a pipeline failure.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from corpus_qa.agents.extractor import ExtractionResult
from corpus_qa.exceptions import MalformedResponse
from corpus_qa.services.corpus import DATE_UNKNOWN
from corpus_qa.services.llm import LLMProvider, parse_structured

logger = logging.getLogger(__name__)

MALFORMED_ANSWER = (
    "Sorry, I received an invalid response from the AI. Please try again."
)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class SynthesisResult:
    """The final answer and the document names it actually drew upon."""

    answer: str
    sources: list[str] = field(default_factory=list)


class SynthesisPayload(BaseModel):
    """Structured reply expected from the synthesis call."""

    answer: str = Field(
        description=(
            "The answer in Markdown, with an inline citation after every "
            "claim. If the notes cannot answer the question, say so."
        ),
    )
    sources: list[str] = Field(
        description=(
            "File names of the documents actually cited in the answer. "
            "Empty if the answer is not supported by the notes."
        ),
    )


_SYNTHESIS_SYSTEM = """You are an expert analyst answering questions \
strictly from a set of uploaded documents. You will receive the user's \
question and research notes extracted from one or more documents.

Rules:
- Base your answer exclusively on the provided notes; never use outside \
knowledge
- Synthesise across documents into one coherent, well-structured answer in \
Markdown
- After EVERY claim, add an inline citation naming the source document's \
title, file name and date, e.g. (Annual Report, report.pdf, 2024-03-01). \
Omit the title or date when they are not given
- List in "sources" ONLY the file names of documents you actually cited, \
copied exactly as given; do not list documents you did not use
- If the notes are insufficient to answer the question, say so explicitly \
in "answer" and return an empty "sources" list; never fabricate citations"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def synthesize(
    query: str,
    results: Sequence[ExtractionResult],
    llm: LLMProvider,
) -> SynthesisResult:
    """
    Produce one cited answer from non-empty extraction results.

    Args:
        query: The user's original question.
        results: Extraction results with non-empty points.
        llm: A resilient provider. ServiceUnavailable propagates.

    Returns:
        SynthesisResult whose sources are a subset of the input names.

    Raises:
        ValueError: Called with no non-empty results.
    """
    usable = [r for r in results if not r.is_empty]
    if not usable:
        raise ValueError("synthesize() requires at least one non-empty result")

    user_message = (
        f"Question: {query}\n\n"
        f"Research notes ({len(usable)} documents):\n\n"
        f"{_format_notes(usable)}"
    )

    logger.info(
        "Synthesizing answer from %d documents: query='%s'",
        len(usable), query[:80],
    )

    response = await llm.complete(
        messages=[{"role": "user", "content": user_message}],
        system=_SYNTHESIS_SYSTEM,
        response_schema=SynthesisPayload,
    )

    try:
        payload = parse_structured(response, SynthesisPayload)
    except MalformedResponse as e:
        logger.warning(
            "Synthesis reply unparseable: %s (raw=%r)", e, e.raw_response[:200],
        )
        return SynthesisResult(answer=MALFORMED_ANSWER, sources=[])

    sources = _restrict_sources(payload.sources, [r.document.name for r in usable])

    logger.info(
        "Synthesis complete: model=%s, tokens=%d+%d, sources=%d",
        response.model, response.input_tokens, response.output_tokens,
        len(sources),
    )

    return SynthesisResult(answer=payload.answer.strip(), sources=sources)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _restrict_sources(claimed: Sequence[str], known: Sequence[str]) -> list[str]:
    """Keep claimed names that were passed in; dedupe, first-seen order."""
    allowed = set(known)
    sources: list[str] = []
    for name in claimed:
        name = name.strip()
        if name in allowed and name not in sources:
            sources.append(name)

    dropped = [n for n in claimed if n.strip() not in allowed]
    if dropped:
        logger.warning("Dropping sources not in the input: %s", dropped)
    return sources


def _format_notes(results: Sequence[ExtractionResult]) -> str:
    """
    Format extraction results as delimited per-document notes.

    Example output:
        === DOCUMENT: report.pdf ===
        Title: Annual Report
        Date: 2024-03-01
        Notes:
        - Revenue grew 15% ...
        === END DOCUMENT: report.pdf ===
    """
    sections = []
    for result in results:
        doc = result.document
        lines = [f"=== DOCUMENT: {doc.name} ==="]
        if doc.title:
            lines.append(f"Title: {doc.title}")
        if doc.date and doc.date != DATE_UNKNOWN:
            lines.append(f"Date: {doc.date}")
        lines.append("Notes:")
        lines.append(result.extracted_points)
        lines.append(f"=== END DOCUMENT: {doc.name} ===")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)
