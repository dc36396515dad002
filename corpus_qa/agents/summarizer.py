# =============================================================================
# Summarizer: Cross-Document Summary with Entities
# =============================================================================
#
# Independent of the query pipeline: one call over the WHOLE corpus that
# returns a Markdown summary plus the countries and key stakeholders the
# documents mention. Uses the summary model (llm_summary_model), which is
# sized for reading every document at once.
#
# Entity lists are normalised after parsing: countries are deduplicated
# and alphabetised, stakeholders deduplicated keeping first mention order.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from corpus_qa.config import settings
from corpus_qa.exceptions import MalformedResponse
from corpus_qa.services.corpus import Document
from corpus_qa.services.llm import LLMProvider, parse_structured

logger = logging.getLogger(__name__)

MALFORMED_SUMMARY = (
    "Sorry, I received an invalid response from the AI while generating "
    "the summary. Please try again."
)


@dataclass
class SummaryResult:
    summary_text: str
    countries: list[str] = field(default_factory=list)
    stakeholders: list[str] = field(default_factory=list)


class SummaryPayload(BaseModel):
    """Structured reply expected from the summary call."""

    summaryText: str = Field(
        description=(
            "A concise but comprehensive summary of the key themes, findings "
            "and conclusions across all documents, formatted in Markdown."
        ),
    )
    countries: list[str] = Field(
        description="An alphabetized list of all countries mentioned.",
    )
    stakeholders: list[str] = Field(
        description=(
            "Key stakeholders (organizations, individuals, groups) mentioned "
            "in the documents."
        ),
    )


_SUMMARY_SYSTEM = """You are an expert analyst. You have been provided with \
several documents. Your task is to generate a summary and extract key \
entities.

Rules:
- Summarise the key themes, findings and conclusions across ALL documents
- Identify every country mentioned in the documents
- Identify the key stakeholders: organizations, individuals and groups
- Use ONLY information from the provided documents"""


async def summarize(
    documents: Sequence[Document],
    llm: LLMProvider,
) -> SummaryResult:
    """
    Summarise the full corpus and extract countries and stakeholders.

    Raises:
        ValueError: `documents` is empty.
        ServiceUnavailable: From the resilient provider.
    """
    if not documents:
        raise ValueError("summarize() requires at least one document")

    context = _build_context(documents)
    user_message = (
        "Please provide a summary, a list of countries, and a list of "
        f"stakeholders for the following documents:\n\n{context}"
    )

    logger.info("Summarizing %d documents", len(documents))

    response = await llm.complete(
        messages=[{"role": "user", "content": user_message}],
        system=_SUMMARY_SYSTEM,
        temperature=0.3,
        model=settings.llm_summary_model,
        response_schema=SummaryPayload,
    )

    try:
        payload = parse_structured(response, SummaryPayload)
    except MalformedResponse as e:
        logger.warning(
            "Summary reply unparseable: %s (raw=%r)", e, e.raw_response[:200],
        )
        return SummaryResult(summary_text=MALFORMED_SUMMARY)

    return SummaryResult(
        summary_text=payload.summaryText.strip(),
        countries=sorted(_distinct(payload.countries), key=str.casefold),
        stakeholders=_distinct(payload.stakeholders),
    )


def _distinct(names: Sequence[str]) -> list[str]:
    """Strip, drop blanks, dedupe case-insensitively keeping first spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        cleaned = name.strip()
        key = cleaned.casefold()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


def _build_context(documents: Sequence[Document]) -> str:
    limit = settings.summary_document_max_chars
    return "\n\n".join(
        f"--- DOCUMENT START: {doc.name} ---\n"
        f"{doc.content[:limit]}\n"
        f"--- DOCUMENT END: {doc.name} ---"
        for doc in documents
    )
