# =============================================================================
# Document Enricher: Background Description and Metadata Generation
# =============================================================================
#
# Runs once per newly added document, out of band from any query:
#   1. describe()          - one-sentence description from a content prefix
#   2. extract_metadata()  - title and date from the first and last pages
#   3. patch the corpus by document id
#
# The description feeds the Selector on later queries. Until it lands the
# document carries the pending marker; if generation fails it carries the
# failure sentinel. The Selector treats both as "no description" rather
# than as errors, so queries never wait on enrichment.
#
# Content is truncated before sending (prefix for the description,
# prefix + suffix for metadata). Anything beyond those windows is not
# seen by the model.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from corpus_qa.config import settings
from corpus_qa.exceptions import ServiceUnavailable
from corpus_qa.services.corpus import (
    DATE_UNKNOWN,
    DESCRIPTION_FAILED,
    CorpusStore,
    Document,
)
from corpus_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentMetadata:
    title: str | None
    date: str  # YYYY-MM-DD or "N/A"


_DESCRIPTION_PROMPT = (
    "Briefly describe the purpose or main topic of the following document "
    "in a single, concise sentence.\n\nDOCUMENT CONTENT:\n{content}"
)

_METADATA_PROMPT = """Identify the title and the publication or issue date \
of the document excerpted below. The excerpt contains the beginning and the \
end of the document.

Reply with exactly two lines and nothing else:
Title: <the document title, or N/A if there is none>
Date: <the date as YYYY-MM-DD, or N/A if there is none>

DOCUMENT BEGINNING:
{head}

DOCUMENT END:
{tail}"""

_TITLE_LINE = re.compile(r"^\s*\**title\**\s*:\s*(.*)$", re.IGNORECASE)
_DATE_LINE = re.compile(r"^\s*\**date\**\s*:\s*(.*)$", re.IGNORECASE)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class DocumentEnricher:
    """
    Computes description, title and date for documents.

    Args:
        llm: A resilient provider (see services/resilience.py).
    """

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def describe(self, document: Document) -> str:
        """One-sentence description of the document. Raises on failure."""
        truncated = document.content[: settings.description_max_chars]
        response = await self._llm.complete(
            messages=[{
                "role": "user",
                "content": _DESCRIPTION_PROMPT.format(content=truncated),
            }],
            temperature=0.1,
            max_tokens=100,
            thinking_budget=50,
        )
        return response.content.strip()

    async def extract_metadata(self, document: Document) -> DocumentMetadata:
        """Title and date from the document's first and last pages."""
        edge = settings.metadata_edge_chars
        content = document.content
        head = content[:edge]
        # Short documents fit entirely in the head window
        tail = content[-edge:] if len(content) > edge else ""

        response = await self._llm.complete(
            messages=[{
                "role": "user",
                "content": _METADATA_PROMPT.format(head=head, tail=tail),
            }],
            temperature=0.0,
            max_tokens=120,
            thinking_budget=50,
        )
        return parse_metadata(response.content)

    async def enrich(self, store: CorpusStore, document_id: str) -> None:
        """
        Enrich one document in `store` and patch the results in.

        Never raises: a failed description becomes the failure sentinel,
        failed metadata leaves the title unset with an unknown date.
        """
        document = store.snapshot.get(document_id)
        if document is None:
            logger.info("Document %s removed before enrichment", document_id)
            return

        description, metadata = await asyncio.gather(
            self.describe(document),
            self.extract_metadata(document),
            return_exceptions=True,
        )

        if isinstance(description, BaseException):
            _log_failure("description", document, description)
            description = DESCRIPTION_FAILED
        elif not description:
            description = DESCRIPTION_FAILED

        if isinstance(metadata, BaseException):
            _log_failure("metadata", document, metadata)
            metadata = DocumentMetadata(title=None, date=DATE_UNKNOWN)

        if store.patch(
            document_id,
            description=description,
            title=metadata.title,
            date=metadata.date,
        ):
            logger.info(
                "Enriched %s: title=%r, date=%s",
                document.name, metadata.title, metadata.date,
            )

    async def enrich_many(
        self,
        store: CorpusStore,
        document_ids: Iterable[str],
    ) -> None:
        """One independent enrichment task per document, unordered."""
        ids = list(document_ids)
        logger.info("Enriching %d document(s)", len(ids))
        await asyncio.gather(*(self.enrich(store, doc_id) for doc_id in ids))


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def parse_metadata(text: str) -> DocumentMetadata:
    """
    Parse the two-line "Title: ... / Date: ..." reply.

    Missing lines, "N/A" and dates that are not valid YYYY-MM-DD values
    all degrade to an unset title or the unknown date.
    """
    title: str | None = None
    doc_date = DATE_UNKNOWN

    for line in text.splitlines():
        if match := _TITLE_LINE.match(line):
            value = match.group(1).strip(' "*')
            if value and value.upper() != DATE_UNKNOWN:
                title = value
        elif match := _DATE_LINE.match(line):
            found = _ISO_DATE.search(match.group(1))
            if found and _is_valid_date(found.group(0)):
                doc_date = found.group(0)

    return DocumentMetadata(title=title, date=doc_date)


def _is_valid_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _log_failure(what: str, document: Document, exc: BaseException) -> None:
    if isinstance(exc, ServiceUnavailable):
        logger.warning("Enrichment %s unavailable for %s: %s", what, document.name, exc)
    else:
        logger.warning(
            "Enrichment %s failed for %s: %s", what, document.name, exc,
            exc_info=exc,
        )
