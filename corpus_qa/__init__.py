# =============================================================================
# Corpus Q&A Assistant
# =============================================================================
# Answers natural-language questions strictly from a user-supplied corpus
# of documents, citing the source documents for every claim, and produces
# a cross-document summary with extracted countries and stakeholders.
#
# Package structure:
#   corpus_qa/
#   ├── api/          → FastAPI route handlers (sessions, documents, ask)
#   ├── agents/       → Pipeline stages (select, extract, synthesize,
#   │                    summarize) and the LangGraph orchestrator
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → LLM providers, retry wrapper, corpus snapshots,
#                        conversation log, enrichment, sessions
# =============================================================================
