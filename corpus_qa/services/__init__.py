# =============================================================================
# Services Package: Business Logic
# =============================================================================
#   - llm.py: Multi-provider LLM abstraction (Gemini, Anthropic,
#     OpenAI-compatible) with schema-constrained output
#   - resilience.py: Retry with linear backoff around every LLM call
#   - corpus.py: Versioned immutable corpus snapshots, patch-by-id store
#   - conversation.py: Append-only message log with a status slot
#   - enricher.py: Background description/title/date generation
#   - sessions.py: In-memory session registry
# =============================================================================
