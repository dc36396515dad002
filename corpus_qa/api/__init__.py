# =============================================================================
# API Package: FastAPI Route Handlers
# =============================================================================
#   - sessions.py: Session lifecycle and corpus management
#   - ask.py: Question answering, conversation log, corpus summary
#   - deps.py: Dependency providers (registry, LLM, enricher, session)
# =============================================================================
