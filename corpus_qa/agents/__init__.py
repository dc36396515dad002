# =============================================================================
# Agents Package: Retrieval-Augmented Synthesis Pipeline
# =============================================================================
#   - selector.py: Retrieval - one model call picks the relevant documents
#   - extractor.py: Map - per-document key points, run in parallel
#   - synthesizer.py: Reduce - one answer with inline citations
#   - summarizer.py: Corpus-wide summary with countries and stakeholders
#   - orchestrator.py: LangGraph graph sequencing the stages and the
#     conversation's status turn
# =============================================================================
