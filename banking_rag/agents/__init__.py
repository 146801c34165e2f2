# =============================================================================
# Agents Package — LangGraph Banking RAG Graph
# =============================================================================
#   - orchestrator.py: LangGraph graph; prepares the retrieval question per
#     query type, retrieves, generates, then post-processes compliance and
#     loan-calculation answers
#   - analyst.py: Prompt assembly, answer generation, sources, confidence
#   - specialists.py: Compliance finding extraction and loan arithmetic
#
# Query types: general, compliance, loan_calculation
# =============================================================================
