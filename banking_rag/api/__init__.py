# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - ingest.py: Document upload, ingestion status, document listing
#   - ask.py: Banking question answering (general, compliance, loan calc)
#   - chunking.py: Chunk preview for inspecting table detection
# =============================================================================
