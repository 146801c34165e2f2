# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Defines request/response schemas for the API.
# These are SEPARATE from the database models (banking_rag/db/models.py), so
# internal fields such as embedding vectors never reach clients.
# =============================================================================
