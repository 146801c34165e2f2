# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run locally with:
#   uvicorn banking_rag.main:app --reload
#
# ROUTERS:
#   api/ingest.py    — POST /ingest, GET /ingest/{task_id}, GET /documents
#   api/ask.py       — POST /ask
#   api/chunking.py  — POST /chunk/preview
#
# Logging is configured once here; every module logs through
# logging.getLogger(__name__).
# =============================================================================

import logging

from fastapi import FastAPI

from banking_rag.api.ask import router as ask_router
from banking_rag.api.chunking import router as chunking_router
from banking_rag.api.ingest import router as ingest_router
from banking_rag.config import settings
from banking_rag.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Question answering over loan handbooks, rate sheets and regulatory "
        "manuals, with table-aware chunking so rate and fee tables are "
        "retrieved whole."
    ),
)

app.include_router(ingest_router)
app.include_router(ask_router)
app.include_router(chunking_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
