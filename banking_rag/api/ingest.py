# =============================================================================
# Ingestion API — Document Upload, Status Tracking and Listing
# =============================================================================
#
# ENDPOINTS:
#   POST /ingest             — Upload a banking document, dispatch Celery task
#   GET  /ingest/{task_id}   — Poll ingestion status
#   GET  /documents          — Paginated document listing
#   GET  /documents/{id}     — One document's metadata
#
# DESIGN DECISION: Async processing via Celery.
# Extraction (Docling layout + table models), chunking and embedding take
# seconds to minutes for a long policy manual. The request returns 202
# with a task_id and the client polls.
#
# DESIGN DECISION: document_type is required on upload.
# It decides whether the worker applies table-aware chunking (rate sheets,
# handbooks, manuals, ...) or plain recursive splitting.
# =============================================================================

import logging
import math
from datetime import date
from pathlib import Path

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from banking_rag.config import settings
from banking_rag.db.engine import get_async_session
from banking_rag.db.models import Document, DocumentStatus
from banking_rag.models.responses import (
    DocumentListResponse,
    DocumentResponse,
    IngestResponse,
    IngestStatusResponse,
    Pagination,
)
from banking_rag.services.extractor import SUPPORTED_EXTENSIONS
from banking_rag.workers.tasks import ingest_document

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])


# ---------------------------------------------------------------------------
# POST /ingest — Upload a banking document
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=202,
    summary="Upload a banking document for processing",
    description=(
        "Upload a PDF, DOCX or TXT file to be extracted, chunked (tables kept "
        "whole for banking document types), embedded and stored. Returns a "
        "task_id for polling."
    ),
)
async def ingest_document_endpoint(
    file: UploadFile = File(..., description="PDF, DOCX or TXT file"),
    document_type: str = Form(
        ...,
        min_length=1,
        max_length=100,
        description=(
            "Document type, e.g. rate_sheet, loan_handbook, regulatory_manual, "
            "policy_document, compliance_matrix"
        ),
    ),
    title: str | None = Form(default=None, max_length=500),
    version: str = Form(default="1.0", max_length=20),
    effective_date: date | None = Form(
        default=None, description="ISO date; defaults to today",
    ),
    chunk_size: int | None = Query(default=None, ge=100, le=8000),
    chunk_overlap: int | None = Query(default=None, ge=0, le=2000),
    session: AsyncSession = Depends(get_async_session),
) -> IngestResponse:
    """Save the upload, create a PENDING Document and dispatch ingestion."""
    # --- Validate file type ---
    extension = Path(file.filename or "").suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=(
                "Invalid file type. Supported: "
                f"{', '.join(sorted(SUPPORTED_EXTENSIONS))}"
            ),
        )

    # --- Read and validate size ---
    file_content = await file.read()
    file_size = len(file_content)

    if file_size == 0:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if file_size > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=(
                f"File too large ({file_size} bytes). Maximum size is "
                f"{settings.max_upload_bytes // (1024 * 1024)}MB."
            ),
        )

    # A single override is checked against the configured value of the other
    resolved_size = settings.chunk_size if chunk_size is None else chunk_size
    resolved_overlap = settings.chunk_overlap if chunk_overlap is None else chunk_overlap
    if resolved_overlap >= resolved_size:
        raise HTTPException(
            status_code=400,
            detail=(
                f"chunk_overlap ({resolved_overlap}) must be smaller than "
                f"chunk_size ({resolved_size})."
            ),
        )

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    # --- Create Document record ---
    doc = Document(
        title=title or file.filename,
        filename=file.filename,
        document_type=document_type,
        version=version,
        effective_date=effective_date or date.today(),
        file_size=file_size,
        status=DocumentStatus.PENDING,
        metadata_={"content_type": file.content_type, "extension": extension},
    )
    session.add(doc)
    await session.flush()  # assigns doc.id
    document_id = doc.id

    # Prefix with the document ID so identical filenames never collide
    file_path = upload_dir / f"{document_id}_{Path(file.filename).name}"
    file_path.write_bytes(file_content)

    logger.info(
        "Saved upload: %s (%d bytes, type=%s) → %s",
        file.filename, file_size, document_type, file_path,
    )

    # The worker reads the row on its own connection, so it must be
    # committed before the task can start.
    await session.commit()

    # --- Dispatch Celery task ---
    task = ingest_document.delay(
        document_id=document_id,
        file_path=str(file_path),
        document_type=document_type,
        chunk_size=resolved_size,
        chunk_overlap=resolved_overlap,
    )
    doc.celery_task_id = task.id
    await session.commit()

    logger.info(
        "Dispatched ingestion task: document_id=%d, task_id=%s",
        document_id, task.id,
    )

    return IngestResponse(
        document_id=document_id,
        task_id=task.id,
        message=f"Document '{file.filename}' uploaded. Ingestion in progress.",
    )


# ---------------------------------------------------------------------------
# GET /ingest/{task_id} — Poll ingestion status
# ---------------------------------------------------------------------------


@router.get(
    "/ingest/{task_id}",
    response_model=IngestStatusResponse,
    summary="Check document ingestion status",
)
async def get_ingest_status(
    task_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> IngestStatusResponse:
    """
    Celery task state plus, on success, the document and its chunk counts.

    States: PENDING, STARTED, RETRY, SUCCESS, FAILURE.
    """
    result = AsyncResult(task_id, app=ingest_document.app)
    status = result.status

    response = IngestStatusResponse(task_id=task_id, status=status)

    if status == "SUCCESS":
        task_result = result.result or {}
        response.chunk_count = task_result.get("chunk_count")
        response.table_count = task_result.get("table_count")
        doc_id = task_result.get("document_id")
        if doc_id:
            doc = await session.get(Document, doc_id)
            if doc:
                response.document = DocumentResponse.model_validate(doc)

    elif status == "FAILURE":
        response.error = str(result.result) if result.result else "Unknown error"

    return response


# ---------------------------------------------------------------------------
# GET /documents — Listing
# ---------------------------------------------------------------------------


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List uploaded documents",
)
async def list_documents(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    document_type: str | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),
) -> DocumentListResponse:
    """Newest first, optionally filtered by document type."""
    stmt = select(Document).order_by(Document.created_at.desc())
    count_stmt = select(func.count(Document.id))
    if document_type is not None:
        stmt = stmt.where(Document.document_type == document_type)
        count_stmt = count_stmt.where(Document.document_type == document_type)

    stmt = stmt.offset((page - 1) * limit).limit(limit)
    docs = list((await session.execute(stmt)).scalars().all())
    total = (await session.execute(count_stmt)).scalar() or 0

    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(doc) for doc in docs],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    summary="Get one document's metadata",
)
async def get_document(
    document_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> DocumentResponse:
    doc = await session.get(Document, document_id)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return DocumentResponse.model_validate(doc)
