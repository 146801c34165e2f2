# =============================================================================
# Chunking Preview API
# =============================================================================
#
# POST /chunk/preview runs the same chunk_document() the ingestion worker
# uses, on text posted in the request, and returns the chunks without
# embedding or storing anything. Useful for checking how a rate sheet's
# tables will be detected before uploading it.
# =============================================================================

import logging

from fastapi import APIRouter, HTTPException

from banking_rag.config import settings
from banking_rag.models.requests import ChunkPreviewRequest
from banking_rag.models.responses import ChunkPreview, ChunkPreviewResponse
from banking_rag.services.chunker import (
    BANKING_DOCUMENT_TYPES,
    InvalidInputError,
    chunk_document,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chunking"])


@router.post(
    "/chunk/preview",
    response_model=ChunkPreviewResponse,
    summary="Preview how a document's text will be chunked",
)
async def preview_chunks(request: ChunkPreviewRequest) -> ChunkPreviewResponse:
    try:
        chunks = chunk_document(
            request.text,
            document_type=request.document_type,
            chunk_size=request.chunk_size,
            chunk_overlap=request.chunk_overlap,
            max_gap=settings.table_merge_gap,
            context_chars=settings.table_context_chars,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    previews = [
        ChunkPreview(
            chunk_index=chunk.chunk_index,
            type=chunk.chunk_type,
            content=chunk.content,
            header=chunk.metadata.get("header"),
            char_count=len(chunk.content),
        )
        for chunk in chunks
    ]
    table_count = sum(1 for chunk in chunks if chunk.is_table)

    logger.info(
        "Chunk preview: type=%s, %d chunks (%d tables)",
        request.document_type, len(chunks), table_count,
    )

    return ChunkPreviewResponse(
        document_type=request.document_type,
        table_aware=request.document_type in BANKING_DOCUMENT_TYPES,
        chunk_count=len(chunks),
        table_count=table_count,
        chunks=previews,
    )
