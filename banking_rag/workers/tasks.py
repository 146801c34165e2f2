# =============================================================================
# Celery Task Definitions — Document Ingestion Pipeline
# =============================================================================
#
# INGESTION PIPELINE (ingest_document):
#   1. Mark the document PROCESSING
#   2. Extract raw text (Docling for PDF/DOCX, direct read for TXT)
#   3. Chunk: table-aware for banking document types, recursive otherwise
#   4. Count tokens per chunk, embed in batches
#   5. Store chunks + embeddings; chunk_index is the chunker's emission order
#   6. Mark the document COMPLETED (or FAILED on error)
#
# Celery workers are synchronous: no async/await here, and the sync
# SQLAlchemy engine is used for every database write.
#
# RETRY STRATEGY: max_retries=3, 60 s apart. Transient failures (embedding
# server restarting, DB connection drop) recover; a corrupt file exhausts
# its retries and stays FAILED. Chunks from a failed attempt are removed
# before the next attempt stores its own. An invalid chunk configuration
# (InvalidInputError) marks the document FAILED without retrying.
# =============================================================================

import logging

from sqlalchemy import update

from banking_rag.config import settings
from banking_rag.db.engine import get_sync_session
from banking_rag.db.models import Document, DocumentStatus
from banking_rag.services.chunker import InvalidInputError, chunk_document
from banking_rag.services.embedder import count_tokens, embed_batch
from banking_rag.services.extractor import extract_text
from banking_rag.services.vectorstore import get_vector_store
from banking_rag.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _update_document_status(
    document_id: int,
    status: DocumentStatus,
    error_message: str | None = None,
    page_count: int | None = None,
) -> None:
    """
    Update a document's status in its own committed transaction.

    Called at the start (PROCESSING), on success (COMPLETED) and on
    failure (FAILED).
    """
    values: dict = {"status": status}
    if error_message is not None:
        values["error_message"] = error_message
    if page_count is not None:
        values["page_count"] = page_count

    with get_sync_session() as session:
        session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(**values)
        )


def _get_document_title(document_id: int) -> str:
    with get_sync_session() as session:
        doc = session.get(Document, document_id)
        if doc is None:
            raise ValueError(f"Document {document_id} does not exist")
        return doc.title


# ---------------------------------------------------------------------------
# Ingestion Task
# ---------------------------------------------------------------------------


@celery_app.task(
    bind=True,
    name="ingest_document",
    max_retries=3,
    default_retry_delay=60,
)
def ingest_document(
    self,
    document_id: int,
    file_path: str,
    document_type: str,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> dict:
    """
    Process an uploaded banking document into searchable chunks.

    Args:
        self: Bound Celery task (self.request.id is the task ID).
        document_id: Document row to update.
        file_path: Uploaded file on disk.
        document_type: Routes chunking; banking types keep tables whole.
        chunk_size: Override settings.chunk_size (characters).
        chunk_overlap: Override settings.chunk_overlap (characters).

    Returns:
        Summary dict: document_id, chunk_count, table_count, page_count, ...
    """
    task_id = self.request.id
    _chunk_size = settings.chunk_size if chunk_size is None else chunk_size
    _chunk_overlap = settings.chunk_overlap if chunk_overlap is None else chunk_overlap

    logger.info(
        "Starting ingestion: document_id=%d, file=%s, type=%s, task_id=%s, "
        "chunk_size=%d, chunk_overlap=%d, vectorstore=%s",
        document_id, file_path, document_type, task_id,
        _chunk_size, _chunk_overlap, settings.vectorstore_type,
    )

    try:
        # --- Step 1: Mark as PROCESSING ---
        _update_document_status(document_id, DocumentStatus.PROCESSING)
        title = _get_document_title(document_id)

        # --- Step 2: Extract text ---
        logger.info("[%s] Step 2/5: Extracting text...", task_id)
        extracted = extract_text(file_path)
        logger.info(
            "[%s] Extracted %d chars, %d pages",
            task_id, len(extracted.text), extracted.page_count,
        )

        # --- Step 3: Chunk ---
        logger.info(
            "[%s] Step 3/5: Chunking (type=%s, size=%d, overlap=%d)...",
            task_id, document_type, _chunk_size, _chunk_overlap,
        )
        chunks = chunk_document(
            extracted.text,
            document_type=document_type,
            chunk_size=_chunk_size,
            chunk_overlap=_chunk_overlap,
            max_gap=settings.table_merge_gap,
            context_chars=settings.table_context_chars,
        )
        table_count = sum(1 for c in chunks if c.is_table)
        logger.info(
            "[%s] Created %d chunks (%d tables)", task_id, len(chunks), table_count,
        )

        if not chunks:
            raise ValueError(
                "No chunks produced from document; it may be empty or unreadable"
            )

        # --- Step 4: Token counts + embeddings ---
        token_counts = [count_tokens(c.content) for c in chunks]
        for chunk, tokens in zip(chunks, token_counts):
            if tokens > settings.embedding_max_tokens:
                logger.warning(
                    "[%s] Chunk %d (%s) has %d tokens, above the embedding "
                    "limit of %d; the embedding may be truncated",
                    task_id, chunk.chunk_index, chunk.chunk_type,
                    tokens, settings.embedding_max_tokens,
                )

        logger.info(
            "[%s] Step 4/5: Embedding %d chunks (model=%s)...",
            task_id, len(chunks), settings.embedding_model,
        )
        embeddings = embed_batch(
            [c.content for c in chunks],
            batch_size=settings.embedding_batch_size,
        )

        # --- Step 5: Store ---
        logger.info(
            "[%s] Step 5/5: Storing chunks in %s...",
            task_id, settings.vectorstore_type,
        )
        vector_store = get_vector_store()
        removed = vector_store.delete_document_chunks(document_id)
        if removed:
            logger.info("[%s] Removed %d chunks from a previous attempt", task_id, removed)

        metadatas = [
            {
                **c.metadata,
                "chunk_index": c.chunk_index,
                "token_count": tokens,
                "document_title": title,
                "document_type": document_type,
            }
            for c, tokens in zip(chunks, token_counts)
        ]
        vector_store.add_chunks(
            document_id=document_id,
            contents=[c.content for c in chunks],
            embeddings=embeddings,
            metadatas=metadatas,
        )

        # --- Step 6: Mark as COMPLETED ---
        _update_document_status(
            document_id,
            DocumentStatus.COMPLETED,
            page_count=extracted.page_count,
        )

        summary = {
            "document_id": document_id,
            "status": "completed",
            "chunk_count": len(chunks),
            "table_count": table_count,
            "page_count": extracted.page_count,
            "chunk_size": _chunk_size,
            "chunk_overlap": _chunk_overlap,
            "vectorstore": settings.vectorstore_type,
        }
        logger.info("[%s] Ingestion complete: %s", task_id, summary)
        return summary

    except InvalidInputError as exc:
        # Bad chunk configuration fails the same way on every attempt
        logger.error(
            "[%s] Invalid chunking input for document_id=%d: %s",
            task_id, document_id, exc,
        )
        _update_document_status(
            document_id,
            DocumentStatus.FAILED,
            error_message=str(exc)[:1000],
        )
        raise

    except Exception as exc:
        logger.exception(
            "[%s] Ingestion failed for document_id=%d: %s",
            task_id, document_id, exc,
        )
        _update_document_status(
            document_id,
            DocumentStatus.FAILED,
            error_message=str(exc)[:1000],
        )
        raise self.retry(exc=exc)
