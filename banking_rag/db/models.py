# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌────────────────────┐       ┌──────────────────────────────────┐
# │  documents         │       │  chunks                          │
# ├────────────────────┤       ├──────────────────────────────────┤
# │ id (PK)            │──1:N─▶│ id (PK)                          │
# │ title              │       │ document_id (FK → documents.id)  │
# │ filename           │       │ content (text)                   │
# │ document_type      │       │ chunk_index (int)                │
# │ version            │       │ chunk_type ("text" | "table")    │
# │ effective_date     │       │ token_count (int)                │
# │ file_size          │       │ embedding (vector(768))          │
# │ page_count         │       │ metadata_ (jsonb)                │
# │ status             │       │ created_at                       │
# │ metadata_ (jsonb)  │       └──────────────────────────────────┘
# │ created/updated_at │
# └────────────────────┘       ┌──────────────────────────────────┐
#                              │  query_logs                      │
#                              ├──────────────────────────────────┤
#                              │ question, answer, query_type,    │
#                              │ sources, confidence, model,      │
#                              │ response_time_ms, created_at     │
#                              └──────────────────────────────────┘
#
# chunk_index is the chunker's emission order. Citations and any
# reconstruction of document order rely on it, so it is stored verbatim.
# =============================================================================

import enum
from datetime import date, datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from banking_rag.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class DocumentStatus(str, enum.Enum):
    """
    Tracks the ingestion pipeline state for a document.

    State machine:
        PENDING → PROCESSING → COMPLETED
                             → FAILED
    """

    PENDING = "pending"          # Uploaded, waiting for Celery to pick up
    PROCESSING = "processing"    # Worker is extracting/chunking/embedding
    COMPLETED = "completed"      # All chunks embedded and stored
    FAILED = "failed"            # Something went wrong (see error_message)


class Document(Base):
    """An uploaded banking document (rate sheet, handbook, manual, ...)."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Display title; defaults to the uploaded filename
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)

    # Routes chunking: banking types get table-aware chunking
    document_type: Mapped[str] = mapped_column(String(100), nullable=False)

    version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus),
        nullable=False,
        default=DocumentStatus.PENDING,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    celery_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Upload metadata: file type, uploader, etc.
    metadata_: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Deleting a document deletes its chunks.
    # lazy="raise": listings never need chunks, and loading them implicitly
    # would pull every embedding.
    chunks: Mapped[list["Chunk"]] = relationship(
        "Chunk",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, title='{self.title}', "
            f"type={self.document_type}, status={self.status})>"
        )


class Chunk(Base):
    """
    One retrieval unit of a document, with its embedding.

    Table chunks hold a whole table plus surrounding context; their raw
    table text and header are kept in metadata_ ("table_content", "header").
    """

    __tablename__ = "chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    document_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=True,
    )

    # Named `metadata_` to avoid SQLAlchemy's reserved `.metadata` attribute.
    metadata_: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    document: Mapped["Document"] = relationship("Document", back_populates="chunks")

    def __repr__(self) -> str:
        return (
            f"<Chunk(id={self.id}, doc_id={self.document_id}, "
            f"index={self.chunk_index}, type={self.chunk_type})>"
        )


# HNSW index with cosine ops; matches the similarity used by PgVectorStore.
chunk_embedding_idx = Index(
    "idx_chunk_embedding_hnsw",
    Chunk.embedding,
    postgresql_using="hnsw",
    postgresql_with={"m": 16, "ef_construction": 64},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)

chunk_document_idx = Index(
    "idx_chunk_document_order",
    Chunk.document_id,
    Chunk.chunk_index,
)


class QueryLog(Base):
    """
    One answered question, for analytics and answer review.

    Written by a background task after POST /ask responds.
    """

    __tablename__ = "query_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    query_type: Mapped[str] = mapped_column(String(50), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{document_id, document_title, chunk_content, confidence_score}, ...]
    sources: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    model: Mapped[str | None] = mapped_column(String(200), nullable=True)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<QueryLog(id={self.id}, type={self.query_type})>"
