# =============================================================================
# Vector Store Abstraction — Pluggable Backend Protocol
# =============================================================================
#
# Common interface for storing chunk embeddings and running similarity
# search, with implementations for pgvector (PostgreSQL) and ChromaDB.
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Any class with the right methods can be used; tests substitute simple
# fakes without inheriting from anything.
#
# DESIGN DECISION: Mixed sync/async interface.
# - add_chunks() is sync → called by Celery workers during ingestion
# - search() is async → called by the RAG graph inside FastAPI handlers
#
# DESIGN DECISION: Similarity threshold applied in the store.
# search() accepts min_similarity and drops weaker matches, so callers get
# "nothing relevant" as an empty list instead of filtering themselves.
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── PgVectorStore     — PostgreSQL + pgvector extension
#   └── ChromaVectorStore — ChromaDB (in-process or client/server)
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from sqlalchemy import delete, select

from banking_rag.config import settings
from banking_rag.db.engine import async_session_factory, get_sync_session
from banking_rag.db.models import Chunk

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorSearchResult:
    """
    A single result from vector similarity search.

    metadata carries the chunk metadata written at ingestion, including
    document_title, document_type and, for table chunks, header.
    """

    chunk_id: int
    document_id: int | None
    content: str
    similarity_score: float  # cosine similarity, higher = more relevant
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Protocol defining the vector store interface."""

    def add_chunks(
        self,
        document_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> list[int]:
        """
        Store chunks with their embeddings. Sync (for Celery).

        Each metadata dict must carry chunk_index; chunk_type and
        token_count are read when present.

        Returns:
            List of created chunk IDs.
        """
        ...

    def delete_document_chunks(self, document_id: int) -> int:
        """Remove every stored chunk of a document. Sync (for Celery)."""
        ...

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        document_id: int | None = None,
        min_similarity: float | None = None,
    ) -> list[VectorSearchResult]:
        """
        Find the chunks most similar to the query. Async (for FastAPI).

        Returns:
            Results sorted by similarity (highest first), none below
            min_similarity.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed vector store.

    Sync engine for add_chunks (Celery), async engine for search (FastAPI).
    """

    def add_chunks(
        self,
        document_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> list[int]:
        """Store chunks in PostgreSQL with pgvector embeddings."""
        with get_sync_session() as session:
            chunks = [
                Chunk(
                    document_id=document_id,
                    content=content,
                    chunk_index=meta.get("chunk_index", i),
                    chunk_type=meta.get("type", "text"),
                    token_count=meta.get("token_count", 0),
                    embedding=embedding,
                    metadata_=meta,
                )
                for i, (content, embedding, meta) in enumerate(
                    zip(contents, embeddings, metadatas, strict=True)
                )
            ]
            session.add_all(chunks)

            # Flush assigns IDs; get_sync_session commits on exit
            session.flush()
            chunk_ids = [c.id for c in chunks]

        logger.info(
            "Stored %d chunks for document_id=%d in pgvector",
            len(chunk_ids), document_id,
        )
        return chunk_ids

    def delete_document_chunks(self, document_id: int) -> int:
        with get_sync_session() as session:
            result = session.execute(
                delete(Chunk).where(Chunk.document_id == document_id)
            )
        return result.rowcount or 0

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        document_id: int | None = None,
        min_similarity: float | None = None,
    ) -> list[VectorSearchResult]:
        """
        Cosine similarity search using pgvector.

        cosine_distance() is in [0, 2]; similarity = 1 - distance, so the
        threshold becomes a distance bound: distance <= 1 - min_similarity.
        """
        distance = Chunk.embedding.cosine_distance(query_embedding)

        stmt = (
            select(Chunk, distance.label("distance"))
            .where(Chunk.embedding.is_not(None))
            .order_by(distance)
            .limit(top_k)
        )
        if document_id is not None:
            stmt = stmt.where(Chunk.document_id == document_id)
        if min_similarity is not None:
            stmt = stmt.where(distance <= 1.0 - min_similarity)

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug(
            "Vector search returned %d rows (top_k=%d, doc_id=%s, min_sim=%s)",
            len(rows), top_k, document_id, min_similarity,
        )

        return [
            VectorSearchResult(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                content=chunk.content,
                similarity_score=round(1.0 - dist, 4),
                metadata=chunk.metadata_ or {},
            )
            for chunk, dist in rows
        ]


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    Single collection named 'banking_doc_chunks'; per-document filtering
    uses a metadata where clause.
    """

    def __init__(self, collection_name: str = "banking_doc_chunks") -> None:
        if settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.Client()

        # Cosine distance to match pgvector behaviour
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_chunks(
        self,
        document_id: int,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict],
    ) -> list[int]:
        """Store chunks in ChromaDB with document_id in metadata for filtering."""
        ids = [
            f"doc{document_id}_chunk{meta.get('chunk_index', i)}"
            for i, meta in enumerate(metadatas)
        ]
        sanitised_metadatas = [
            _sanitise_chroma_metadata({**meta, "document_id": document_id})
            for meta in metadatas
        ]

        self._collection.add(
            ids=ids,
            documents=contents,
            embeddings=embeddings,
            metadatas=sanitised_metadatas,
        )

        logger.info(
            "Stored %d chunks for document_id=%d in ChromaDB",
            len(ids), document_id,
        )
        # ChromaDB has string IDs; return positional indices
        return list(range(len(ids)))

    def delete_document_chunks(self, document_id: int) -> int:
        existing = self._collection.get(where={"document_id": document_id})
        if existing["ids"]:
            self._collection.delete(ids=existing["ids"])
        return len(existing["ids"])

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        document_id: int | None = None,
        min_similarity: float | None = None,
    ) -> list[VectorSearchResult]:
        """
        Similarity search in ChromaDB.

        The Chroma client is synchronous, so the query runs in a worker
        thread to keep the event loop free.
        """

        def _sync_search() -> list[VectorSearchResult]:
            where_filter = (
                {"document_id": document_id} if document_id is not None else None
            )
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=top_k,
                where=where_filter,
                include=["documents", "metadatas", "distances"],
            )

            search_results: list[VectorSearchResult] = []
            if not (results and results["ids"] and results["ids"][0]):
                return search_results

            for i, chroma_id in enumerate(results["ids"][0]):
                distance = results["distances"][0][i] if results["distances"] else 0.0
                similarity = round(1.0 - distance, 4)
                if min_similarity is not None and similarity < min_similarity:
                    continue

                metadata = results["metadatas"][0][i] if results["metadatas"] else {}
                content = results["documents"][0][i] if results["documents"] else ""
                search_results.append(VectorSearchResult(
                    chunk_id=hash(chroma_id) % (10**9),
                    document_id=metadata.get("document_id"),
                    content=content,
                    similarity_score=similarity,
                    metadata=dict(metadata),
                ))
            return search_results

        return await asyncio.to_thread(_sync_search)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_vector_store(
    override_type: str | None = None,
) -> PgVectorStore | ChromaVectorStore:
    """
    Return the configured vector store backend.

    Reads `vectorstore_type` from settings:
    - "pgvector" → PgVectorStore (default)
    - "chroma" → ChromaVectorStore
    """
    store_type = override_type or settings.vectorstore_type

    if store_type == "chroma":
        logger.info("Using ChromaDB vector store")
        return ChromaVectorStore()

    logger.info("Using pgvector vector store")
    return PgVectorStore()


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Make metadata acceptable to ChromaDB (str, int, float or bool values).

    - None → empty string
    - list → comma-separated string
    - anything else non-scalar → str()
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
