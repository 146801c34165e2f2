# =============================================================================
# Unit Tests — Vector Store (ChromaDB backend)
# =============================================================================
#
# ChromaDB in-process mode: no external services needed. pgvector is not
# exercised here; it needs a running PostgreSQL instance.
# =============================================================================

import asyncio

from banking_rag.services.vectorstore import (
    ChromaVectorStore,
    PgVectorStore,
    VectorSearchResult,
    _sanitise_chroma_metadata,
    get_vector_store,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestChromaVectorStore:
    """Tests for ChromaVectorStore (in-process mode)."""

    _test_counter = 0

    def _make_store(self) -> ChromaVectorStore:
        """Fresh store with a unique collection per test."""
        TestChromaVectorStore._test_counter += 1
        return ChromaVectorStore(
            collection_name=f"test_banking_{TestChromaVectorStore._test_counter}",
        )

    def _add_rate_chunks(self, store: ChromaVectorStore, document_id: int = 1) -> None:
        store.add_chunks(
            document_id=document_id,
            contents=[
                "[TABLE: Table 2.1]\n| Rate | Term |\n| 3.5% | 30yr |\n[END TABLE]",
                "Escrow accounts are reviewed annually.",
            ],
            embeddings=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
            metadatas=[
                {"chunk_index": 0, "type": "table", "header": "Table 2.1",
                 "document_title": "Rate Sheet Q3", "document_type": "rate_sheet"},
                {"chunk_index": 1, "type": "text",
                 "document_title": "Rate Sheet Q3", "document_type": "rate_sheet"},
            ],
        )

    def test_add_chunks_returns_positional_ids(self):
        store = self._make_store()
        ids = store.add_chunks(
            document_id=1,
            contents=["a", "b"],
            embeddings=[[0.1] * 3, [0.2] * 3],
            metadatas=[{"chunk_index": 0}, {"chunk_index": 1}],
        )
        assert ids == [0, 1]

    def test_search_orders_by_similarity(self):
        store = self._make_store()
        self._add_rate_chunks(store)

        results = _run(store.search(query_embedding=[0.9, 0.1, 0.0], top_k=2))

        assert len(results) == 2
        assert all(isinstance(r, VectorSearchResult) for r in results)
        assert results[0].similarity_score >= results[1].similarity_score
        assert results[0].metadata["header"] == "Table 2.1"
        assert results[0].metadata["document_title"] == "Rate Sheet Q3"
        assert results[0].document_id == 1

    def test_min_similarity_drops_weak_matches(self):
        store = self._make_store()
        self._add_rate_chunks(store)

        results = _run(store.search(
            query_embedding=[1.0, 0.0, 0.0], top_k=5, min_similarity=0.5,
        ))

        assert len(results) == 1
        assert results[0].metadata["type"] == "table"

    def test_search_filters_by_document_id(self):
        store = self._make_store()
        self._add_rate_chunks(store, document_id=1)
        store.add_chunks(
            document_id=2,
            contents=["Doc 2 content"],
            embeddings=[[0.9, 0.1, 0.0]],
            metadatas=[{"chunk_index": 0}],
        )

        results = _run(store.search(
            query_embedding=[1.0, 0.0, 0.0], top_k=10, document_id=2,
        ))

        assert len(results) == 1
        assert results[0].content == "Doc 2 content"

    def test_delete_document_chunks(self):
        store = self._make_store()
        self._add_rate_chunks(store, document_id=7)

        assert store.delete_document_chunks(7) == 2
        assert store.delete_document_chunks(7) == 0
        assert _run(store.search(query_embedding=[1.0, 0.0, 0.0])) == []

    def test_empty_collection_returns_no_results(self):
        store = self._make_store()
        assert _run(store.search(query_embedding=[1.0, 0.0, 0.0])) == []


class TestSanitiseChromaMetadata:
    def test_none_and_lists_are_flattened(self):
        sanitised = _sanitise_chroma_metadata({
            "header": None,
            "regulations": ["TILA", "RESPA"],
            "chunk_index": 3,
            "type": "table",
            "ratio": 0.5,
            "flag": True,
        })
        assert sanitised == {
            "header": "",
            "regulations": "TILA,RESPA",
            "chunk_index": 3,
            "type": "table",
            "ratio": 0.5,
            "flag": True,
        }

    def test_other_values_become_strings(self):
        assert _sanitise_chroma_metadata({"nested": {"a": 1}}) == {"nested": "{'a': 1}"}


class TestGetVectorStore:
    def test_defaults_to_pgvector(self):
        assert isinstance(get_vector_store("pgvector"), PgVectorStore)

    def test_chroma_override(self):
        assert isinstance(get_vector_store("chroma"), ChromaVectorStore)
