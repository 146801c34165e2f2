# =============================================================================
# Unit Tests — Ingestion Task
# =============================================================================
#
# Runs ingest_document eagerly (called directly, not via a broker) with
# extraction, embedding, storage and status updates patched out. The real
# chunker runs, so table chunks flow through to the stored metadata.
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from banking_rag.db.models import DocumentStatus
from banking_rag.services.chunker import InvalidInputError
from banking_rag.services.extractor import ExtractedDocument
from banking_rag.workers import tasks

RATE_SHEET = (
    "Current pricing for residential mortgages.\n\n"
    "Table 2.1\n| Rate | Term |\n|------|------|\n| 6.5% | 30yr |\n\n"
    "Rates are subject to change without notice."
)


@pytest.fixture
def pipeline():
    """Patch every external step of the pipeline; yields the mocks."""
    store = MagicMock()
    store.delete_document_chunks.return_value = 0
    mocks = {
        "status": MagicMock(),
        "store": store,
        "embed": MagicMock(side_effect=lambda texts, batch_size: [[0.1] * 3 for _ in texts]),
        "extract": MagicMock(return_value=ExtractedDocument(
            text=RATE_SHEET, filename="rates.pdf", page_count=2,
        )),
    }
    with patch.object(tasks, "_update_document_status", mocks["status"]), \
            patch.object(tasks, "_get_document_title", return_value="Q3 Rate Sheet"), \
            patch.object(tasks, "extract_text", mocks["extract"]), \
            patch.object(tasks, "count_tokens", side_effect=lambda text: len(text.split())), \
            patch.object(tasks, "embed_batch", mocks["embed"]), \
            patch.object(tasks, "get_vector_store", return_value=store):
        yield mocks


class TestIngestDocument:
    def test_successful_ingestion(self, pipeline):
        summary = tasks.ingest_document(
            document_id=5, file_path="/tmp/rates.pdf", document_type="rate_sheet",
        )

        assert summary["document_id"] == 5
        assert summary["chunk_count"] == 3
        assert summary["table_count"] == 1
        assert summary["page_count"] == 2

        statuses = [c.args[1] for c in pipeline["status"].call_args_list]
        assert statuses == [DocumentStatus.PROCESSING, DocumentStatus.COMPLETED]
        assert pipeline["status"].call_args.kwargs["page_count"] == 2

        stored = pipeline["store"].add_chunks.call_args.kwargs
        assert stored["document_id"] == 5
        assert len(stored["embeddings"]) == 3
        table_meta = stored["metadatas"][1]
        assert table_meta["type"] == "table"
        assert table_meta["header"] == "Table 2.1"
        assert table_meta["chunk_index"] == 1
        assert table_meta["document_title"] == "Q3 Rate Sheet"
        assert table_meta["document_type"] == "rate_sheet"
        assert table_meta["token_count"] > 0
        pipeline["store"].delete_document_chunks.assert_called_once_with(5)

    def test_plain_document_type_has_no_tables(self, pipeline):
        summary = tasks.ingest_document(
            document_id=6, file_path="/tmp/memo.txt", document_type="memo",
        )
        assert summary["table_count"] == 0

    def test_chunk_overrides_are_used(self, pipeline):
        summary = tasks.ingest_document(
            document_id=7, file_path="/tmp/rates.pdf", document_type="rate_sheet",
            chunk_size=500, chunk_overlap=0,
        )
        assert summary["chunk_size"] == 500
        assert summary["chunk_overlap"] == 0

    def test_failure_marks_document_failed(self, pipeline):
        pipeline["extract"].side_effect = RuntimeError("Docling failed")

        with pytest.raises(RuntimeError, match="Docling failed"):
            tasks.ingest_document(
                document_id=8, file_path="/tmp/bad.pdf", document_type="rate_sheet",
            )

        last = pipeline["status"].call_args
        assert last.args[1] == DocumentStatus.FAILED
        assert last.kwargs["error_message"] == "Docling failed"
        pipeline["store"].add_chunks.assert_not_called()

    def test_invalid_chunk_config_fails_without_retry(self, pipeline):
        with patch.object(tasks.settings, "chunk_overlap", 200), \
                patch.object(tasks.ingest_document, "retry") as retry:
            with pytest.raises(InvalidInputError):
                tasks.ingest_document(
                    document_id=10, file_path="/tmp/rates.pdf",
                    document_type="rate_sheet", chunk_size=150,
                )

        retry.assert_not_called()
        last = pipeline["status"].call_args
        assert last.args[1] == DocumentStatus.FAILED
        pipeline["embed"].assert_not_called()
        pipeline["store"].add_chunks.assert_not_called()

    def test_empty_document_fails(self, pipeline):
        pipeline["extract"].return_value = ExtractedDocument(text="", filename="e.txt")

        with pytest.raises(ValueError, match="No chunks"):
            tasks.ingest_document(
                document_id=9, file_path="/tmp/e.txt", document_type="rate_sheet",
            )
