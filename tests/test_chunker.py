# =============================================================================
# Unit Tests — Table-Aware Chunker
# =============================================================================
#
# Tests chunk_text(), split_plain() and chunk_document() without external
# dependencies. No API keys, databases, or network calls needed.
# =============================================================================

import pytest

from banking_rag.services.chunker import (
    BANKING_DOCUMENT_TYPES,
    ChunkResult,
    InvalidInputError,
    chunk_document,
    chunk_text,
    split_plain,
)

RATE_TABLE = (
    "Table 2.1\n"
    "| Rate | Term |\n"
    "|------|------|\n"
    "| 3.5% | 30yr |"
)

SCENARIO = "Intro paragraph.\n\n" + RATE_TABLE + "\n\nClosing paragraph."


def _big_table(rows: int) -> str:
    lines = ["Schedule C", "| Product | APR | Fee |", "|---|---|---|"]
    lines += [f"| Loan product {i} | {i}.25% | ${i * 10} |" for i in range(rows)]
    return "\n".join(lines)


class TestScenario:
    """The intro / table / closing document from the product brief."""

    def test_produces_text_table_text(self):
        chunks = chunk_text(SCENARIO)
        assert [c.chunk_type for c in chunks] == ["text", "table", "text"]
        assert chunks[0].content == "Intro paragraph."
        assert chunks[2].content == "Closing paragraph."

    def test_table_chunk_layout(self):
        table = chunk_text(SCENARIO)[1]
        assert table.metadata["header"] == "Table 2.1"
        assert table.metadata["table_content"] == RATE_TABLE
        assert table.content == (
            "Intro paragraph.\n\n"
            "[TABLE: Table 2.1]\n" + RATE_TABLE + "\n[END TABLE]\n\n"
            "Closing paragraph."
        )

    def test_chunk_indices_follow_emission_order(self):
        chunks = chunk_text(SCENARIO)
        assert [c.chunk_index for c in chunks] == [0, 1, 2]


class TestTableAtomicity:
    def test_large_table_is_never_split(self):
        table = _big_table(60)
        text = "Fee overview.\n\n" + table + "\n\nEnd of schedule."
        chunks = chunk_text(text, chunk_size=200, chunk_overlap=20)

        tables = [c for c in chunks if c.is_table]
        assert len(tables) == 1
        assert tables[0].metadata["table_content"] == table
        assert len(tables[0].content) > 200
        for c in chunks:
            if not c.is_table:
                assert "| Loan product" not in c.content

    def test_context_is_capped(self):
        prose = "Rates are reviewed quarterly by the pricing committee. " * 20
        text = prose + "\n\n" + RATE_TABLE + "\n\n" + prose
        table = next(c for c in chunk_text(text, context_chars=200) if c.is_table)

        before, rest = table.content.split("[TABLE: Table 2.1]")
        after = rest.split("[END TABLE]")[1]
        assert len(before.strip()) <= 200
        assert len(after.strip()) <= 200

    def test_table_at_document_start_has_no_leading_context(self):
        table = chunk_text(RATE_TABLE + "\n\nFootnote.")[0]
        assert table.is_table
        assert table.content.startswith("[TABLE: Table 2.1]")


class TestOrderPreservation:
    def test_tables_and_prose_keep_source_order(self):
        text = (
            "Section one prose.\n\n"
            "Exhibit 1\n| Fee | Amount |\n| Wire | $25 |\n\n"
            + "Middle prose about escrow accounts. " * 5
            + "\n\nSchedule B\n| Tier | Rate |\n| Gold | 4.1% |\n\n"
            "Final prose."
        )
        chunks = chunk_text(text)
        headers = [c.metadata["header"] for c in chunks if c.is_table]
        assert headers == ["Exhibit 1", "Schedule B"]
        assert chunks[0].content == "Section one prose."
        assert chunks[-1].content == "Final prose."

        positions = [
            text.index(c.metadata["table_content"]) if c.is_table else text.index(c.content)
            for c in chunks
        ]
        assert positions == sorted(positions)


class TestMergeTolerance:
    def test_close_tables_become_one_chunk(self):
        text = "Table 1.1\n| a | b |\n\nSome note here.\n\nSchedule A\n| c | d |"
        tables = [c for c in chunk_text(text) if c.is_table]
        assert len(tables) == 1
        assert tables[0].metadata["header"] == "Table 1.1, Schedule A"

    def test_far_tables_become_two_chunks(self):
        text = (
            "Table 1.1\n| a | b |\n\n"
            + "x" * 51
            + "\n\nSchedule A\n| c | d |"
        )
        tables = [c for c in chunk_text(text) if c.is_table]
        assert [t.metadata["header"] for t in tables] == ["Table 1.1", "Schedule A"]


class TestIdempotentDetection:
    @pytest.mark.parametrize("text", [
        SCENARIO,
        "Table 1.1\n| a | b |\n\nSome note here.\n\nSchedule A\n| c | d |",
        "Preamble.\n\n" + _big_table(5),
    ])
    def test_table_content_rechunks_to_one_table(self, text):
        for chunk in chunk_text(text):
            if not chunk.is_table:
                continue
            again = chunk_text(chunk.metadata["table_content"])
            assert len(again) == 1
            assert again[0].is_table
            assert again[0].metadata["table_content"] == chunk.metadata["table_content"]


class TestPlainFallback:
    def test_no_tables_matches_generic_splitter(self):
        text = "Underwriting guidelines. " * 120 + "\n\nAppraisal rules. " * 40
        assert chunk_text(text, 300, 50) == split_plain(text, 300, 50)

    def test_split_plain_marks_text_chunks(self):
        chunks = split_plain("word " * 300, chunk_size=100, chunk_overlap=10)
        assert len(chunks) > 1
        assert all(c.metadata == {"type": "text"} for c in chunks)
        assert all(len(c.content) <= 100 for c in chunks)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))


class TestInputValidation:
    def test_empty_text_returns_no_chunks(self):
        assert chunk_text("") == []

    @pytest.mark.parametrize("bad", [None, 42, b"bytes", ["list"]])
    def test_non_string_raises(self, bad):
        with pytest.raises(InvalidInputError):
            chunk_text(bad)

    @pytest.mark.parametrize("size, overlap", [(0, 0), (-5, 0), (100, -1), (100, 100)])
    def test_bad_size_overlap_raises(self, size, overlap):
        with pytest.raises(InvalidInputError):
            chunk_text("text", chunk_size=size, chunk_overlap=overlap)

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            split_plain(None)

    def test_irregular_table_is_not_an_error(self):
        text = "Table 9.9\n| a | b | c |\n| 1 |\n|| |\n| x | y |"
        chunks = chunk_text(text)
        assert len(chunks) == 1
        assert chunks[0].is_table


class TestChunkDocument:
    def test_banking_types_are_table_aware(self):
        for document_type in BANKING_DOCUMENT_TYPES:
            chunks = chunk_document(SCENARIO, document_type=document_type)
            assert any(c.is_table for c in chunks), document_type

    def test_other_types_use_plain_splitting(self):
        chunks = chunk_document(SCENARIO, document_type="meeting_notes")
        assert chunks
        assert all(isinstance(c, ChunkResult) and not c.is_table for c in chunks)

    def test_settings_are_forwarded(self):
        text = "Table 1.1\n| a | b |\n\nSome note here.\n\nSchedule A\n| c | d |"
        chunks = chunk_document(text, "rate_sheet", max_gap=5)
        assert len([c for c in chunks if c.is_table]) == 2
