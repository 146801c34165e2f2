# =============================================================================
# Table-Aware Text Chunker
# =============================================================================
#
# Splits extracted document text into retrieval chunks. Tables are kept
# whole (one chunk each, wrapped in [TABLE: ...] / [END TABLE] markers with
# surrounding prose for context); everything else goes through a generic
# recursive splitter.
#
# DESIGN DECISION: Composition over inheritance.
# split_plain() is a standalone function over LangChain's
# RecursiveCharacterTextSplitter. The table-aware chunker calls it for the
# prose between table regions instead of subclassing a splitter, so each
# half can be tested on its own.
#
# DESIGN DECISION: Character-based sizes (not tokens).
# Chunk sizes here are character counts (default 1000 / 200 overlap), which
# keeps chunking a pure text transform with no tokenizer download. Token
# counts are computed later by the ingestion task for storage and limits.
#
# ALGORITHM (chunk_text):
# 1. Detect table regions (see table_detection.py)
# 2. No regions → split the whole text with split_plain (fast path)
# 3. Otherwise walk the text left to right:
#    - prose before a region → split_plain
#    - the region itself → exactly one table chunk
#    - prose after the last region → split_plain
# 4. Number chunks by emission order (chunk_index)
#
# Pipeline position: Step 2 of ingestion (extract → chunk → embed → store).
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from functools import lru_cache

from langchain_text_splitters import RecursiveCharacterTextSplitter

from banking_rag.services.table_detection import (
    DEFAULT_MAX_GAP,
    DEFAULT_RULES,
    DetectionRule,
    TableRegion,
    find_table_regions,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_CONTEXT_CHARS = 200

# Paragraph → line → word → character
PLAIN_SEPARATORS = ["\n\n", "\n", " ", ""]

# Document types whose text is routed through table-aware chunking.
# Anything else (memos, emails, general text) is split as plain prose.
BANKING_DOCUMENT_TYPES = frozenset({
    "loan_handbook",
    "regulatory_manual",
    "policy_document",
    "rate_sheet",
    "compliance_matrix",
})


class InvalidInputError(ValueError):
    """Raised when the chunker receives non-text input or a bad chunk config."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ChunkResult:
    """
    A single chunk ready for embedding and storage.

    metadata keys:
        type: "table" or "text"
        header: comma-joined table markers (table chunks only)
        table_content: the raw table text, no context (table chunks only)
    """

    content: str
    chunk_index: int = 0
    metadata: dict = field(default_factory=dict)

    @property
    def chunk_type(self) -> str:
        return self.metadata.get("type", "text")

    @property
    def is_table(self) -> bool:
        return self.chunk_type == "table"


# ---------------------------------------------------------------------------
# Generic Splitter
# ---------------------------------------------------------------------------


@lru_cache(maxsize=16)
def _get_splitter(chunk_size: int, chunk_overlap: int) -> RecursiveCharacterTextSplitter:
    """Cache one splitter per (size, overlap) pair."""
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separators=PLAIN_SEPARATORS,
    )


def split_plain(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[ChunkResult]:
    """
    Split prose recursively on paragraph, line, word and character boundaries.

    Whitespace-only input yields no chunks. Chunk indices are local to this
    call; chunk_text() renumbers them.
    """
    _validate(text, chunk_size, chunk_overlap)
    pieces = _get_splitter(chunk_size, chunk_overlap).split_text(text)
    return [
        ChunkResult(content=piece, chunk_index=i, metadata={"type": "text"})
        for i, piece in enumerate(pieces)
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    rules: Sequence[DetectionRule] = DEFAULT_RULES,
    max_gap: int = DEFAULT_MAX_GAP,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
) -> list[ChunkResult]:
    """
    Split text into chunks, keeping every detected table in a single chunk.

    Args:
        text: Full extracted text of one document.
        chunk_size: Target characters per prose chunk.
        chunk_overlap: Characters shared by adjacent prose chunks.
        rules: Table detection rules (defaults cover captions, pipe rows
            and separator rows).
        max_gap: Regions closer than this many characters are merged.
        context_chars: Prose kept on each side of a table chunk.

    Returns:
        Chunks in source order, chunk_index matching list position.

    Raises:
        InvalidInputError: If text is not a string or the size/overlap
            pair is unusable.
    """
    _validate(text, chunk_size, chunk_overlap)
    if not text:
        return []

    regions = find_table_regions(text, rules=rules, max_gap=max_gap)
    if not regions:
        return split_plain(text, chunk_size, chunk_overlap)

    chunks: list[ChunkResult] = []
    cursor = 0
    for region in regions:
        if region.start > cursor:
            chunks.extend(
                split_plain(text[cursor:region.start], chunk_size, chunk_overlap)
            )
        chunks.append(_table_chunk(text, region, context_chars))
        cursor = region.end

    if cursor < len(text):
        chunks.extend(split_plain(text[cursor:], chunk_size, chunk_overlap))

    logger.info(
        "Chunked %d chars into %d chunks (%d tables)",
        len(text), len(chunks), len(regions),
    )
    return [replace(chunk, chunk_index=i) for i, chunk in enumerate(chunks)]


def chunk_document(
    text: str,
    document_type: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_gap: int = DEFAULT_MAX_GAP,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
) -> list[ChunkResult]:
    """
    Chunk a document according to its type.

    Banking document types (rate sheets, loan handbooks, ...) go through
    table-aware chunking; all other types are split as plain prose.
    """
    if document_type in BANKING_DOCUMENT_TYPES:
        return chunk_text(
            text,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            max_gap=max_gap,
            context_chars=context_chars,
        )

    logger.info("Document type '%s' uses plain chunking", document_type)
    return split_plain(text, chunk_size, chunk_overlap)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _table_chunk(text: str, region: TableRegion, context_chars: int) -> ChunkResult:
    """
    Build the single chunk for a table region.

    Layout:
        <up to context_chars of prose before>

        [TABLE: <header>]
        <raw table text>
        [END TABLE]

        <up to context_chars of prose after>
    """
    table_text = text[region.start:region.end]
    before = text[max(0, region.start - context_chars):region.start].strip()
    after = text[region.end:region.end + context_chars].strip()

    parts = [f"[TABLE: {region.header}]\n{table_text}\n[END TABLE]"]
    if before:
        parts.insert(0, before)
    if after:
        parts.append(after)

    return ChunkResult(
        content="\n\n".join(parts),
        metadata={
            "type": "table",
            "header": region.header,
            "table_content": table_text,
        },
    )


def _validate(text: object, chunk_size: int, chunk_overlap: int) -> None:
    if not isinstance(text, str):
        raise InvalidInputError(
            f"Expected document text as str, got {type(text).__name__}"
        )
    if chunk_size <= 0:
        raise InvalidInputError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise InvalidInputError(
            f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} "
            f"for chunk_size={chunk_size}"
        )
