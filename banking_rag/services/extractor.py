# =============================================================================
# Text Extraction — Docling Document Conversion
# =============================================================================
#
# Turns an uploaded file (PDF, DOCX or plain text) into the single string of
# raw text that the chunker consumes.
#
# DESIGN DECISION: Docling for PDF and DOCX.
# Docling reconstructs table structure (multi-row headers, spanning cells)
# instead of emitting cell text in reading order. Exporting to markdown
# renders those tables as pipe-delimited rows, which is exactly the signal
# the table-aware chunker detects.
#
# DESIGN DECISION: Plain-text files bypass Docling.
# A .txt upload is already the text we need; decoding it directly avoids
# loading layout models for nothing.
#
# DESIGN DECISION: Our own ExtractedDocument dataclass rather than passing
# Docling types downstream. If we switch extraction libraries, only this
# module changes.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions
from docling.document_converter import DocumentConverter, PdfFormatOption

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".pdf", ".docx", ".txt"})


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ExtractedDocument:
    """Raw text of one document plus the details the pipeline records."""

    text: str
    filename: str
    page_count: int = 0


# ---------------------------------------------------------------------------
# Docling Converter — Lazy Singleton
# ---------------------------------------------------------------------------
# Initialization loads layout and table models (~2-5 seconds on first use).
# One converter is reused for every document a worker processes.
# ---------------------------------------------------------------------------

_converter: DocumentConverter | None = None


def _get_converter() -> DocumentConverter:
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )

        # Rate sheets and fee schedules are table-heavy; scanned policy
        # manuals need OCR.
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        pipeline_options.do_ocr = True

        _converter = DocumentConverter(
            allowed_formats=[InputFormat.PDF, InputFormat.DOCX],
            format_options={
                InputFormat.PDF: PdfFormatOption(
                    pipeline_options=pipeline_options,
                ),
            },
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_text(file_path: str) -> ExtractedDocument:
    """
    Extract raw text from a PDF, DOCX or TXT file.

    Args:
        file_path: Path to the uploaded file on disk.

    Returns:
        ExtractedDocument with the full text. Tables from PDF/DOCX sources
        appear as markdown pipe tables.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file extension is not supported.
        RuntimeError: If Docling fails to convert the document.

    Pipeline position: Step 1 of ingestion (extract → chunk → embed → store).
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    extension = path.suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file type: '{extension or path.name}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )

    if extension == ".txt":
        text = path.read_bytes().decode("utf-8", errors="replace")
        logger.info("Read text file '%s': %d chars", path.name, len(text))
        return ExtractedDocument(text=text, filename=path.name)

    logger.info("Converting %s with Docling: %s", extension, path.name)
    converter = _get_converter()

    try:
        result = converter.convert(str(path))
    except Exception as exc:
        raise RuntimeError(
            f"Docling failed to convert '{path.name}': {exc}"
        ) from exc

    text = result.document.export_to_markdown()
    page_count = len(result.document.pages)

    logger.info(
        "Extracted '%s': %d chars, %d pages",
        path.name, len(text), page_count,
    )
    return ExtractedDocument(text=text, filename=path.name, page_count=page_count)
