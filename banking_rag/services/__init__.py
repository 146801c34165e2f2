# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - extractor.py: PDF/DOCX/TXT text extraction (Docling)
#   - table_detection.py: Table region detection, expansion and merging
#   - chunker.py: Table-aware chunking over a recursive prose splitter
#   - embedder.py: OpenAI-compatible embedding generation + token counting
#   - vectorstore.py: Pluggable vector store protocol (pgvector, Chroma)
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
# =============================================================================
