# =============================================================================
# Banking Document Assistant
# =============================================================================
# A retrieval-augmented Q&A service for banking professionals. Documents
# (loan handbooks, rate sheets, regulatory manuals) are extracted, split
# into retrieval chunks with table-aware chunking, embedded, and stored in
# a vector database. Questions are answered by a LangGraph pipeline that
# retrieves relevant chunks and prompts an LLM.
#
# Package structure:
#   banking_rag/
#   ├── api/          → FastAPI route handlers (ingest, ask, chunk preview)
#   ├── agents/       → LangGraph RAG graph (prepare, retrieve, generate,
#   │                    compliance and loan-calculation post-processing)
#   ├── db/           → Database engine, session, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → Business logic (extraction, table detection,
#   │                    chunking, embedding, vector store, LLM providers)
#   └── workers/      → Celery task definitions and configuration
# =============================================================================
