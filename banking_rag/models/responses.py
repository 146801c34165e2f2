# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API. Separate from the ORM models so
# embeddings and internal columns are never serialised.
# =============================================================================

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    version: str
    service: str


class DocumentResponse(BaseModel):
    """Document metadata, returned after ingestion and in listings."""

    id: int
    title: str
    filename: str
    document_type: str
    version: str | None = None
    effective_date: date | None = None
    file_size: int
    page_count: int | None
    status: str
    error_message: str | None = None
    celery_task_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[DocumentResponse]
    pagination: Pagination


class IngestResponse(BaseModel):
    """
    Response for POST /ingest.

    The document is not searchable yet; poll GET /ingest/{task_id}.
    """

    document_id: int = Field(description="ID of the created document record")
    task_id: str = Field(description="Celery task ID for tracking ingestion")
    status: str = "processing"
    message: str = "Document uploaded. Ingestion in progress."


class IngestStatusResponse(BaseModel):
    """Response for GET /ingest/{task_id}."""

    task_id: str
    status: str = Field(description="Celery state: PENDING, STARTED, RETRY, SUCCESS, FAILURE")
    document: DocumentResponse | None = None
    chunk_count: int | None = None
    table_count: int | None = None
    error: str | None = None


class ChunkPreview(BaseModel):
    chunk_index: int
    type: str
    content: str
    header: str | None = None
    char_count: int


class ChunkPreviewResponse(BaseModel):
    """Response for POST /chunk/preview."""

    document_type: str
    table_aware: bool = Field(description="Whether table-aware chunking was applied")
    chunk_count: int
    table_count: int
    chunks: list[ChunkPreview]


class SourceDocument(BaseModel):
    """
    A citation for an answer.

    chunk_content is a preview (first 200 characters); confidence_score is
    the chunk's cosine similarity to the question.
    """

    document_id: int | None
    document_title: str
    chunk_content: str
    chunk_type: str = "text"
    table_header: str | None = None
    confidence_score: float


class ComplianceResult(BaseModel):
    compliant: bool
    issues: list[str]
    recommendations: list[str]


class LoanCalculationResult(BaseModel):
    rate: float = Field(description="Annual rate (%) quoted in the answer; 0 if none")
    monthly_payment: float
    total_interest: float
    calculations: str


class AskResponse(BaseModel):
    """
    Response for POST /ask.

    `compliance` is set for compliance queries and `loan_calculation` for
    loan calculations; both are null for general questions.
    """

    answer: str
    sources: list[SourceDocument]
    confidence: int = Field(ge=0, le=100, description="Mean source similarity, 0-100")
    query_type: str
    question: str
    model: str
    compliance: ComplianceResult | None = None
    loan_calculation: LoanCalculationResult | None = None
    timestamp: datetime
