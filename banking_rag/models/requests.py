# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI validates request bodies
# against these models and answers 422 on failure, so handlers never see
# a compliance query without regulations or a loan calculation without
# an amount.
#
# DESIGN DECISION: Cross-field rules live in model validators.
# Which fields are required depends on query_type; expressing that on the
# model keeps the rule next to the fields and in the OpenAPI docs.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from banking_rag.config import settings


class BankingContext(BaseModel):
    """
    Optional context that steers retrieval for general questions.

    Each field is folded into the retrieval query, e.g. user_role
    "loan_officer" turns "What is the rate?" into
    "As a loan_officer, What is the rate?".
    """

    user_role: str | None = Field(
        default=None,
        max_length=100,
        examples=["loan_officer"],
    )
    loan_products: list[str] = Field(default_factory=list, examples=[["FHA", "VA"]])
    regulatory_context: list[str] = Field(
        default_factory=list, examples=[["TILA", "RESPA"]],
    )


class AskRequest(BaseModel):
    """
    Request body for POST /ask.

    query_type selects the flow:
    - general: grounded answer, optionally steered by `context`
    - compliance: `question` is the scenario; `regulations` required
    - loan_calculation: `loan_type`, `loan_amount` and `loan_term` required
    """

    question: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="The question, or the scenario for compliance checks",
        examples=["What is the current rate for a 30-year fixed mortgage?"],
    )
    query_type: Literal["general", "compliance", "loan_calculation"] = "general"

    context: BankingContext | None = None
    document_id: int | None = Field(
        default=None,
        description="Restrict retrieval to one document. Omit to search all.",
    )

    regulations: list[str] | None = Field(
        default=None,
        description="Regulations to check against (compliance queries)",
        examples=[["Regulation Z", "ECOA"]],
    )

    loan_type: str | None = Field(default=None, max_length=100, examples=["FHA"])
    loan_amount: float | None = Field(default=None, gt=0, examples=[250000])
    loan_term: int | None = Field(
        default=None, gt=0, le=600, description="Term in months", examples=[360],
    )

    @model_validator(mode="after")
    def _check_query_type_fields(self) -> "AskRequest":
        if not self.question.strip():
            raise ValueError("Question is required")

        if self.query_type == "compliance" and not self.regulations:
            raise ValueError(
                "Regulations must be specified for compliance queries"
            )

        if self.query_type == "loan_calculation" and not (
            self.loan_type and self.loan_amount and self.loan_term
        ):
            raise ValueError(
                "Loan amount, term, and type are required for loan calculations"
            )
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "question": "What documentation is required for a jumbo loan?",
                    "context": {"user_role": "loan_officer", "loan_products": ["Jumbo"]},
                },
                {
                    "question": "Charging a prepayment penalty on a 5-year ARM",
                    "query_type": "compliance",
                    "regulations": ["Regulation Z"],
                },
                {
                    "question": "Monthly payment for a conventional loan",
                    "query_type": "loan_calculation",
                    "loan_type": "conventional 30-year fixed",
                    "loan_amount": 300000,
                    "loan_term": 360,
                },
            ]
        }
    )


class ChunkPreviewRequest(BaseModel):
    """
    Request body for POST /chunk/preview.

    Runs the chunker on raw text without storing anything, to inspect how
    tables in a document will be detected and kept whole.
    """

    text: str = Field(..., max_length=2_000_000)
    document_type: str = Field(default="rate_sheet", max_length=100)
    chunk_size: int = Field(default_factory=lambda: settings.chunk_size, gt=0)
    chunk_overlap: int = Field(default_factory=lambda: settings.chunk_overlap, ge=0)
