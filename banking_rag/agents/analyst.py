# =============================================================================
# Banking Analyst — Grounded Answer Generation
# =============================================================================
#
# Turns retrieved chunks into an answer for a banking professional, plus
# the citation list and a confidence score derived from retrieval
# similarity.
#
# DESIGN DECISION: One system prompt for every query type.
# Compliance and loan questions differ in how the question is phrased
# (see specialists.py), not in the grounding rules the model must follow.
#
# DESIGN DECISION: Context documents are labelled with their document type.
# A rate sheet and a policy document can state different numbers for the
# same product; the label lets the model say which one it is quoting.
# Table chunks arrive with their [TABLE: ...] / [END TABLE] markers intact.
#
# DESIGN DECISION: Confidence is retrieval-based, not model-reported.
# Mean cosine similarity of the retrieved chunks, as an integer 0-100.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from banking_rag.services.llm import LLMProvider
from banking_rag.services.vectorstore import VectorSearchResult

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "I couldn't find relevant information in the banking knowledge base. "
    "Could you please rephrase your question or be more specific?"
)

DEFAULT_USER_ROLE = "banking professional"
SOURCE_PREVIEW_CHARS = 200


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """Generated answer plus usage metrics."""

    answer: str
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a knowledgeable banking assistant specializing in loan products, "
    "regulatory compliance, and internal policies. Your role is to provide "
    "accurate, helpful information based on the provided context documents.\n\n"
    "CRITICAL GUIDELINES:\n"
    "1. Base your answers ONLY on the provided context documents\n"
    "2. If information isn't in the context, clearly state this limitation\n"
    "3. For regulatory or compliance questions, emphasize the need for "
    "current verification\n"
    "4. Include specific references to tables, sections, or document types "
    "when relevant\n"
    "5. If dealing with rates or calculations, note effective dates and "
    "conditions\n\n"
    "If the question involves:\n"
    "- Loan calculations: Show formulas and cite rate sources\n"
    "- Compliance matters: Reference specific regulations and sections\n"
    "- Policy questions: Quote relevant policy sections\n"
    "- Rate information: Include effective dates and conditions"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def enhance_query_with_context(question: str, context: dict) -> str:
    """
    Fold the banking context into the retrieval query.

    >>> enhance_query_with_context(
    ...     "What is the rate?",
    ...     {"user_role": "loan_officer", "loan_products": ["FHA", "VA"]},
    ... )
    'As a loan_officer, What is the rate? (related to FHA, VA)'
    """
    enhanced = question

    if context.get("user_role"):
        enhanced = f"As a {context['user_role']}, {question}"

    if context.get("loan_products"):
        enhanced += f" (related to {', '.join(context['loan_products'])})"

    if context.get("regulatory_context"):
        enhanced += (
            f" (considering {', '.join(context['regulatory_context'])} regulations)"
        )

    return enhanced


def build_user_message(
    question: str,
    chunks: list[VectorSearchResult],
    context: dict,
    today: date | None = None,
) -> str:
    """Assemble the user turn: context documents, role, question, banking context."""
    loan_products = context.get("loan_products") or []
    regulations = context.get("regulatory_context") or []
    current_date = (today or date.today()).isoformat()

    return (
        f"Context Documents:\n{_format_context(chunks)}\n\n"
        f"User Role: {context.get('user_role') or DEFAULT_USER_ROLE}\n"
        f"Question: {question}\n\n"
        "Banking Context:\n"
        f"- Loan Products: {', '.join(loan_products) or 'N/A'}\n"
        f"- Regulatory Context: {', '.join(regulations) or 'N/A'}\n"
        f"- Current Date: {current_date}\n\n"
        "Provide a comprehensive, accurate answer.\n\nAnswer:"
    )


async def generate_answer(
    question: str,
    chunks: list[VectorSearchResult],
    context: dict,
    llm: LLMProvider,
) -> AnalysisResult:
    """
    Answer `question` from `chunks` with the configured LLM.

    With no chunks the LLM is not called and NO_RESULTS_ANSWER is returned.
    """
    if not chunks:
        return AnalysisResult(
            answer=NO_RESULTS_ANSWER,
            model="n/a",
            input_tokens=0,
            output_tokens=0,
        )

    logger.info(
        "Generating answer: chunks=%d, role=%s",
        len(chunks), context.get("user_role") or DEFAULT_USER_ROLE,
    )

    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": build_user_message(question, chunks, context),
        }],
        system=SYSTEM_PROMPT,
    )

    logger.info(
        "Answer generated: model=%s, tokens=%d+%d",
        response.model, response.input_tokens, response.output_tokens,
    )

    return AnalysisResult(
        answer=response.content,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )


def extract_sources(chunks: list[VectorSearchResult]) -> list[dict]:
    """Citation entries, one per retrieved chunk, in retrieval order."""
    return [
        {
            "document_id": chunk.document_id,
            "document_title": chunk.metadata.get("document_title") or "Unknown Document",
            "chunk_content": chunk.content[:SOURCE_PREVIEW_CHARS] + "...",
            "chunk_type": chunk.metadata.get("type", "text"),
            "table_header": chunk.metadata.get("header") or None,
            "confidence_score": chunk.similarity_score,
        }
        for chunk in chunks
    ]


def calculate_confidence(chunks: list[VectorSearchResult]) -> int:
    """Mean similarity of `chunks` as a 0-100 integer; 0 when empty."""
    if not chunks:
        return 0
    mean = sum(chunk.similarity_score for chunk in chunks) / len(chunks)
    return round(mean * 100)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _format_context(chunks: list[VectorSearchResult]) -> str:
    """
    Number the chunks and label each with its document type.

    Example output:
        Document 1 (rate_sheet):
        [TABLE: Table 2.1]
        | Rate | Term |
        ...

        ---
        Document 2 (policy_document):
        ...
    """
    return "\n---\n".join(
        f"Document {i} ({chunk.metadata.get('document_type') or 'Unknown'}):\n"
        f"{chunk.content}\n"
        for i, chunk in enumerate(chunks, 1)
    )
