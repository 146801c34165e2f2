# =============================================================================
# Ask API — Banking Question Answering
# =============================================================================
#
# POST /ask runs the LangGraph banking graph (prepare → retrieve → generate
# → compliance | loan_calculation) and returns the answer with citations.
#
# This endpoint is thin: request validation happens in AskRequest, the
# work happens in agents/, and the query log is written after the
# response is sent.
#
# Error mapping:
#   ValueError (missing API key, bad provider config) → 503
#   anything else from the graph (LLM / embedding API) → 502
#   no relevant chunks → 200 with the "couldn't find" answer
# =============================================================================

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, HTTPException

from banking_rag.agents.orchestrator import ask
from banking_rag.db.engine import async_session_factory
from banking_rag.db.models import QueryLog
from banking_rag.models.requests import AskRequest
from banking_rag.models.responses import (
    AskResponse,
    ComplianceResult,
    LoanCalculationResult,
    SourceDocument,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask a question about the banking knowledge base",
)
async def ask_endpoint(
    request: AskRequest,
    background_tasks: BackgroundTasks,
) -> AskResponse:
    """
    Answer a general, compliance or loan-calculation question.

    Compliance answers add a verdict with issues and recommendations; loan
    calculations add the quoted rate, monthly payment and total interest.
    """
    logger.info(
        "Ask request: type=%s, question='%s', document_id=%s",
        request.query_type, request.question[:80], request.document_id,
    )

    start_time = time.monotonic()

    try:
        result = await ask(
            question=request.question,
            query_type=request.query_type,
            context=request.context.model_dump() if request.context else None,
            regulations=request.regulations,
            loan_type=request.loan_type,
            loan_amount=request.loan_amount,
            loan_term=request.loan_term,
            document_id=request.document_id,
        )
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Banking graph failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Upstream AI service error: {e}",
        ) from e

    response_time_ms = int((time.monotonic() - start_time) * 1000)

    sources = result.get("sources", [])
    compliance = result.get("compliance")
    loan_calculation = result.get("loan_calculation")

    background_tasks.add_task(
        _persist_query_log,
        query_type=request.query_type,
        question=request.question,
        answer=result.get("answer"),
        sources=sources,
        confidence=result.get("confidence", 0),
        model=result.get("model"),
        response_time_ms=response_time_ms,
    )

    return AskResponse(
        answer=result.get("answer", ""),
        sources=[SourceDocument(**source) for source in sources],
        confidence=result.get("confidence", 0),
        query_type=request.query_type,
        question=request.question,
        model=result.get("model", "unknown"),
        compliance=ComplianceResult(**compliance) if compliance else None,
        loan_calculation=(
            LoanCalculationResult(**loan_calculation) if loan_calculation else None
        ),
        timestamp=datetime.now(timezone.utc),
    )


# ---------------------------------------------------------------------------
# Background Query Logging
# ---------------------------------------------------------------------------


async def _persist_query_log(
    query_type: str,
    question: str,
    answer: str | None,
    sources: list[dict],
    confidence: float,
    model: str | None,
    response_time_ms: int,
) -> None:
    """
    Write a QueryLog row after the response has been sent.

    Uses its own session; the request has finished by the time this runs.
    A logging failure never affects the answer the user already received.
    """
    try:
        async with async_session_factory() as session:
            session.add(QueryLog(
                query_type=query_type,
                question=question,
                answer=answer,
                sources=sources,
                confidence=confidence,
                model=model,
                response_time_ms=response_time_ms,
            ))
            await session.commit()
    except Exception as e:
        logger.warning("Failed to persist query log: %s", e)
