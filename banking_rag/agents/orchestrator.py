# =============================================================================
# LangGraph Orchestrator — Banking RAG Graph
# =============================================================================
#
# GRAPH TOPOLOGY:
#
#   START ──▶ prepare ──▶ retrieve ──▶ generate ──┬──▶ compliance ───────▶ END
#                                                 ├──▶ loan_calculation ─▶ END
#                                                 └──────────────────────▶ END
#
#   prepare           phrase the question for the query type and build the
#                     banking context (role, loan products, regulations)
#   retrieve          embed the context-enhanced question, vector search
#                     with the configured top_k and similarity threshold
#   generate          grounded answer, sources, confidence
#   compliance        verdict / issues / recommendations from the answer
#   loan_calculation  rate from the answer, payment and interest computed
#
# DESIGN DECISION: Query type routes with a conditional edge after
# generate. All three query types share retrieval and generation; only the
# post-processing differs.
#
# DESIGN DECISION: Two questions in state.
# `retrieval_query` carries the context-enhanced text used for embedding;
# `prompt_question` is what the LLM is asked. Enhancement helps retrieval
# but would read oddly inside the prompt, which lists the context itself.
#
# DESIGN DECISION: Graph compiled once at module level and reused by every
# request.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from banking_rag.agents.analyst import (
    calculate_confidence,
    enhance_query_with_context,
    extract_sources,
    generate_answer,
)
from banking_rag.agents.specialists import (
    assess_compliance,
    build_compliance_question,
    build_loan_question,
    compliance_context,
    estimate_loan,
    loan_context,
)
from banking_rag.config import settings
from banking_rag.services.embedder import embed_query
from banking_rag.services.llm import LLMProvider, get_llm_provider
from banking_rag.services.vectorstore import VectorSearchResult, get_vector_store

logger = logging.getLogger(__name__)

QUERY_TYPES = ("general", "compliance", "loan_calculation")


# ---------------------------------------------------------------------------
# Agent State Schema
# ---------------------------------------------------------------------------


class AgentState(TypedDict, total=False):
    """
    State flowing through the graph.

    total=False: nodes return only the keys they update.
    """

    # --- Input (set by caller) ---
    question: str
    query_type: str
    context: dict | None
    regulations: list[str] | None
    loan_type: str | None
    loan_amount: float | None
    loan_term: int | None
    document_id: int | None

    # Not JSON-serialisable; fine while the graph has no checkpointer.
    llm_override: LLMProvider | None

    # --- Intermediate (set by nodes) ---
    banking_context: dict
    prompt_question: str
    retrieval_query: str
    chunks: list[VectorSearchResult]

    # --- Output ---
    answer: str
    sources: list[dict[str, Any]]
    confidence: int
    model: str
    input_tokens: int
    output_tokens: int
    compliance: dict | None
    loan_calculation: dict | None


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def prepare_node(state: AgentState) -> dict:
    """Phrase the question and build the banking context for the query type."""
    query_type = state.get("query_type") or "general"

    if query_type == "compliance":
        regulations = state.get("regulations") or []
        banking_context = compliance_context(regulations)
        prompt_question = build_compliance_question(state["question"], regulations)
    elif query_type == "loan_calculation":
        banking_context = loan_context(state["loan_type"])
        prompt_question = build_loan_question(
            state["loan_type"], state["loan_amount"], state["loan_term"],
        )
    else:
        # Only a caller-supplied role prefixes the retrieval query
        banking_context = dict(state.get("context") or {})
        prompt_question = state["question"]

    retrieval_query = enhance_query_with_context(prompt_question, banking_context)
    logger.info(
        "Prepared %s query: '%s'", query_type, retrieval_query[:120],
    )
    return {
        "banking_context": banking_context,
        "prompt_question": prompt_question,
        "retrieval_query": retrieval_query,
    }


async def retrieve_node(state: AgentState) -> dict:
    """Embed the enhanced question and fetch the closest chunks."""
    embedding = await asyncio.to_thread(embed_query, state["retrieval_query"])

    vector_store = get_vector_store()
    chunks = await vector_store.search(
        embedding,
        top_k=settings.retrieval_top_k,
        document_id=state.get("document_id"),
        min_similarity=settings.retrieval_similarity_threshold,
    )

    logger.info(
        "Retrieved %d chunks (%d tables) above similarity %.2f",
        len(chunks),
        sum(1 for c in chunks if c.metadata.get("type") == "table"),
        settings.retrieval_similarity_threshold,
    )
    return {"chunks": chunks}


async def generate_node(state: AgentState) -> dict:
    """Generate the answer and map chunks to citations."""
    chunks = state.get("chunks") or []
    llm = state.get("llm_override") or (get_llm_provider() if chunks else None)

    result = await generate_answer(
        question=state["prompt_question"],
        chunks=chunks,
        context=state["banking_context"],
        llm=llm,
    )

    return {
        "answer": result.answer,
        "sources": extract_sources(chunks),
        "confidence": calculate_confidence(chunks),
        "model": result.model,
        "input_tokens": result.input_tokens,
        "output_tokens": result.output_tokens,
    }


async def compliance_node(state: AgentState) -> dict:
    assessment = assess_compliance(state["answer"])
    logger.info(
        "Compliance assessment: compliant=%s, issues=%d, recommendations=%d",
        assessment.compliant, len(assessment.issues),
        len(assessment.recommendations),
    )
    return {"compliance": asdict(assessment)}


async def loan_calculation_node(state: AgentState) -> dict:
    estimate = estimate_loan(
        state["answer"], state["loan_amount"], state["loan_term"],
    )
    logger.info(
        "Loan estimate: rate=%.3f%%, monthly_payment=%.2f",
        estimate.rate, estimate.monthly_payment,
    )
    return {"loan_calculation": asdict(estimate)}


def route_by_query_type(state: AgentState) -> str:
    query_type = state.get("query_type") or "general"
    if query_type in ("compliance", "loan_calculation"):
        return query_type
    return END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(AgentState)
_builder.add_node("prepare", prepare_node)
_builder.add_node("retrieve", retrieve_node)
_builder.add_node("generate", generate_node)
_builder.add_node("compliance", compliance_node)
_builder.add_node("loan_calculation", loan_calculation_node)

_builder.add_edge(START, "prepare")
_builder.add_edge("prepare", "retrieve")
_builder.add_edge("retrieve", "generate")
_builder.add_conditional_edges(
    "generate",
    route_by_query_type,
    ["compliance", "loan_calculation", END],
)
_builder.add_edge("compliance", END)
_builder.add_edge("loan_calculation", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def ask(
    question: str,
    query_type: str = "general",
    context: dict | None = None,
    regulations: list[str] | None = None,
    loan_type: str | None = None,
    loan_amount: float | None = None,
    loan_term: int | None = None,
    document_id: int | None = None,
    llm: LLMProvider | None = None,
) -> AgentState:
    """
    Run the banking RAG graph and return the final state.

    Compliance queries need `regulations`; loan calculations need
    `loan_type`, `loan_amount` and `loan_term`. The HTTP layer validates
    these before calling.

    Raises:
        ValueError: Unknown query type, or missing LLM/embedding config.
    """
    if query_type not in QUERY_TYPES:
        raise ValueError(
            f"Unknown query_type '{query_type}'. Expected one of {QUERY_TYPES}"
        )

    initial_state: AgentState = {
        "question": question,
        "query_type": query_type,
        "context": context,
        "regulations": regulations,
        "loan_type": loan_type,
        "loan_amount": loan_amount,
        "loan_term": loan_term,
        "document_id": document_id,
    }
    if llm is not None:
        initial_state["llm_override"] = llm

    logger.info(
        "Invoking banking graph: type=%s, question='%s'",
        query_type, question[:80],
    )

    result = await graph.ainvoke(initial_state)

    logger.info(
        "Banking graph complete: model=%s, sources=%d, confidence=%d",
        result.get("model", "n/a"),
        len(result.get("sources", [])),
        result.get("confidence", 0),
    )
    return result
