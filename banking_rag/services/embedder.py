# =============================================================================
# Embedding Service — Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates vector embeddings using any OpenAI-compatible embedding API:
# a local Ollama server (default, nomic-embed-text), OpenAI, or any other
# provider exposing the /embeddings endpoint.
#
# DESIGN DECISION: Sync-only. Celery workers (the consumer during
# ingestion) are synchronous; FastAPI handlers embed a single query and
# call this through asyncio.to_thread().
#
# DESIGN DECISION: No retry logic in the embedder. Retries are handled at
# the Celery task level (max_retries=3). This keeps the embedder simple
# and avoids nested retry logic.
#
# Token counting lives here too: table chunks are never split, so a large
# rate table can exceed the embedding model's input limit. The ingestion
# task uses count_tokens() to record sizes and flag oversized chunks.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

import tiktoken
from openai import OpenAI

from banking_rag.config import settings

logger = logging.getLogger(__name__)

# Only the text-embedding-3 family accepts a `dimensions` request parameter.
_DIMENSIONS_MODEL_PREFIX = "text-embedding-3"


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# The OpenAI client manages its own HTTP connection pool and is thread-safe.
# Lazy initialization avoids import-time failures when no key is set.
#
# API key resolution order:
#   1. OPENAI_API_KEY
#   2. EMBEDDING_API_KEY (placeholder accepted by Ollama)
# ---------------------------------------------------------------------------

_client: OpenAI | None = None


def _get_client() -> OpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        resolved_key = settings.openai_api_key or settings.embedding_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or EMBEDDING_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        _client = OpenAI(**client_kwargs)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def count_tokens(text: str) -> int:
    """Token count of `text` under the cl100k_base encoding."""
    return len(_get_encoder().encode(text))


def embed_batch(
    texts: Sequence[str],
    batch_size: int | None = None,
) -> list[list[float]]:
    """
    Generate embeddings for a batch of texts.

    Processes texts in sub-batches and returns embeddings in the SAME ORDER
    as the input texts.

    Args:
        texts: List of text strings to embed.
        batch_size: Number of texts per API call. Defaults to
            settings.embedding_batch_size (10).

    Returns:
        List of embedding vectors, in the same order as the input texts.

    Raises:
        ValueError: If no API key is configured.
        openai.APIError: If the embeddings API call fails.

    Pipeline position: Step 3 of ingestion (extract → chunk → embed → store).
    """
    if not texts:
        return []

    client = _get_client()
    _batch_size = batch_size or settings.embedding_batch_size

    all_embeddings: list[list[float]] = [[] for _ in texts]

    for i in range(0, len(texts), _batch_size):
        batch = list(texts[i : i + _batch_size])
        logger.info(
            "Embedding batch %d–%d of %d texts (model=%s)",
            i + 1,
            min(i + _batch_size, len(texts)),
            len(texts),
            settings.embedding_model,
        )

        create_kwargs: dict = {
            "model": settings.embedding_model,
            "input": batch,
        }
        if settings.embedding_model.startswith(_DIMENSIONS_MODEL_PREFIX):
            create_kwargs["dimensions"] = settings.embedding_dimensions

        response = client.embeddings.create(**create_kwargs)

        # Index by response.data[j].index so output order always matches
        # input order.
        for item in sorted(response.data, key=lambda x: x.index):
            all_embeddings[i + item.index] = item.embedding

        logger.debug(
            "Batch complete: %d embeddings, %d prompt tokens",
            len(batch),
            response.usage.prompt_tokens if response.usage else 0,
        )

    logger.info(
        "Generated %d embeddings (model=%s)",
        len(texts),
        settings.embedding_model,
    )
    return all_embeddings


def embed_query(text: str) -> list[float]:
    """
    Generate an embedding for a single query string.

    Used by the retrieve node when embedding user questions.
    """
    result = embed_batch([text], batch_size=1)
    return result[0]
