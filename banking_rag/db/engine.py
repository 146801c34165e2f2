# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Two engines share one PostgreSQL schema:
#   - async engine (asyncpg)   → FastAPI handlers and background tasks
#   - sync engine (psycopg2)   → Celery ingestion workers
#
# FastAPI is async-native and must not block the event loop; Celery tasks
# are plain synchronous functions and cannot await. Each side gets the
# driver that matches its execution model.
#
# COMMIT POLICY:
# 1. get_async_session (FastAPI Depends): commits when the handler returns,
#    rolls back on exception. Handlers may flush() to obtain generated IDs.
# 2. async_session_factory() used directly (ask.py query logging runs after
#    the response is sent): the caller commits explicitly.
# 3. get_sync_session (Celery): commits on context exit, rolls back on error.
# =============================================================================

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from banking_rag.config import settings

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# echo follows settings.debug so SQL is visible during local development.
# pool_size/max_overflow are sized for a single API instance.
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

# expire_on_commit=False: attributes stay readable after commit without a
# lazy reload, which would fail outside an async context.
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Sync Engine — For Celery Workers (Lazy Initialization)
# ---------------------------------------------------------------------------
# Created on first use so the API process never needs psycopg2.
# ---------------------------------------------------------------------------

_sync_engine: Engine | None = None
_sync_session_factory: sessionmaker | None = None


def _get_sync_session_factory() -> sessionmaker:
    """Lazily create and cache the sync engine and its session factory."""
    global _sync_engine, _sync_session_factory
    if _sync_session_factory is None:
        _sync_engine = create_engine(
            settings.database_url_sync,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
        _sync_session_factory = sessionmaker(
            bind=_sync_engine,
            class_=Session,
            expire_on_commit=False,
        )
    return _sync_session_factory


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    Context manager that provides a sync database session for Celery workers.

    Usage:
        with get_sync_session() as session:
            doc = session.get(Document, document_id)
            doc.status = DocumentStatus.COMPLETED
    """
    session = _get_sync_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Commits when the handler returns; rolls back if it raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
