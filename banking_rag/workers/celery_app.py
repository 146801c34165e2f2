# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Celery runs the ingestion pipeline outside the API process:
#   Upload → Extract → Chunk (table-aware) → Embed → Store
#
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌───────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Redis │
# │(producer)│     │(broker)│    │  (consumer)  │     │(result)│
# └──────────┘     └───────┘     └──────────────┘     └───────┘
#                    db 0                                db 1
#
# Start a worker with:
#   celery -A banking_rag.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery

from banking_rag.config import settings

celery_app = Celery(
    "banking_rag.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # JSON only; pickle payloads can execute code on load
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Acknowledge after completion so a crashed worker's task is re-queued
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Long-running tasks: one at a time per worker process
    worker_prefetch_multiplier=1,

    # OCR of a scanned policy manual can take minutes
    task_soft_time_limit=600,
    task_time_limit=900,

    result_expires=3600,

    include=["banking_rag.workers.tasks"],
)
