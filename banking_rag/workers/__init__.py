# =============================================================================
# Workers Package — Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: Task definitions (document ingestion pipeline)
#
# Ingestion (extraction, embedding calls, bulk vector inserts) is too slow
# for a request cycle, so the API returns a task_id and workers do the rest.
# =============================================================================
