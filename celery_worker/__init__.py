"""
Worker launchers.

Both launchers share configuration (`knowledge_rag.config.settings`) and the
ingestion pipeline (`knowledge_rag.services.ingestion_service`) with the API:

- `python -m celery_worker.worker`: Celery worker with embedded beat
- `python -m celery_worker.poller`: standalone polling loop, no broker needed
"""
