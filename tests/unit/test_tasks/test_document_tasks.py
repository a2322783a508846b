"""
Test Document Tasks
"""

from celery_worker.worker import build_argv
from knowledge_rag.config.settings import settings
from knowledge_rag.tasks import document_tasks
from knowledge_rag.tasks.celery_app import celery_app


class FakeWorker:
    def __init__(self):
        self.drain_limits = []

    def drain(self, max_documents=None):
        self.drain_limits.append(max_documents)
        return 2

    def requeue_stale_documents(self):
        return 1


def test_drain_task_uses_batch_size(monkeypatch):
    worker = FakeWorker()
    monkeypatch.setattr(document_tasks, "get_worker", lambda: worker)

    assert document_tasks.drain_pending_documents_task.run() == 2
    assert document_tasks.drain_pending_documents_task.run(max_documents=5) == 2
    assert worker.drain_limits == [settings.KB_WORKER_BATCH_SIZE, 5]


def test_requeue_task(monkeypatch):
    monkeypatch.setattr(document_tasks, "get_worker", lambda: FakeWorker())
    assert document_tasks.requeue_stale_documents_task.run() == 1


def test_beat_schedule_and_routes():
    """定时投递 drain 任务，文档任务路由到 document 队列"""
    schedule = celery_app.conf.beat_schedule["drain-pending-documents"]
    assert schedule["task"] == document_tasks.drain_pending_documents_task.name
    assert schedule["schedule"] == settings.KB_WORKER_POLL_INTERVAL_SECONDS
    assert celery_app.conf.task_routes["knowledge_rag.tasks.document_tasks.*"] == {"queue": "document"}


def test_worker_argv(monkeypatch):
    monkeypatch.setenv("CELERY_QUEUES", "document")
    monkeypatch.setenv("CELERY_EMBED_BEAT", "false")
    argv = build_argv()
    assert argv[argv.index("-Q") + 1] == "document"
    assert "-B" not in argv

    monkeypatch.setenv("CELERY_EMBED_BEAT", "true")
    assert "-B" in build_argv()
