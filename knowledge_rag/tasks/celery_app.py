"""
Celery App Configuration
"""

from celery import Celery
from knowledge_rag.config.settings import settings

# 创建Celery应用
celery_app = Celery(
    "knowledge-rag",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
    include=[
        "knowledge_rag.tasks.document_tasks",
    ]
)

# Celery配置
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30分钟
    task_soft_time_limit=25 * 60,  # 25分钟
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # 任务确认机制：任务完成后才确认
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_connection_retry_on_startup=False,
    task_routes={
        "knowledge_rag.tasks.document_tasks.*": {"queue": "document"},
    },
)

# 配置 Celery Beat 定时任务：按轮询间隔拉取待处理文档
celery_app.conf.beat_schedule = {
    "drain-pending-documents": {
        "task": "knowledge_rag.tasks.document_tasks.drain_pending_documents_task",
        "schedule": settings.KB_WORKER_POLL_INTERVAL_SECONDS,
        "options": {
            # 任务过期时间，防止积压后重复执行
            "expires": settings.KB_WORKER_POLL_INTERVAL_SECONDS,
        },
    },
}

if settings.KB_WORKER_STALE_AFTER_SECONDS > 0:
    celery_app.conf.beat_schedule["requeue-stale-documents"] = {
        "task": "knowledge_rag.tasks.document_tasks.requeue_stale_documents_task",
        "schedule": max(settings.KB_WORKER_STALE_AFTER_SECONDS / 2, settings.KB_WORKER_POLL_INTERVAL_SECONDS),
    }
