"""Document Ingestion Tasks"""

from typing import Optional

from knowledge_rag.tasks.celery_app import celery_app
from knowledge_rag.config.database import SessionLocal
from knowledge_rag.config.settings import settings
from knowledge_rag.core.logging import logger
from knowledge_rag.services.ingestion_service import IngestionWorker

# 确保在Celery进程中注册所有模型，解决字符串关系解析问题
import knowledge_rag.models  # noqa: F401

_worker: Optional[IngestionWorker] = None


def get_worker() -> IngestionWorker:
    """进程内复用同一个 Worker（MinIO/HTTP 客户端只创建一次）"""
    global _worker
    if _worker is None:
        _worker = IngestionWorker(SessionLocal)
    return _worker


@celery_app.task(bind=True, ignore_result=True)
def drain_pending_documents_task(self, max_documents: Optional[int] = None):
    """处理待处理文档，直到队列为空或达到单次上限"""
    task_id = self.request.id if self else "unknown"
    limit = max_documents or settings.KB_WORKER_BATCH_SIZE
    try:
        processed = get_worker().drain(max_documents=limit)
        if processed:
            logger.info(f"[任务ID: {task_id}] 本轮处理文档 {processed} 个")
        return processed
    except Exception as e:
        logger.error(f"[任务ID: {task_id}] 拉取待处理文档失败: {e}", exc_info=True)
        raise


@celery_app.task(bind=True, ignore_result=True)
def requeue_stale_documents_task(self):
    """把领取超时的文档退回待处理队列"""
    task_id = self.request.id if self else "unknown"
    requeued = get_worker().requeue_stale_documents()
    if requeued:
        logger.info(f"[任务ID: {task_id}] 回收超时文档 {requeued} 个")
    return requeued
