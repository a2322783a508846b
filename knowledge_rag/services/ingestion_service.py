"""
Ingestion Service
摄取 Worker：轮询待处理文档 -> 领取 -> 下载 -> 抽取 -> 分块 -> 向量化 -> 写入分块 -> 完成/失败
"""

import threading
import time
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from knowledge_rag.config.settings import settings
from knowledge_rag.core.constants import USAGE_OPERATION_INGEST
from knowledge_rag.core.logging import logger
from knowledge_rag.models.document import Document
from knowledge_rag.services.chunking_service import chunk_text
from knowledge_rag.services.document_service import DocumentService
from knowledge_rag.services.embedding_service import EmbeddingService
from knowledge_rag.services.extraction_service import ExtractionService
from knowledge_rag.services.usage_service import UsageService


class IngestionWorker:
    """
    文档摄取 Worker

    多个实例可同时运行，互斥完全依赖 DocumentService.claim_document 的条件更新。
    sleep/clock 可注入，便于在测试中驱动轮询循环。
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        storage=None,
        extractor: Optional[ExtractionService] = None,
        embedder: Optional[EmbeddingService] = None,
        usage: Optional[UsageService] = None,
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None,
        overlap_tokens: Optional[int] = None,
        poll_interval: Optional[float] = None,
        stale_after_seconds: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self._storage = storage
        self.extractor = extractor or ExtractionService()
        self.embedder = embedder or EmbeddingService()
        self.usage = usage or UsageService(session_factory)
        self.max_chunks = max_chunks or settings.KB_WORKER_MAX_CHUNKS
        self.max_tokens = max_tokens or settings.CHUNK_MAX_TOKENS
        self.overlap_tokens = settings.CHUNK_OVERLAP_TOKENS if overlap_tokens is None else overlap_tokens
        self.poll_interval = settings.KB_WORKER_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.stale_after_seconds = (
            settings.KB_WORKER_STALE_AFTER_SECONDS if stale_after_seconds is None else stale_after_seconds
        )
        self.sleep = sleep
        self.clock = clock

    @property
    def storage(self):
        if self._storage is None:
            from knowledge_rag.services.minio_storage_service import MinioStorageService
            self._storage = MinioStorageService()
        return self._storage

    def run_once(self) -> bool:
        """
        处理一个待处理文档

        Returns:
            有待处理文档时返回 True（包括领取被其他 Worker 抢先的情况），队列为空返回 False
        """
        db = self.session_factory()
        try:
            service = DocumentService(db, storage=self._storage)
            candidate = service.find_next_pending_document()
            if candidate is None:
                return False
            document = service.claim_document(candidate.id, now=self.clock())
            if document is None:
                return True
            self.process_document(service, document)
            return True
        finally:
            db.close()

    def process_document(self, service: DocumentService, document: Document) -> bool:
        """处理已领取的文档，任何异常都会把文档标记为失败；成功返回 True"""
        document_id = document.id
        started = time.time()
        logger.info(f"开始处理文档: id={document_id}, file={document.file_name}, key={document.storage_key}")
        try:
            content = self.storage.get_object(document.storage_key)
            if not content:
                raise ValueError("文档内容为空")

            text = self.extractor.extract(content, document.mime_type, document.file_name)
            if not text or not text.strip():
                raise ValueError("未能从文档中抽取到文本")

            chunks = chunk_text(text, max_tokens=self.max_tokens, overlap_tokens=self.overlap_tokens)
            if len(chunks) > self.max_chunks:
                logger.warning(
                    f"文档分块数超过上限，截断: id={document_id}, 分块={len(chunks)}, 上限={self.max_chunks}"
                )
                chunks = chunks[:self.max_chunks]

            # 先删除旧分块，再写入新分块
            service.delete_document_chunks(document_id)

            tokens = 0
            if chunks:
                embeddings, tokens = self.embedder.embed(chunks)
                service.insert_document_chunks(document, chunks, embeddings)

            service.mark_document_completed(document_id, len(chunks), tokens, now=self.clock())
            logger.info(
                f"文档处理完成: id={document_id}, 分块={len(chunks)}, tokens={tokens}, "
                f"耗时={time.time() - started:.2f}s"
            )
        except Exception as e:
            logger.error(f"文档处理失败: id={document_id}, {e}", exc_info=True)
            service.db.rollback()
            service.mark_document_failed(document_id, str(e) or e.__class__.__name__, now=self.clock())
            return False

        if tokens > 0:
            self._record_usage(service, document, len(chunks), tokens)
        return True

    def _record_usage(self, service: DocumentService, document: Document, chunk_count: int, tokens: int):
        """用量记录：用户取上传者，否则取知识库所有者；组织取文档快照，否则取知识库组织"""
        try:
            kb = service.get_knowledge_base(document.knowledge_base_id)
            user_id = document.uploaded_by_user_id or (kb.user_id if kb else None)
            organization_id = document.organization_id or (kb.organization_id if kb else None)
        except Exception as e:
            logger.warning(f"解析用量归属失败（忽略）: document_id={document.id}, {e}")
            return
        if not user_id:
            logger.debug(f"无法确定用量归属用户，跳过记录: document_id={document.id}")
            return
        self.usage.record(
            user_id=user_id,
            organization_id=organization_id,
            knowledge_base_id=document.knowledge_base_id,
            document_id=document.id,
            operation=USAGE_OPERATION_INGEST,
            tokens=tokens,
            model=getattr(self.embedder, "model", None),
            metadata={"file_name": document.file_name, "chunk_count": chunk_count},
        )

    def requeue_stale_documents(self) -> int:
        """回收领取超时的文档（阈值为0时不启用）"""
        if not self.stale_after_seconds or self.stale_after_seconds <= 0:
            return 0
        db = self.session_factory()
        try:
            return DocumentService(db).requeue_stale_documents(self.stale_after_seconds, now=self.clock())
        finally:
            db.close()

    def drain(self, max_documents: Optional[int] = None) -> int:
        """连续处理待处理文档直到队列为空或达到数量上限，返回处理轮数"""
        processed = 0
        while max_documents is None or processed < max_documents:
            if not self.run_once():
                break
            processed += 1
        return processed

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """轮询循环：队列为空时休眠 poll_interval 秒"""
        logger.info(
            f"摄取 Worker 启动: 轮询间隔={self.poll_interval}s, 最大分块={self.max_chunks}, "
            f"租约={self.stale_after_seconds or '未启用'}"
        )
        while not (stop_event and stop_event.is_set()):
            try:
                has_work = self.run_once()
            except Exception as e:
                logger.error(f"Worker 轮询异常: {e}", exc_info=True)
                has_work = False
            if has_work:
                continue
            try:
                self.requeue_stale_documents()
            except Exception as e:
                logger.error(f"回收超时文档失败: {e}", exc_info=True)
            self.sleep(self.poll_interval)
        logger.info("摄取 Worker 已停止")
