"""
Document Service
文档的上传/导入、重命名、删除，以及供摄取 Worker 使用的状态流转
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import requests
from sqlalchemy.orm import Session

from knowledge_rag.config.settings import settings
from knowledge_rag.core.constants import (
    DOC_STATUS_COMPLETED,
    DOC_STATUS_FAILED,
    DOC_STATUS_PENDING,
    DOC_STATUS_PROCESSING,
)
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.core.logging import logger
from knowledge_rag.models.chunk import DocumentChunk
from knowledge_rag.models.document import Document
from knowledge_rag.models.knowledge_base import KnowledgeBase
from knowledge_rag.models.user import User
from knowledge_rag.services.base import BaseService
from knowledge_rag.services.extraction_service import (
    DocumentFormat,
    html_title,
    html_to_text,
    normalize_text,
    resolve_document_format,
)
from knowledge_rag.services.permission_service import (
    ACCESS_READ,
    ACCESS_WRITE,
    KnowledgeBasePermissionService,
)
from knowledge_rag.utils.file_utils import (
    build_storage_key,
    build_web_file_name,
    compute_checksum,
    get_file_extension,
    guess_mime_type,
)

# 失败原因最长保存长度
MAX_ERROR_MESSAGE_LENGTH = 2000

class DocumentService(BaseService[Document]):
    """文档服务"""

    def __init__(self, db: Session, storage=None, http: Optional[requests.Session] = None):
        super().__init__(db, Document)
        self.permissions = KnowledgeBasePermissionService(db)
        self._storage = storage
        self._http = http

    @property
    def storage(self):
        """对象存储（按需创建，Worker 侧的状态流转不依赖 MinIO）"""
        if self._storage is None:
            from knowledge_rag.services.minio_storage_service import MinioStorageService
            self._storage = MinioStorageService()
        return self._storage

    @property
    def http(self) -> requests.Session:
        """网页导入使用的 HTTP 会话（按需创建）"""
        if self._http is None:
            self._http = requests.Session()
        return self._http

    @staticmethod
    def serialize(document: Document, uploader_name: Optional[str] = None) -> Dict[str, Any]:
        return {
            "id": document.id,
            "knowledge_base_id": document.knowledge_base_id,
            "uploaded_by_user_id": document.uploaded_by_user_id,
            "uploaded_by_name": uploader_name,
            "organization_id": document.organization_id,
            "file_name": document.file_name,
            "file_size": document.file_size,
            "mime_type": document.mime_type,
            "status": document.status,
            "error_message": document.error_message,
            "chunk_count": document.chunk_count,
            "embedding_tokens": document.embedding_tokens,
            "processed_at": document.processed_at,
            "created_at": document.created_at,
            "updated_at": document.updated_at,
        }

    # ------------------------------------------------------------------ #
    # 用户侧操作
    # ------------------------------------------------------------------ #
    def list_documents(self, kb_id: int, user_id: int) -> List[Dict[str, Any]]:
        """获取知识库下的文档（需要读权限），按创建时间倒序"""
        self.permissions.ensure_permission(kb_id, user_id, ACCESS_READ)
        rows = (
            self.db.query(Document, User)
            .outerjoin(User, User.id == Document.uploaded_by_user_id)
            .filter(Document.knowledge_base_id == kb_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )
        return [self.serialize(doc, user.display_name if user else None) for doc, user in rows]

    def _get_document_for_write(self, document_id: int, user_id: int, kb_id: Optional[int] = None) -> Document:
        document = self.get(document_id)
        if not document or (kb_id is not None and document.knowledge_base_id != kb_id):
            raise CustomException(code=ErrorCode.DOCUMENT_NOT_FOUND, message="文档不存在")
        self.permissions.ensure_permission(document.knowledge_base_id, user_id, ACCESS_WRITE)
        return document

    def create_document(
        self,
        kb_id: int,
        user_id: int,
        file_name: str,
        file_size: int,
        mime_type: str,
        storage_key: str,
        checksum: Optional[str] = None,
    ) -> Document:
        """登记待处理文档（需要写权限），组织ID从知识库复制"""
        kb, _ = self.permissions.ensure_permission(kb_id, user_id, ACCESS_WRITE)
        document = self.create({
            "knowledge_base_id": kb.id,
            "uploaded_by_user_id": user_id,
            "organization_id": kb.organization_id,
            "file_name": file_name,
            "file_size": file_size,
            "mime_type": mime_type,
            "storage_key": storage_key,
            "checksum": checksum,
            "status": DOC_STATUS_PENDING,
        })
        logger.info(f"文档已登记: id={document.id}, kb_id={kb_id}, file={file_name}, key={storage_key}")
        return document

    @staticmethod
    def validate_upload(file_name: str, content: bytes, mime_type: Optional[str] = None) -> None:
        """
        上传前校验：空文件、超大文件、不支持的类型

        MIME 类型或扩展名任一在允许列表中即可；两者都能识别时，
        PDF/Word 与其他格式不允许互相冒充。
        """
        if not file_name or not file_name.strip():
            raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="文件名不能为空")
        if not content:
            raise CustomException(code=ErrorCode.FILE_EMPTY, message="文件内容为空")
        if len(content) > settings.KB_MAX_UPLOAD_BYTES:
            raise CustomException(
                code=ErrorCode.FILE_TOO_LARGE,
                message=f"文件大小超过限制: {len(content)} > {settings.KB_MAX_UPLOAD_BYTES} bytes",
            )
        extension = get_file_extension(file_name)
        mime = (mime_type or "").split(";")[0].strip().lower()
        extension_allowed = extension in settings.KB_ALLOWED_EXTENSIONS
        mime_allowed = mime in settings.KB_ALLOWED_MIME_TYPES
        if not (extension_allowed or mime_allowed):
            raise CustomException(
                code=ErrorCode.UNSUPPORTED_FILE_TYPE,
                message=f"不支持的文件类型: {mime or 'unknown'} ({extension or '无扩展名'})",
            )
        if extension_allowed and mime_allowed:
            by_extension = resolve_document_format(None, file_name)
            by_mime = resolve_document_format(mime, None)
            binary_formats = {DocumentFormat.PDF, DocumentFormat.OFFICE_DOC}
            if by_extension != by_mime and binary_formats & {by_extension, by_mime}:
                raise CustomException(
                    code=ErrorCode.UNSUPPORTED_FILE_TYPE,
                    message=f"文件类型与扩展名不一致: {mime} ({extension})",
                )

    def _store_and_register(
        self,
        kb_id: int,
        user_id: int,
        file_name: str,
        content: bytes,
        mime_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Document:
        """写入对象存储并登记文档；登记失败时尽力删除已写入的对象"""
        storage_key = build_storage_key(kb_id, uuid.uuid4().hex, file_name)
        checksum = compute_checksum(content)
        self.storage.put_object(
            storage_key,
            content,
            content_type=mime_type,
            checksum=checksum,
            metadata={"original-file-name": file_name, **(metadata or {})},
        )
        try:
            return self.create_document(
                kb_id,
                user_id,
                file_name=file_name,
                file_size=len(content),
                mime_type=mime_type,
                storage_key=storage_key,
                checksum=checksum,
            )
        except Exception:
            logger.error(f"登记文档失败，清理已上传对象: {storage_key}", exc_info=True)
            try:
                self.storage.delete_object(storage_key)
            except Exception as cleanup_error:
                logger.warning(f"清理孤立对象失败: {storage_key}, {cleanup_error}")
            raise

    def upload_document(
        self,
        kb_id: int,
        user_id: int,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """上传文档：校验 -> 写对象存储 -> 登记为待处理"""
        file_name = (file_name or "").strip()
        mime_type = guess_mime_type(file_name, content_type)
        self.validate_upload(file_name, content, mime_type)
        self.permissions.ensure_permission(kb_id, user_id, ACCESS_WRITE)

        document = self._store_and_register(kb_id, user_id, file_name, content, mime_type)
        return self.serialize(document)

    def import_web_page(
        self,
        kb_id: int,
        user_id: int,
        url: str,
        max_characters: Optional[int] = None,
    ) -> Dict[str, Any]:
        """抓取网页正文并作为纯文本文档导入"""
        self.permissions.ensure_permission(kb_id, user_id, ACCESS_WRITE)
        limit = max_characters or settings.WEB_IMPORT_DEFAULT_MAX_CHARACTERS
        limit = min(max(limit, settings.WEB_IMPORT_MIN_CHARACTERS), settings.WEB_IMPORT_MAX_CHARACTERS)

        try:
            response = self.http.get(
                url,
                timeout=settings.WEB_IMPORT_TIMEOUT,
                headers={"User-Agent": settings.WEB_IMPORT_USER_AGENT},
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"网页抓取失败: {url}, {e}")
            raise CustomException(code=ErrorCode.WEB_FETCH_FAILED, message=f"网页抓取失败: {e}")

        content_type = (response.headers.get("Content-Type") or "").lower()
        title = None
        if not content_type or "html" in content_type:
            title = html_title(response.text)
            text = html_to_text(response.text)
        elif content_type.startswith("text/"):
            text = response.text
        else:
            raise CustomException(
                code=ErrorCode.UNSUPPORTED_FILE_TYPE,
                message=f"不支持导入的网页内容类型: {content_type}",
            )

        text = normalize_text(text)[:limit].strip()
        if not text:
            raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="网页中没有可导入的文本内容")

        file_name = build_web_file_name(title, url)
        document = self._store_and_register(
            kb_id,
            user_id,
            file_name,
            text.encode("utf-8"),
            "text/plain",
            metadata={"original-url": url, "source": "web"},
        )
        logger.info(f"网页导入成功: url={url}, document_id={document.id}, 字符数={len(text)}")
        return self.serialize(document)

    def rename_document(
        self, document_id: int, user_id: int, file_name: str, kb_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """重命名文档（需要写权限），存储键保持不变"""
        file_name = (file_name or "").strip()
        if not file_name:
            raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="文件名不能为空")
        document = self._get_document_for_write(document_id, user_id, kb_id)
        document = self.update(document, {"file_name": file_name})
        logger.info(f"文档已重命名: id={document_id}, file_name={file_name}")
        return self.serialize(document)

    def delete_document(self, document_id: int, user_id: int, kb_id: Optional[int] = None) -> str:
        """
        删除文档及其分块（需要写权限）

        Returns:
            文档的存储键，调用方负责删除对应对象
        """
        document = self._get_document_for_write(document_id, user_id, kb_id)
        storage_key = document.storage_key
        try:
            self.db.query(DocumentChunk).filter(DocumentChunk.document_id == document_id).delete(
                synchronize_session=False
            )
            self.db.query(Document).filter(Document.id == document_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"删除文档失败: {document_id}", exc_info=True)
            raise
        self.db.expunge(document)
        logger.info(f"文档已删除: id={document_id}, key={storage_key}")
        return storage_key

    # ------------------------------------------------------------------ #
    # Worker 侧状态流转
    # ------------------------------------------------------------------ #
    def find_next_pending_document(self) -> Optional[Document]:
        """最早创建的待处理文档"""
        return (
            self.db.query(Document)
            .filter(Document.status == DOC_STATUS_PENDING)
            .order_by(Document.created_at.asc(), Document.id.asc())
            .first()
        )

    def claim_document(self, document_id: int, now: Optional[datetime] = None) -> Optional[Document]:
        """
        领取文档：仅当状态仍为 pending 时条件更新为 processing。

        多个 Worker 并发领取同一文档时只有一个能更新成功；失败方返回 None。
        """
        now = now or datetime.utcnow()
        updated = (
            self.db.query(Document)
            .filter(Document.id == document_id, Document.status == DOC_STATUS_PENDING)
            .update(
                {
                    Document.status: DOC_STATUS_PROCESSING,
                    Document.claimed_at: now,
                    Document.error_message: None,
                    Document.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            logger.debug(f"文档已被其他 Worker 领取: {document_id}")
            return None
        document = self.get(document_id)
        self.db.refresh(document)
        return document

    def delete_document_chunks(self, document_id: int) -> int:
        """删除文档已有的全部分块"""
        deleted = (
            self.db.query(DocumentChunk)
            .filter(DocumentChunk.document_id == document_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def insert_document_chunks(
        self,
        document: Document,
        contents: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> int:
        """一次性写入文档的全部分块（索引从0连续编号）"""
        if len(contents) != len(embeddings):
            raise ValueError(f"分块与向量数量不一致: {len(contents)} != {len(embeddings)}")
        self.db.add_all([
            DocumentChunk(
                document_id=document.id,
                knowledge_base_id=document.knowledge_base_id,
                chunk_index=index,
                content=content,
                embedding=list(embedding),
            )
            for index, (content, embedding) in enumerate(zip(contents, embeddings))
        ])
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return len(contents)

    def mark_document_completed(
        self,
        document_id: int,
        chunk_count: int,
        embedding_tokens: int,
        now: Optional[datetime] = None,
    ) -> None:
        now = now or datetime.utcnow()
        self.db.query(Document).filter(Document.id == document_id).update(
            {
                Document.status: DOC_STATUS_COMPLETED,
                Document.chunk_count: chunk_count,
                Document.embedding_tokens: embedding_tokens,
                Document.error_message: None,
                Document.processed_at: now,
                Document.updated_at: now,
            },
            synchronize_session=False,
        )
        self.db.commit()

    def mark_document_failed(self, document_id: int, error_message: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        message = (error_message or "处理失败")[:MAX_ERROR_MESSAGE_LENGTH]
        self.db.query(Document).filter(Document.id == document_id).update(
            {
                Document.status: DOC_STATUS_FAILED,
                Document.error_message: message,
                Document.updated_at: now,
            },
            synchronize_session=False,
        )
        self.db.commit()

    def requeue_stale_documents(self, stale_after_seconds: int, now: Optional[datetime] = None) -> int:
        """把领取时间早于阈值仍在处理中的文档退回 pending，返回数量"""
        if stale_after_seconds <= 0:
            return 0
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=stale_after_seconds)
        requeued = (
            self.db.query(Document)
            .filter(
                Document.status == DOC_STATUS_PROCESSING,
                Document.claimed_at.isnot(None),
                Document.claimed_at < cutoff,
            )
            .update(
                {
                    Document.status: DOC_STATUS_PENDING,
                    Document.claimed_at: None,
                    Document.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if requeued:
            logger.warning(f"回收超时未完成的文档: {requeued} 个（领取早于 {cutoff.isoformat()}）")
        return requeued

    def get_knowledge_base(self, kb_id: int) -> Optional[KnowledgeBase]:
        return self.db.query(KnowledgeBase).filter(KnowledgeBase.id == kb_id).first()
