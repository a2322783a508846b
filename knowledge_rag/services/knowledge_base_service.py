"""
Knowledge Base Service
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from knowledge_rag.core.constants import (
    DOC_STATUS_FAILED,
    DOC_STATUS_PENDING,
    DOC_STATUS_PROCESSING,
)
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.core.logging import logger
from knowledge_rag.models.chunk import DocumentChunk
from knowledge_rag.models.document import Document
from knowledge_rag.models.knowledge_base import KnowledgeBase
from knowledge_rag.models.organization import OrganizationMember
from knowledge_rag.schemas.knowledge_base import KnowledgeBaseCreate, KnowledgeBaseUpdate
from knowledge_rag.services.base import BaseService
from knowledge_rag.services.permission_service import (
    ACCESS_OWNER,
    ACCESS_READ,
    ACCESS_WRITE,
    KnowledgeBaseAccess,
    KnowledgeBasePermissionService,
    compute_access,
)

class KnowledgeBaseService(BaseService[KnowledgeBase]):
    """知识库服务"""

    def __init__(self, db: Session):
        super().__init__(db, KnowledgeBase)
        self.permissions = KnowledgeBasePermissionService(db)

    def _document_counts(self, kb_ids: Iterable[int]) -> Dict[int, Dict[str, int]]:
        """按知识库统计文档数；待处理数包含失败的文档（仍需处理）"""
        kb_ids = list(kb_ids)
        counts = {
            kb_id: {"document_count": 0, "pending_document_count": 0, "processing_document_count": 0}
            for kb_id in kb_ids
        }
        if not kb_ids:
            return counts
        rows = (
            self.db.query(Document.knowledge_base_id, Document.status, func.count(Document.id))
            .filter(Document.knowledge_base_id.in_(kb_ids))
            .group_by(Document.knowledge_base_id, Document.status)
            .all()
        )
        for kb_id, status, total in rows:
            item = counts[kb_id]
            item["document_count"] += total
            if status in (DOC_STATUS_PENDING, DOC_STATUS_FAILED):
                item["pending_document_count"] += total
            elif status == DOC_STATUS_PROCESSING:
                item["processing_document_count"] += total
        return counts

    @staticmethod
    def _serialize(kb: KnowledgeBase, counts: Dict[str, int], access: KnowledgeBaseAccess) -> Dict[str, Any]:
        return {
            "id": kb.id,
            "name": kb.name,
            "description": kb.description,
            "visibility": kb.visibility,
            "user_id": kb.user_id,
            "organization_id": kb.organization_id,
            "created_at": kb.created_at,
            "updated_at": kb.updated_at,
            **counts,
            "can_read": access.can_read,
            "can_write": access.can_write,
            "is_owner": access.is_owner,
        }

    def _ensure_name_available(self, owner_user_id: int, name: str, exclude_id: Optional[int] = None):
        query = self.db.query(KnowledgeBase.id).filter(
            KnowledgeBase.user_id == owner_user_id,
            KnowledgeBase.name == name,
        )
        if exclude_id is not None:
            query = query.filter(KnowledgeBase.id != exclude_id)
        if query.first():
            raise CustomException(
                code=ErrorCode.KNOWLEDGE_BASE_NAME_EXISTS,
                message=f"知识库名称已存在: {name}",
            )

    def _ensure_organization_member(self, organization_id: int, user_id: int):
        if not self.permissions.is_organization_member(organization_id, user_id):
            raise CustomException(
                code=ErrorCode.PERMISSION_DENIED,
                message="只能将知识库共享到自己所在的组织",
            )

    def create_knowledge_base(self, user_id: int, data: KnowledgeBaseCreate) -> Dict[str, Any]:
        """创建知识库"""
        name = data.name.strip()
        if not name:
            raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="知识库名称不能为空")
        self._ensure_name_available(user_id, name)
        if data.organization_id is not None:
            self._ensure_organization_member(data.organization_id, user_id)

        try:
            kb = self.create({
                "name": name,
                "description": data.description,
                "visibility": data.visibility,
                "organization_id": data.organization_id,
                "user_id": user_id,
            })
        except IntegrityError:
            # 并发创建同名知识库
            raise CustomException(
                code=ErrorCode.KNOWLEDGE_BASE_NAME_EXISTS,
                message=f"知识库名称已存在: {name}",
            )
        logger.info(f"创建知识库成功: id={kb.id}, name={kb.name}, user_id={user_id}")
        access = compute_access(kb.user_id, kb.visibility, data.organization_id is not None, user_id)
        return self._serialize(kb, self._document_counts([kb.id])[kb.id], access)

    def get_knowledge_base(self, kb_id: int, user_id: int) -> Dict[str, Any]:
        """获取知识库详情（含统计与当前用户能力）"""
        kb, access = self.permissions.ensure_permission(kb_id, user_id, ACCESS_READ)
        return self._serialize(kb, self._document_counts([kb.id])[kb.id], access)

    def list_knowledge_bases(
        self,
        user_id: int,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """分页获取当前用户可读的知识库，返回 (items, total)"""
        skip = max(page - 1, 0) * max(size, 1)
        query = self.permissions.apply_readable_filter(
            self.db.query(KnowledgeBase, OrganizationMember.id.label("membership_id")),
            user_id,
        )
        if search and search.strip():
            query = query.filter(KnowledgeBase.name.ilike(f"%{search.strip()}%"))

        total = query.count()
        rows = (
            query.order_by(KnowledgeBase.created_at.desc(), KnowledgeBase.id.desc())
            .offset(skip)
            .limit(size)
            .all()
        )
        counts = self._document_counts(kb.id for kb, _ in rows)
        items = []
        for kb, membership_id in rows:
            access = compute_access(kb.user_id, kb.visibility, membership_id is not None, user_id)
            items.append(self._serialize(kb, counts[kb.id], access))
        return items, total

    def update_knowledge_base(self, kb_id: int, user_id: int, data: KnowledgeBaseUpdate) -> Dict[str, Any]:
        """更新知识库元数据（需要写权限）"""
        kb, _ = self.permissions.ensure_permission(kb_id, user_id, ACCESS_WRITE)
        changes = data.dict(exclude_unset=True)

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise CustomException(code=ErrorCode.VALIDATION_ERROR, message="知识库名称不能为空")
            if name != kb.name:
                self._ensure_name_available(kb.user_id, name, exclude_id=kb.id)
            changes["name"] = name
        if "visibility" in changes and changes["visibility"] is None:
            changes.pop("visibility")
        new_org = changes.get("organization_id")
        if new_org is not None and new_org != kb.organization_id:
            self._ensure_organization_member(new_org, user_id)

        try:
            kb = self.update(kb, changes)
        except IntegrityError:
            raise CustomException(
                code=ErrorCode.KNOWLEDGE_BASE_NAME_EXISTS,
                message=f"知识库名称已存在: {changes.get('name')}",
            )
        logger.info(f"更新知识库成功: id={kb.id}, 字段={list(changes.keys())}")
        access = self.permissions.get_access(kb, user_id)
        return self._serialize(kb, self._document_counts([kb.id])[kb.id], access)

    def delete_knowledge_base(self, kb_id: int, user_id: int) -> List[str]:
        """
        删除知识库及其全部文档与分块（仅所有者）

        Returns:
            被删除文档的存储键，调用方负责删除对应对象
        """
        kb, _ = self.permissions.ensure_permission(kb_id, user_id, ACCESS_OWNER)
        storage_keys = [
            key for (key,) in self.db.query(Document.storage_key).filter(Document.knowledge_base_id == kb.id)
        ]
        try:
            chunk_count = (
                self.db.query(DocumentChunk)
                .filter(DocumentChunk.knowledge_base_id == kb.id)
                .delete(synchronize_session=False)
            )
            document_count = (
                self.db.query(Document)
                .filter(Document.knowledge_base_id == kb.id)
                .delete(synchronize_session=False)
            )
            self.db.query(KnowledgeBase).filter(KnowledgeBase.id == kb.id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"删除知识库失败: id={kb_id}", exc_info=True)
            raise
        self.db.expunge_all()
        logger.info(f"删除知识库成功: id={kb_id}, 文档={document_count}, 分块={chunk_count}")
        return storage_keys

    def get_readable_knowledge_base_ids(
        self, user_id: int, requested_ids: Optional[Iterable[int]] = None
    ) -> List[int]:
        """解析用户可读的知识库ID集合；指定 requested_ids 时取交集"""
        query = self.permissions.apply_readable_filter(self.db.query(KnowledgeBase.id), user_id)
        if requested_ids is not None:
            requested = list(set(requested_ids))
            if not requested:
                return []
            query = query.filter(KnowledgeBase.id.in_(requested))
        return sorted({kb_id for (kb_id,) in query.all()})
