"""
Permission utilities for knowledge bases.

知识库读写权限由三项决定：所有者、可见性、知识库所属组织的成员关系。
所有入口统一调用 compute_access，列表查询使用等价的 SQL 过滤条件。
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, Query

from knowledge_rag.core.constants import (
    KB_VISIBILITY_PUBLIC,
    KB_VISIBILITY_READONLY,
)
from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.models.knowledge_base import KnowledgeBase
from knowledge_rag.models.organization import OrganizationMember

ACCESS_READ = "read"
ACCESS_WRITE = "write"
ACCESS_OWNER = "owner"


@dataclass(frozen=True)
class KnowledgeBaseAccess:
    can_read: bool
    can_write: bool
    is_owner: bool = False


def compute_access(
    owner_user_id: int,
    visibility: str,
    has_org_membership: bool,
    acting_user_id: int,
) -> KnowledgeBaseAccess:
    """
    计算用户对知识库的读写能力

    Args:
        owner_user_id: 知识库所有者
        visibility: private/public/readonly
        has_org_membership: 知识库属于某组织且用户是该组织成员
        acting_user_id: 当前用户
    """
    is_owner = owner_user_id == acting_user_id
    can_read = (
        is_owner
        or visibility in (KB_VISIBILITY_PUBLIC, KB_VISIBILITY_READONLY)
        or has_org_membership
    )
    can_write = is_owner or (has_org_membership and visibility != KB_VISIBILITY_READONLY)
    return KnowledgeBaseAccess(can_read=can_read, can_write=can_write, is_owner=is_owner)


class KnowledgeBasePermissionService:
    """知识库级权限服务"""

    def __init__(self, db: Session):
        self.db = db

    def is_organization_member(self, organization_id: Optional[int], user_id: int) -> bool:
        if organization_id is None:
            return False
        return (
            self.db.query(OrganizationMember.id)
            .filter(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
            .first()
            is not None
        )

    def get_access(self, kb: KnowledgeBase, user_id: int) -> KnowledgeBaseAccess:
        return compute_access(
            owner_user_id=kb.user_id,
            visibility=kb.visibility,
            has_org_membership=self.is_organization_member(kb.organization_id, user_id),
            acting_user_id=user_id,
        )

    def ensure_permission(
        self, kb_id: int, user_id: int, required: str = ACCESS_READ
    ) -> Tuple[KnowledgeBase, KnowledgeBaseAccess]:
        """
        校验用户对知识库的能力，失败抛出 CustomException。

        不存在或不可读统一返回“知识库不存在”，避免泄露其存在性。
        返回通过校验后的知识库与能力对象，方便上层继续使用。
        """
        kb = self.db.query(KnowledgeBase).filter(KnowledgeBase.id == kb_id).first()
        if not kb:
            raise CustomException(code=ErrorCode.KNOWLEDGE_BASE_NOT_FOUND, message="知识库不存在")

        access = self.get_access(kb, user_id)
        if not access.can_read:
            raise CustomException(code=ErrorCode.KNOWLEDGE_BASE_NOT_FOUND, message="知识库不存在")
        if required == ACCESS_WRITE and not access.can_write:
            raise CustomException(code=ErrorCode.PERMISSION_DENIED, message="无权修改该知识库")
        if required == ACCESS_OWNER and not access.is_owner:
            raise CustomException(code=ErrorCode.PERMISSION_DENIED, message="只有所有者可以执行该操作")
        return kb, access

    @staticmethod
    def apply_readable_filter(query: Query, user_id: int) -> Query:
        """为知识库查询追加“可读”过滤条件（所有者 / 公开或只读 / 组织成员）"""
        return query.outerjoin(
            OrganizationMember,
            and_(
                OrganizationMember.organization_id == KnowledgeBase.organization_id,
                OrganizationMember.user_id == user_id,
            ),
        ).filter(
            or_(
                KnowledgeBase.user_id == user_id,
                KnowledgeBase.visibility.in_([KB_VISIBILITY_PUBLIC, KB_VISIBILITY_READONLY]),
                OrganizationMember.id.isnot(None),
            )
        )
