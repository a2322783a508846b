"""
Knowledge Base Model
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from knowledge_rag.core.constants import KB_VISIBILITY_PRIVATE
from knowledge_rag.models.base import BaseModel

class KnowledgeBase(BaseModel):
    """知识库模型"""
    __tablename__ = "knowledge_bases"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uk_kb_owner_name"),
    )

    name = Column(String(255), nullable=False, comment="知识库名称")
    description = Column(Text, comment="知识库描述")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="所有者用户ID")
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True, comment="共享组织ID"
    )
    visibility = Column(
        String(20),
        default=KB_VISIBILITY_PRIVATE,
        nullable=False,
        comment="可见性: private/public/readonly",
    )

    # 关系
    owner = relationship("User")
    organization = relationship("Organization")
    documents = relationship(
        "Document",
        back_populates="knowledge_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
