"""
Document Model
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from knowledge_rag.core.constants import DOC_STATUS_PENDING
from knowledge_rag.models.base import BaseModel

class Document(BaseModel):
    """文档模型：pending -> processing -> completed/failed"""
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_status_created_at", "status", "created_at"),
    )

    knowledge_base_id = Column(
        Integer, ForeignKey("knowledge_bases.id", ondelete="CASCADE"), nullable=False, index=True, comment="知识库ID"
    )
    uploaded_by_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, comment="上传者ID"
    )
    # 创建时从知识库复制，用于审计
    organization_id = Column(Integer, nullable=True, comment="组织ID快照")
    file_name = Column(String(255), nullable=False, comment="文件名")
    file_size = Column(Integer, nullable=False, default=0, comment="文件大小")
    mime_type = Column(String(255), nullable=False, default="application/octet-stream", comment="MIME类型")
    storage_key = Column(String(700), nullable=False, unique=True, comment="对象存储键")
    checksum = Column(String(128), comment="SHA-256校验和(base64)")
    status = Column(String(20), nullable=False, default=DOC_STATUS_PENDING, comment="处理状态")
    error_message = Column(Text, comment="错误信息")
    chunk_count = Column(Integer, nullable=False, default=0, comment="分块数量")
    embedding_tokens = Column(Integer, nullable=False, default=0, comment="向量化消耗token数")
    claimed_at = Column(DateTime, nullable=True, comment="Worker领取时间")
    processed_at = Column(DateTime, nullable=True, comment="处理完成时间")

    # 关系
    knowledge_base = relationship("KnowledgeBase", back_populates="documents")
    uploaded_by = relationship("User")
    chunks = relationship(
        "DocumentChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
