"""
Document Chunk Model
"""

from sqlalchemy import Column, Text, Integer, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from knowledge_rag.models.base import BaseModel

class DocumentChunk(BaseModel):
    """文档分块模型（创建后不再修改）"""
    __tablename__ = "document_chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uk_chunk_document_index"),
    )

    document_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True, comment="文档ID"
    )
    # 冗余知识库ID，检索时无需关联文档表过滤
    knowledge_base_id = Column(
        Integer, ForeignKey("knowledge_bases.id", ondelete="CASCADE"), nullable=False, index=True, comment="知识库ID"
    )
    chunk_index = Column(Integer, nullable=False, comment="分块索引")
    content = Column(Text, nullable=False, comment="分块内容")
    embedding = Column(JSON, nullable=False, comment="向量(float数组)")

    # 关系
    document = relationship("Document", back_populates="chunks")
